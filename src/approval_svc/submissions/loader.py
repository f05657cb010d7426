"""Seed persistence - YAML round-trip for submissions."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable

import yaml

from .serializer import submission_from_row, submission_to_row
from .types import Submission

logger = logging.getLogger(__name__)


def load_submissions_from_yaml(path: str | Path) -> list[Submission]:
    """
    Load submissions (with embedded comments) from a YAML file.

    Rows that cannot be parsed are skipped with a warning.
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"Submissions file not found: {path}")
        return []

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    if not data or "submissions" not in data:
        return []

    loaded = []
    for row in data["submissions"]:
        try:
            loaded.append(submission_from_row(row))
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Skipping invalid submission {row.get('id', '?')!r} in {path}: {e}")

    logger.info(f"Loaded {len(loaded)} submissions from {path}")
    return loaded


def save_submissions_to_yaml(path: str | Path, submissions: Iterable[Submission]) -> int:
    """Save submissions, comments embedded, to a YAML file."""
    path = Path(path)
    items = list(submissions)

    data: dict[str, Any] = {
        "submissions": [submission_to_row(s, include_comments=True) for s in items],
    }

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f, default_flow_style=False, allow_unicode=True, sort_keys=False)

    logger.info(f"Saved {len(items)} submissions to {path}")
    return len(items)
