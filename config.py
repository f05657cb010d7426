#!/usr/bin/env python
"""Initialize and check the service's YAML files.

Copies the samples into place, then loads every file the way the service
does at startup and reports anything it would reject or skip.

Usage:
    python config.py          # Copy missing files from samples, then check them
    python config.py --force  # Overwrite existing files with the samples
    python config.py --check  # Only check the existing files
"""

import argparse
import shutil
import sys
from pathlib import Path

import yaml

sys.path.insert(0, str(Path(__file__).parent.resolve() / "src"))

from approval_svc.config import Config  # noqa: E402
from approval_svc.submissions.autoapproval import load_rules_from_yaml  # noqa: E402
from approval_svc.submissions.loader import load_submissions_from_yaml  # noqa: E402


def check_config(path: Path) -> str:
    config = Config.from_yaml(str(path))
    return f"backend={config.backend.type}, port={config.server.port}"


def check_rules(path: Path) -> str:
    rules = load_rules_from_yaml(path)
    enabled = sum(1 for r in rules if r.enabled)
    return f"{len(rules)} rules ({enabled} enabled)"


def check_submissions(path: Path) -> str:
    with open(path, "r", encoding="utf-8") as f:
        rows = (yaml.safe_load(f) or {}).get("submissions") or []
    loaded = load_submissions_from_yaml(path)
    skipped = len(rows) - len(loaded)
    if skipped:
        raise ValueError(f"{skipped} of {len(rows)} submissions could not be parsed")
    return f"{len(loaded)} submissions"


# sample -> (target, check)
CONFIG_FILES = {
    "config.sample.yaml": ("config.yaml", check_config),
    "sample_submissions.yaml": ("submissions.yaml", check_submissions),
    "sample_rules.yaml": ("rules.yaml", check_rules),
}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Initialize and check configuration files")
    parser.add_argument("--force", "-f", action="store_true", help="Overwrite existing files")
    parser.add_argument("--check", action="store_true", help="Check existing files without copying")
    parser.add_argument("--dir", type=Path, default=Path(__file__).parent.resolve(),
                        help="Directory holding the samples and targets")
    args = parser.parse_args(argv)

    errors = 0
    for sample, (target, check) in CONFIG_FILES.items():
        sample_path = args.dir / sample
        target_path = args.dir / target

        if not args.check:
            if not sample_path.exists():
                print(f"  skip: {sample} (sample not found)")
            elif target_path.exists() and not args.force:
                print(f"  keep: {target}")
            else:
                shutil.copy(sample_path, target_path)
                print(f"  copy: {target} <- {sample}")

        if not target_path.exists():
            print(f"  missing: {target}")
            continue
        try:
            print(f"  ok: {target} ({check(target_path)})")
        except (OSError, yaml.YAMLError, KeyError, ValueError, TypeError) as e:
            print(f"  error: {target}: {e}", file=sys.stderr)
            errors += 1

    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(main())
