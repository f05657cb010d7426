"""Configuration for the approval service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "APPROVAL_CONFIG"
DEFAULT_CONFIG_FILE = "config.yaml"


@dataclass
class ServerConfig:
    """HTTP server configuration."""
    host: str = "0.0.0.0"
    port: int = 8060
    reload: bool = False


@dataclass
class BackendConfig:
    """Backend-as-a-service connection."""
    type: str = "memory"  # memory | rest

    # REST (PostgREST-compatible) settings
    base_url: str = ""
    api_key: str = ""
    api_key_env: str = "APPROVAL_API_KEY"
    schema: str = "public"
    submissions_table: str = "submissions"
    comments_table: str = "comments"

    # Every backend call is bounded by this timeout
    timeout_seconds: float = 10.0

    # Change feed polling (REST only)
    poll_interval_seconds: float = 2.0

    def resolved_api_key(self) -> str:
        """The configured key, else the one in ``api_key_env``."""
        return self.api_key or os.environ.get(self.api_key_env, "")


@dataclass
class WorkflowConfig:
    """Approval workflow settings."""
    page_size: int = 10
    default_sla_days: int = 5

    # YAML seed data (memory backend) and auto-approval rules
    seed_file: str | None = None
    rules_file: str | None = None

    # Auto-approval refuses anything riskier than this
    max_risk_score: int = 30


@dataclass
class SyncConfig:
    """Real-time synchronization."""
    enabled: bool = True
    max_queue_size: int = 10000

    # Ignore remote updates older than the local version
    drop_stale: bool = True


@dataclass
class Config:
    """Main configuration container."""
    project_name: str = "Asset Approvals"
    server: ServerConfig = field(default_factory=ServerConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)

    @classmethod
    def from_dict(cls, data: dict) -> Config:
        """Create config from dictionary."""
        return cls(
            project_name=data.get("project_name", "Asset Approvals"),
            server=ServerConfig(**data.get("server", {})),
            backend=BackendConfig(**data.get("backend", {})),
            workflow=WorkflowConfig(**data.get("workflow", {})),
            sync=SyncConfig(**data.get("sync", {})),
        )

    @classmethod
    def from_yaml(cls, path: str) -> Config:
        """Load config from YAML file."""
        import yaml
        with open(path, "r") as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: str) -> Config:
        """Load config from JSON file."""
        import json
        with open(path, "r") as f:
            data = json.load(f)
        return cls.from_dict(data)


def load_config(path: str | None = None) -> tuple[Config, Path | None]:
    """
    Load configuration.

    Resolution order: explicit ``path``, the ``APPROVAL_CONFIG`` environment
    variable, ``config.yaml`` in the working directory, then defaults.
    Returns the config and the file it came from (None for defaults).
    """
    candidate = path or os.environ.get(CONFIG_ENV_VAR)
    if candidate is None and Path(DEFAULT_CONFIG_FILE).exists():
        candidate = DEFAULT_CONFIG_FILE

    if candidate is None:
        logger.info("No config file found, using defaults")
        return Config(), None

    config_path = Path(candidate)
    if config_path.suffix == ".json":
        config = Config.from_json(str(config_path))
    else:
        config = Config.from_yaml(str(config_path))
    logger.info(f"Loaded config from {config_path}")
    return config, config_path
