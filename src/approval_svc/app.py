"""FastAPI entry point for the approval service.

Start with:
    PYTHONPATH=src uvicorn approval_svc.app:app --host 0.0.0.0 --port 8060

Serves:
- /submissions/*: review queue, workflow actions, timeline, summary
- GET /health: liveness and sync statistics
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI

from . import __version__
from .api import routes as submission_routes
from .backend import InMemoryBackend, RestBackend, SubmissionBackend
from .config import Config, load_config
from .service import WorkflowService
from .submissions.autoapproval import AutoApprovalPolicy, load_rules_from_yaml
from .submissions.loader import load_submissions_from_yaml
from .submissions.query import use_system_collation
from .submissions.store import SubmissionStore
from .sync import SyncAdapter, SyncEvent

logger = logging.getLogger(__name__)


def _resolve(path: str | None, base: Path | None) -> Path | None:
    """Resolve a config-relative path."""
    if not path:
        return None
    candidate = Path(path)
    if not candidate.is_absolute() and base is not None:
        candidate = base / candidate
    return candidate


def build_backend(config: Config, config_dir: Path | None = None) -> SubmissionBackend:
    """Create the configured backend; the memory backend is seeded from YAML."""
    backend_type = config.backend.type.lower()

    if backend_type == "rest":
        return RestBackend(
            base_url=config.backend.base_url,
            api_key=config.backend.resolved_api_key(),
            schema=config.backend.schema,
            submissions_table=config.backend.submissions_table,
            comments_table=config.backend.comments_table,
            timeout_seconds=config.backend.timeout_seconds,
            poll_interval_seconds=config.backend.poll_interval_seconds,
        )

    if backend_type != "memory":
        raise ValueError(f"Unknown backend type: {config.backend.type}")

    backend = InMemoryBackend()
    seed_path = _resolve(config.workflow.seed_file, config_dir)
    if seed_path is not None:
        backend.seed(load_submissions_from_yaml(seed_path))
    return backend


def build_policy(config: Config, config_dir: Path | None = None) -> AutoApprovalPolicy:
    rules_path = _resolve(config.workflow.rules_file, config_dir)
    rules = load_rules_from_yaml(rules_path) if rules_path is not None else []
    return AutoApprovalPolicy(rules=rules, max_risk_score=config.workflow.max_risk_score)


def _log_sync_event(event: SyncEvent) -> None:
    if event.status_changed:
        logger.info(f"{event.title}: {event.description}")
    else:
        logger.debug(f"{event.title}: {event.description}")


def create_app(config: Config | None = None, config_path: Path | None = None) -> FastAPI:
    """
    Build the application.

    With no ``config`` the configuration is loaded at startup from
    ``APPROVAL_CONFIG`` (or ``config.yaml``).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting approval service...")

        cfg, cfg_path = (config, config_path) if config is not None else load_config()
        config_dir = cfg_path.parent if cfg_path is not None else None
        app.state.config = cfg

        store = SubmissionStore(drop_stale=cfg.sync.drop_stale)
        backend = build_backend(cfg, config_dir)
        service = WorkflowService(
            store=store,
            backend=backend,
            policy=build_policy(cfg, config_dir),
            timeout_seconds=cfg.backend.timeout_seconds,
        )
        count = await service.load()
        logger.info(f"Loaded {count} submissions ({cfg.backend.type} backend)")

        adapter: SyncAdapter | None = None
        sync_task: asyncio.Task | None = None
        if cfg.sync.enabled:
            adapter = SyncAdapter(store=store, max_queue_size=cfg.sync.max_queue_size)
            adapter.add_consumer(_log_sync_event)
            await adapter.start()
            await adapter.attach(backend)
            sync_task = asyncio.create_task(adapter.process_loop())
            logger.info("Real-time sync enabled")

        app.state.store = store
        app.state.service = service
        app.state.sync = adapter

        submission_routes.configure(
            service=service,
            page_size=cfg.workflow.page_size,
            default_sla_days=cfg.workflow.default_sla_days,
        )

        logger.info("Approval service started")
        yield

        if sync_task is not None:
            sync_task.cancel()
            try:
                await sync_task
            except asyncio.CancelledError:
                pass
        if adapter is not None:
            await adapter.stop()
        await backend.close()
        logger.info("Approval service stopped")

    app = FastAPI(
        title="Asset Approvals",
        description="Review and approval workflow for data asset submissions and access requests.",
        version=__version__,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Submissions", "description": "Review queue and approval workflow"},
            {"name": "Health", "description": "Liveness"},
        ],
    )
    app.include_router(submission_routes.router)

    @app.get("/health", tags=["Health"])
    async def health():
        store = getattr(app.state, "store", None)
        adapter = getattr(app.state, "sync", None)
        return {
            "status": "ok",
            "project": app.state.config.project_name if hasattr(app.state, "config") else None,
            "submissions": len(store) if store is not None else 0,
            "sync": adapter.stats if adapter is not None else None,
        }

    return app


app = create_app()


def run():
    """Run the service with uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    use_system_collation()
    config, _ = load_config()
    uvicorn.run(
        "approval_svc.app:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
    )


if __name__ == "__main__":
    run()
