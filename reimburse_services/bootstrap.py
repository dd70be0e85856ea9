"""
reimburse_services.bootstrap -- Wire a ready-to-use application.

Initializes the database engine from configuration, creates the tables,
builds the reference collaborators and seeds the dataset on first run.
"""

from __future__ import annotations

from reimburse_config import get_active_config
from reimburse_config.schema import AppConfig
from reimburse_engines.signature import StrokeRasterizer
from reimburse_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from reimburse_kernel.domain.clock import Clock
from reimburse_kernel.logging_config import get_logger
from reimburse_kernel.services.attachment_store import SqlAttachmentStore
from reimburse_kernel.services.dataset_store import SqlDatasetStore
from reimburse_services.app import ReimbursementApp

logger = get_logger("services.bootstrap")


def build_app(
    config: AppConfig | None = None,
    *,
    database_url: str | None = None,
    clock: Clock | None = None,
    seed: bool = True,
) -> ReimbursementApp:
    """Build a ``ReimbursementApp`` backed by SQLAlchemy.

    Args:
        config: Application config.  Defaults to ``get_active_config()``.
        database_url: Overrides ``config.database_url``.
        clock: Time source shared by the app and the attachment store.
        seed: Seed demo users and templates when the dataset is unseeded.
    """
    config = config or get_active_config()
    init_engine_from_url(database_url or config.database_url)
    create_tables()

    session_factory = get_session_factory()
    app = ReimbursementApp(
        config=config,
        store=SqlDatasetStore(session_factory),
        attachments=SqlAttachmentStore(session_factory, clock=clock),
        signature_capture=StrokeRasterizer(),
        clock=clock,
    )
    if seed:
        app.seed_if_needed()

    logger.info(
        "app_ready",
        extra={
            "config_id": config.config_id,
            "request_count": len(app.dataset.requests),
            "seeded": app.dataset.seeded,
        },
    )
    return app
