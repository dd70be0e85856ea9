"""
reimburse_kernel.services.dataset_store -- Whole-snapshot persistence.

Responsibility:
    Load the complete application ``Dataset`` from the database and save
    a complete ``Dataset`` back, replacing what was stored.  No incremental
    persistence: every save is one transaction that rewrites users,
    templates, requests and the seeded flag.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.
    Implements the ``PersistentStore`` protocol.

Invariants enforced:
    - A save is atomic: either the whole snapshot is stored or, on any
      error, the previous snapshot is left intact (session_scope rollback).
    - Order of users, template categories/fields and requests survives a
      round trip.

Failure modes:
    - SQLAlchemy errors propagate after rollback (e.g. IntegrityError on a
      duplicate username).
    - An empty database loads as an unseeded empty Dataset.
"""

from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from reimburse_kernel.db.engine import session_scope
from reimburse_kernel.domain.dataset import Dataset
from reimburse_kernel.logging_config import get_logger
from reimburse_kernel.models import (
    AttachmentRefModel,
    DatasetStateModel,
    HistoryEntryModel,
    RequestItemModel,
    RequestModel,
    SignatureModel,
    TemplateFieldModel,
    UserModel,
    catalog_from_models,
    catalog_to_models,
)

logger = get_logger("services.dataset_store")

# Children before parents.
_SNAPSHOT_TABLES = (
    SignatureModel,
    AttachmentRefModel,
    HistoryEntryModel,
    RequestItemModel,
    RequestModel,
    TemplateFieldModel,
    UserModel,
    DatasetStateModel,
)


class SqlDatasetStore:
    """``PersistentStore`` backed by SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def load_all(self) -> Dataset:
        with session_scope(self._session_factory) as session:
            state = session.execute(select(DatasetStateModel)).scalars().first()
            users = session.execute(
                select(UserModel).order_by(UserModel.position)
            ).scalars().all()
            fields = session.execute(select(TemplateFieldModel)).scalars().all()
            requests = session.execute(
                select(RequestModel).order_by(RequestModel.position)
            ).scalars().all()

            dataset = Dataset(
                users=tuple(u.to_dto() for u in users),
                templates=catalog_from_models(list(fields)),
                requests=tuple(r.to_dto() for r in requests),
                seeded=bool(state.seeded) if state is not None else False,
            )

        logger.info(
            "dataset_loaded",
            extra={
                "user_count": len(dataset.users),
                "request_count": len(dataset.requests),
                "category_count": len(dataset.templates.entries),
                "seeded": dataset.seeded,
            },
        )
        return dataset

    def save_all(self, dataset: Dataset) -> None:
        with session_scope(self._session_factory) as session:
            for model in _SNAPSHOT_TABLES:
                session.execute(delete(model))

            session.add(DatasetStateModel(seeded=dataset.seeded))
            session.add_all(
                UserModel.from_dto(record, position=i)
                for i, record in enumerate(dataset.users)
            )
            session.add_all(catalog_to_models(dataset.templates))
            session.add_all(
                RequestModel.from_dto(request, position=i)
                for i, request in enumerate(dataset.requests)
            )

        logger.info(
            "dataset_saved",
            extra={
                "user_count": len(dataset.users),
                "request_count": len(dataset.requests),
                "seeded": dataset.seeded,
            },
        )
