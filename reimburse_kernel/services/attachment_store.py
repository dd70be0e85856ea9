"""
reimburse_kernel.services.attachment_store -- Attachment payload storage.

Responsibility:
    Store a named binary payload and hand back an ``AttachmentRef`` that a
    request can embed; return the same bytes for that reference later.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.
    Implements the ``AttachmentStore`` protocol.

Failure modes:
    - AttachmentNotFoundError when a reference has no stored payload.
"""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from reimburse_kernel.db.engine import session_scope
from reimburse_kernel.domain.clock import Clock, SystemClock
from reimburse_kernel.domain.reimbursement import AttachmentRef
from reimburse_kernel.exceptions import AttachmentNotFoundError
from reimburse_kernel.logging_config import get_logger
from reimburse_kernel.models import AttachmentBlobModel

logger = get_logger("services.attachment_store")

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class SqlAttachmentStore:
    """``AttachmentStore`` keeping payloads in the ``attachment_blobs`` table."""

    def __init__(self, session_factory: sessionmaker[Session], clock: Clock | None = None):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def put(
        self,
        name: str,
        payload: bytes,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ) -> AttachmentRef:
        ref = AttachmentRef(ref_id=uuid4(), name=name, content_type=content_type)
        with session_scope(self._session_factory) as session:
            session.add(
                AttachmentBlobModel(
                    ref_id=ref.ref_id,
                    name=name,
                    content_type=content_type,
                    size=len(payload),
                    payload=bytes(payload),
                    stored_at=self._clock.now(),
                )
            )
        logger.info(
            "attachment_stored",
            extra={"ref_id": str(ref.ref_id), "attachment_name": name, "size": len(payload)},
        )
        return ref

    def get(self, ref: AttachmentRef) -> bytes:
        with session_scope(self._session_factory) as session:
            blob = session.execute(
                select(AttachmentBlobModel).where(AttachmentBlobModel.ref_id == ref.ref_id)
            ).scalar_one_or_none()
            payload = blob.payload if blob is not None else None
        if payload is None:
            raise AttachmentNotFoundError(str(ref.ref_id))
        return payload
