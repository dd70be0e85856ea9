"""
Module: reimburse_kernel.models.attachment
Responsibility: ORM persistence for attachment payloads.

Payloads live apart from requests: a request only embeds the reference.
Rows are write-once; the store never updates a stored payload.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Integer, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from reimburse_kernel.db.base import Base, UUIDString


class AttachmentBlobModel(Base):
    """Stored attachment payload, addressed by ``ref_id``."""

    __tablename__ = "attachment_blobs"

    ref_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False)
    payload: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    stored_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<AttachmentBlob {self.ref_id} {self.name} ({self.size} bytes)>"
