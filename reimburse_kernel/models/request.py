"""
Module: reimburse_kernel.models.request
Responsibility: ORM persistence for reimbursement requests, their items,
    audit trail, attachment references and signatures.

Architecture position: Kernel > Models.  May import from db/base.py only
    (domain DTOs imported lazily for conversion).

Invariants enforced:
    - status is one of the six lifecycle states (check constraint).
    - Child rows carry an explicit ``position`` so item, history and
      attachment order survives a round trip.
    - The request row's primary key is the domain request id.

Audit relevance:
    ``request_history`` rows are the persisted audit trail.  The store
    rewrites the snapshot whole, but the engine only ever appends to
    history, so every saved trail is a prefix-extension of the last one.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Integer,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from reimburse_kernel.db.base import Base, UUIDString

if TYPE_CHECKING:
    from reimburse_kernel.domain.reimbursement import Request


class RequestModel(Base):
    """Persistent reimbursement request."""

    __tablename__ = "requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('Pending Facilitator', 'Pending Coordinator', "
            "'Pending PI', 'Approved for Finance', 'Paid', 'Rejected')",
            name="ck_requests_valid_status",
        ),
    )

    position: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    created_by_name: Mapped[str] = mapped_column(String(200), nullable=False)
    funder: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    program: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    notes: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(50), nullable=False)
    approval_letter: Mapped[str | None] = mapped_column(Text, nullable=True)
    reimbursed: Mapped[Decimal] = mapped_column(nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    items: Mapped[list[RequestItemModel]] = relationship(
        back_populates="request",
        order_by="RequestItemModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    history: Mapped[list[HistoryEntryModel]] = relationship(
        back_populates="request",
        order_by="HistoryEntryModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    attachments: Mapped[list[AttachmentRefModel]] = relationship(
        back_populates="request",
        order_by="AttachmentRefModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    signatures: Mapped[list[SignatureModel]] = relationship(
        back_populates="request",
        order_by="SignatureModel.signer_key",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Request {self.id} status={self.status} v{self.version}>"

    def to_dto(self) -> Request:
        """Convert ORM model to frozen domain DTO."""
        from reimburse_kernel.domain.reimbursement import (
            AttachmentRef,
            HistoryEntry,
            Item,
            Request,
            RequestStatus,
        )

        return Request(
            id=self.id,
            created_at=self.created_at,
            created_by=self.created_by,
            created_by_name=self.created_by_name,
            items=tuple(
                Item(id=i.item_id, category=i.category, amount=i.amount, fields=i.fields or {})
                for i in self.items
            ),
            funder=self.funder,
            program=self.program,
            notes=self.notes,
            status=RequestStatus(self.status),
            history=tuple(
                HistoryEntry(who=h.who, role=h.role, action=h.action, at=h.at)
                for h in self.history
            ),
            attachments=tuple(
                AttachmentRef(ref_id=a.ref_id, name=a.name, content_type=a.content_type)
                for a in self.attachments
            ),
            approval_letter=self.approval_letter,
            signatures={s.signer_key: s.image for s in self.signatures},
            reimbursed=self.reimbursed,
            version=self.version,
        )

    @classmethod
    def from_dto(cls, dto: Request, position: int) -> RequestModel:
        """Create ORM model (with children) from domain DTO."""
        return cls(
            id=dto.id,
            position=position,
            created_at=dto.created_at,
            created_by=dto.created_by,
            created_by_name=dto.created_by_name,
            funder=dto.funder,
            program=dto.program,
            notes=dto.notes,
            status=dto.status.value,
            approval_letter=dto.approval_letter,
            reimbursed=dto.reimbursed,
            version=dto.version,
            items=[
                RequestItemModel(
                    item_id=item.id,
                    position=i,
                    category=item.category,
                    amount=item.amount,
                    fields=dict(item.fields),
                )
                for i, item in enumerate(dto.items)
            ],
            history=[
                HistoryEntryModel(position=i, who=h.who, role=h.role, action=h.action, at=h.at)
                for i, h in enumerate(dto.history)
            ],
            attachments=[
                AttachmentRefModel(
                    position=i, ref_id=a.ref_id, name=a.name, content_type=a.content_type,
                )
                for i, a in enumerate(dto.attachments)
            ],
            signatures=[
                SignatureModel(signer_key=key, image=image)
                for key, image in dto.signatures.items()
            ],
        )


class RequestItemModel(Base):
    """One line item of a request."""

    __tablename__ = "request_items"

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("requests.id", ondelete="CASCADE"), nullable=False,
    )
    item_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    fields: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    request: Mapped[RequestModel] = relationship(back_populates="items")


class HistoryEntryModel(Base):
    """One audit-trail entry of a request."""

    __tablename__ = "request_history"

    __table_args__ = (
        UniqueConstraint("request_id", "position", name="uq_request_history_position"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("requests.id", ondelete="CASCADE"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    who: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    action: Mapped[str] = mapped_column(Text, nullable=False)
    at: Mapped[datetime] = mapped_column(nullable=False)

    request: Mapped[RequestModel] = relationship(back_populates="history")


class AttachmentRefModel(Base):
    """An attachment reference embedded in a request."""

    __tablename__ = "request_attachments"

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("requests.id", ondelete="CASCADE"), nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    ref_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)

    request: Mapped[RequestModel] = relationship(back_populates="attachments")


class SignatureModel(Base):
    """A signer's image artifact on a request."""

    __tablename__ = "request_signatures"

    __table_args__ = (
        UniqueConstraint("request_id", "signer_key", name="uq_request_signatures_signer"),
    )

    request_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("requests.id", ondelete="CASCADE"), nullable=False,
    )
    signer_key: Mapped[str] = mapped_column(String(100), nullable=False)
    image: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    request: Mapped[RequestModel] = relationship(back_populates="signatures")
