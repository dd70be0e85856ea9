"""
Module: reimburse_kernel.models.user
Responsibility: ORM persistence for user directory records.

Architecture position: Kernel > Models.  May import from db/base.py only
    (domain DTOs imported lazily for conversion).

Invariants enforced:
    - username is unique.
    - role is one of the six workflow roles (check constraint).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import JSON, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from reimburse_kernel.db.base import Base

if TYPE_CHECKING:
    from reimburse_kernel.domain.reimbursement import UserRecord


class UserModel(Base):
    """Persistent user record.  ``position`` keeps directory order."""

    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint(
            "role IN ('Admin', 'PI', 'Facilitator', 'Coordinator', "
            "'Field Staff', 'Finance')",
            name="ck_users_valid_role",
        ),
    )

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    username: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    password: Mapped[str] = mapped_column(String(200), nullable=False)
    role: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    phone: Mapped[str] = mapped_column(String(50), default="", nullable=False)
    national_id: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    driver_license: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    passport: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    fund_sources: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    def __repr__(self) -> str:
        return f"<User {self.username} role={self.role}>"

    def to_dto(self) -> UserRecord:
        """Convert ORM model to frozen domain DTO."""
        from reimburse_kernel.domain.reimbursement import Role, User, UserRecord

        return UserRecord(
            user=User(
                id=self.user_id,
                role=Role(self.role),
                name=self.name,
                username=self.username,
                fund_sources=frozenset(self.fund_sources or ()),
            ),
            password=self.password,
            email=self.email,
            phone=self.phone,
            national_id=self.national_id,
            driver_license=self.driver_license,
            passport=self.passport,
        )

    @classmethod
    def from_dto(cls, dto: UserRecord, position: int) -> UserModel:
        """Create ORM model from domain DTO."""
        return cls(
            user_id=dto.user.id,
            username=dto.user.username,
            password=dto.password,
            role=dto.user.role.value,
            name=dto.user.name,
            email=dto.email,
            phone=dto.phone,
            national_id=dto.national_id,
            driver_license=dto.driver_license,
            passport=dto.passport,
            fund_sources=sorted(dto.user.fund_sources),
            position=position,
        )
