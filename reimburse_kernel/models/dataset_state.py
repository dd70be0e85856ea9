"""
Module: reimburse_kernel.models.dataset_state
Responsibility: Single-row table holding dataset-level flags.
"""

from __future__ import annotations

from sqlalchemy import Boolean
from sqlalchemy.orm import Mapped, mapped_column

from reimburse_kernel.db.base import Base


class DatasetStateModel(Base):
    """Dataset flags.  At most one row exists."""

    __tablename__ = "dataset_state"

    seeded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
