"""
Module: reimburse_kernel.models.template
Responsibility: ORM persistence for template catalog fields.

One row per (category, field).  ``category_position`` and
``field_position`` reproduce the catalog's ordering on load.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from reimburse_kernel.db.base import Base

if TYPE_CHECKING:
    from reimburse_kernel.domain.templates import FieldDescriptor, TemplateCatalog


class TemplateFieldModel(Base):
    """Persistent template field."""

    __tablename__ = "template_fields"

    __table_args__ = (
        UniqueConstraint("category", "key", name="uq_template_fields_category_key"),
        CheckConstraint(
            "field_type IN ('text', 'number', 'date', 'textarea')",
            name="ck_template_fields_valid_type",
        ),
    )

    category: Mapped[str] = mapped_column(String(100), nullable=False)
    category_position: Mapped[int] = mapped_column(Integer, nullable=False)
    field_position: Mapped[int] = mapped_column(Integer, nullable=False)
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    label: Mapped[str] = mapped_column(String(200), nullable=False)
    field_type: Mapped[str] = mapped_column(String(20), nullable=False)

    def __repr__(self) -> str:
        return f"<TemplateField {self.category}.{self.key} ({self.field_type})>"

    def to_dto(self) -> FieldDescriptor:
        from reimburse_kernel.domain.templates import FieldDescriptor, FieldType

        return FieldDescriptor(
            key=self.key,
            label=self.label,
            type=FieldType(self.field_type),
        )


def catalog_to_models(catalog: TemplateCatalog) -> list[TemplateFieldModel]:
    """Flatten a catalog into rows, recording both orderings."""
    rows: list[TemplateFieldModel] = []
    for cat_pos, (category, fields) in enumerate(catalog.entries):
        for field_pos, f in enumerate(fields):
            rows.append(
                TemplateFieldModel(
                    category=category,
                    category_position=cat_pos,
                    field_position=field_pos,
                    key=f.key,
                    label=f.label,
                    field_type=f.type.value,
                )
            )
    return rows


def catalog_from_models(rows: list[TemplateFieldModel]) -> TemplateCatalog:
    """Rebuild a catalog from rows in any order."""
    from reimburse_kernel.domain.templates import TemplateCatalog

    ordered = sorted(rows, key=lambda r: (r.category_position, r.field_position))
    grouped: dict[str, list[FieldDescriptor]] = {}
    for row in ordered:
        grouped.setdefault(row.category, []).append(row.to_dto())
    return TemplateCatalog.from_mapping(grouped)
