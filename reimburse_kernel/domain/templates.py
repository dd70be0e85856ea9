"""
Template catalog (``reimburse_kernel.domain.templates``).

Maps a spending category to the ordered list of form fields an item of
that category carries.  The catalog is an immutable value: ``add_field``
returns a new catalog.  Items keep the field keys they were created with;
changing a template never rewrites existing items.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from reimburse_kernel.exceptions import InvalidFieldTypeError, ValidationError


class FieldType(str, Enum):
    """Input types a template field can declare."""

    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    TEXTAREA = "textarea"

    @classmethod
    def parse(cls, value: "str | FieldType") -> "FieldType":
        if isinstance(value, FieldType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidFieldTypeError(str(value)) from None


@dataclass(frozen=True)
class FieldDescriptor:
    """One form field: storage key, display label and input type."""

    key: str
    label: str
    type: FieldType = FieldType.TEXT

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", FieldType.parse(self.type))
        if not self.key:
            raise ValidationError("Template field key must be non-empty")


@dataclass(frozen=True)
class TemplateCatalog:
    """Ordered category -> fields mapping.

    ``entries`` preserves category insertion order, and each category keeps
    its fields in the order they were added.
    """

    entries: tuple[tuple[str, tuple[FieldDescriptor, ...]], ...] = ()

    @classmethod
    def from_mapping(
        cls, mapping: dict[str, list[FieldDescriptor] | tuple[FieldDescriptor, ...]]
    ) -> TemplateCatalog:
        return cls(tuple((cat, tuple(fields)) for cat, fields in mapping.items()))

    def categories(self) -> tuple[str, ...]:
        return tuple(cat for cat, _ in self.entries)

    def get_fields(self, category: str) -> tuple[FieldDescriptor, ...]:
        """Fields for ``category`` in order; empty for an unknown category."""
        for cat, fields in self.entries:
            if cat == category:
                return fields
        return ()

    def __contains__(self, category: object) -> bool:
        return category in self.categories()

    def add_field(self, category: str, descriptor: FieldDescriptor) -> TemplateCatalog:
        """Return a catalog with ``descriptor`` added to ``category``.

        A field whose key already exists in the category is replaced in
        place; otherwise it is appended.  An unknown category is created at
        the end of the catalog.
        """
        fields = list(self.get_fields(category))
        for i, existing in enumerate(fields):
            if existing.key == descriptor.key:
                fields[i] = descriptor
                break
        else:
            fields.append(descriptor)

        if category in self:
            entries = tuple(
                (cat, tuple(fields) if cat == category else existing)
                for cat, existing in self.entries
            )
        else:
            entries = self.entries + ((category, tuple(fields)),)
        return TemplateCatalog(entries)

    def unknown_keys(self, category: str, keys: "set[str] | frozenset[str]") -> frozenset[str]:
        """Keys not declared by the category's current template."""
        declared = {f.key for f in self.get_fields(category)}
        return frozenset(k for k in keys if k not in declared)
