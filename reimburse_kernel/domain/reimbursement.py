"""
Reimbursement domain types (``reimburse_kernel.domain.reimbursement``).

Responsibility
--------------
Pure value objects for the reimbursement approval chain: users and their
roles, line items, the request itself, its audit trail, and the payloads
that workflow actions carry.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  May import
only from ``reimburse_kernel.exceptions`` and sibling domain modules.

Invariants enforced
-------------------
* ``Request.items`` is never empty (checked at construction).
* ``Request.history`` is a tuple; entries are frozen and never rewritten.
* ``Request.total`` is derived from ``items`` and never stored.
* Item and payment amounts are non-negative finite ``Decimal`` values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

from reimburse_kernel.exceptions import EmptyItemsError, InvalidAmountError


# =========================================================================
# Roles, statuses, actions
# =========================================================================


class Role(str, Enum):
    """Roles a user can hold in the approval chain."""

    ADMIN = "Admin"
    PI = "PI"
    FACILITATOR = "Facilitator"
    COORDINATOR = "Coordinator"
    FIELD_STAFF = "Field Staff"
    FINANCE = "Finance"


class RequestStatus(str, Enum):
    """Request lifecycle states."""

    PENDING_FACILITATOR = "Pending Facilitator"
    PENDING_COORDINATOR = "Pending Coordinator"
    PENDING_PI = "Pending PI"
    APPROVED_FOR_FINANCE = "Approved for Finance"
    PAID = "Paid"
    REJECTED = "Rejected"


TERMINAL_STATUSES: frozenset[RequestStatus] = frozenset({
    RequestStatus.PAID,
    RequestStatus.REJECTED,
})


class Action(str, Enum):
    """Actions a user can attempt on a request."""

    SUBMIT = "submit"
    FORWARD = "forward"
    COORDINATOR_APPROVE = "coordinator_approve"
    PI_APPROVE = "pi_approve"
    MARK_PAID = "mark_paid"
    REJECT = "reject"


# =========================================================================
# Amounts
# =========================================================================


# Amounts at or above 10**15 (or nonzero below 10**-15) are refused.
MAX_AMOUNT_MAGNITUDE = 15


def to_amount(value: Any) -> Decimal:
    """Coerce ``value`` to a non-negative finite Decimal.

    Floats go through ``str`` so ``0.1`` becomes ``Decimal("0.1")``.

    Raises:
        InvalidAmountError: value is None, unparsable, non-finite, negative
            or outside the representable magnitude.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidAmountError(value, "must be a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(value, "must be a number") from None
    if not amount.is_finite():
        raise InvalidAmountError(value, "must be finite")
    if amount < 0:
        raise InvalidAmountError(value, "must not be negative")
    if amount and amount.adjusted() >= MAX_AMOUNT_MAGNITUDE:
        raise InvalidAmountError(value, "too large")
    if amount and amount.adjusted() < -MAX_AMOUNT_MAGNITUDE:
        raise InvalidAmountError(value, "too small")
    return amount


def format_amount(amount: Decimal) -> str:
    """Render an amount without exponent or trailing zeros (``500``, ``12.5``)."""
    normalized = amount.normalize()
    return format(normalized, "f")


# =========================================================================
# Users
# =========================================================================


@dataclass(frozen=True)
class User:
    """An authenticated actor.

    ``fund_sources`` only matters for coordinators: it is the set of funders
    whose requests they may see and approve.  A coordinator with no fund
    sources can approve nothing.
    """

    id: str
    role: Role
    name: str
    username: str = ""
    fund_sources: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if not isinstance(self.fund_sources, frozenset):
            object.__setattr__(self, "fund_sources", frozenset(self.fund_sources))

    def covers_funder(self, funder: str) -> bool:
        return funder in self.fund_sources


@dataclass(frozen=True)
class UserRecord:
    """A user directory entry: the user plus credentials and contact data."""

    user: User
    password: str
    email: str = ""
    phone: str = ""
    national_id: str = ""
    driver_license: str = ""
    passport: str = ""

    @property
    def username(self) -> str:
        return self.user.username

    @property
    def has_identity_document(self) -> bool:
        return bool(self.national_id or self.driver_license or self.passport)


# =========================================================================
# Items, history, attachments
# =========================================================================


def _freeze(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class Item:
    """A single reimbursable line on a request. Immutable after submission."""

    id: UUID
    category: str
    amount: Decimal
    fields: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_amount(self.amount))
        object.__setattr__(self, "fields", _freeze(self.fields))


@dataclass(frozen=True)
class HistoryEntry:
    """One audit-trail fact: who did what, in which role, and when."""

    who: str
    role: str
    action: str
    at: datetime


@dataclass(frozen=True)
class AttachmentRef:
    """Opaque reference to a payload held by the attachment store."""

    ref_id: UUID
    name: str
    content_type: str = "application/octet-stream"


# =========================================================================
# Request
# =========================================================================


@dataclass(frozen=True)
class Request:
    """Immutable snapshot of a reimbursement request.

    Every accepted mutation produces a new snapshot with ``version`` + 1.
    Only the workflow engine changes ``status``, and it appends exactly one
    ``history`` entry when it does.
    """

    id: UUID
    created_at: datetime
    created_by: str
    created_by_name: str
    items: tuple[Item, ...]
    funder: str
    program: str = ""
    notes: str = ""
    status: RequestStatus = RequestStatus.PENDING_FACILITATOR
    history: tuple[HistoryEntry, ...] = ()
    attachments: tuple[AttachmentRef, ...] = ()
    approval_letter: str | None = None
    signatures: Mapping[str, bytes] = field(default_factory=dict)
    reimbursed: Decimal = Decimal("0")
    version: int = 1

    def __post_init__(self) -> None:
        if not self.items:
            raise EmptyItemsError()
        object.__setattr__(self, "items", tuple(self.items))
        object.__setattr__(self, "history", tuple(self.history))
        object.__setattr__(self, "attachments", tuple(self.attachments))
        object.__setattr__(self, "signatures", _freeze(self.signatures))
        object.__setattr__(self, "reimbursed", to_amount(self.reimbursed))

    @property
    def total(self) -> Decimal:
        return sum((item.amount for item in self.items), Decimal("0"))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


# =========================================================================
# Builder and action inputs
# =========================================================================


@dataclass(frozen=True)
class DraftItem:
    """An item as entered on the request form, before submission."""

    category: str
    amount: Any
    fields: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class RequestMeta:
    """Request-level form values."""

    funder: str
    program: str = "General"
    notes: str = ""


@dataclass(frozen=True)
class ActionPayload:
    """Per-action inputs.

    ``approval_letter`` is read by PI approval, ``paid_amount`` by mark-paid
    and ``reason`` by reject.  Fields an action does not use are ignored.
    """

    approval_letter: str | None = None
    paid_amount: Any = None
    reason: str | None = None
