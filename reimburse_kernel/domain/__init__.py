"""
Pure domain layer.

This module contains pure value objects and domain logic with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from reimburse_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from reimburse_kernel.domain.dataset import Dataset
from reimburse_kernel.domain.reimbursement import (
    TERMINAL_STATUSES,
    Action,
    ActionPayload,
    AttachmentRef,
    DraftItem,
    HistoryEntry,
    Item,
    Request,
    RequestMeta,
    RequestStatus,
    Role,
    User,
    UserRecord,
    format_amount,
    to_amount,
)
from reimburse_kernel.domain.templates import FieldDescriptor, FieldType, TemplateCatalog
from reimburse_kernel.domain.workflow import Guard, Transition, Workflow

__all__ = [
    "Action",
    "ActionPayload",
    "AttachmentRef",
    "Clock",
    "Dataset",
    "DeterministicClock",
    "DraftItem",
    "FieldDescriptor",
    "FieldType",
    "Guard",
    "HistoryEntry",
    "Item",
    "Request",
    "RequestMeta",
    "RequestStatus",
    "Role",
    "SystemClock",
    "TERMINAL_STATUSES",
    "TemplateCatalog",
    "Transition",
    "User",
    "UserRecord",
    "Workflow",
    "format_amount",
    "to_amount",
]
