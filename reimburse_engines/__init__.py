"""
Module: reimburse_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    decision engines.  This is the canonical import surface for the
    coordinating layer (reimburse_services).

Architecture position:
    Engines -- pure decision layer, zero I/O.
    May only import reimburse_kernel domain types, exceptions and logging.
    MUST NOT import reimburse_services or reimburse_kernel.services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``.  Timestamps are passed
      in as explicit parameters by the caller.
    - Decimal-only arithmetic for amounts.
    - Determinism: identical inputs always produce identical outputs
      (apart from freshly generated identifiers).

Usage:
    from reimburse_engines import attempt, build_request, visible_requests
"""

from reimburse_engines.request_builder import build_request
from reimburse_engines.signature import StrokeRasterizer
from reimburse_engines.visibility import can_see, filter_requests, visible_requests
from reimburse_engines.workflow_engine import (
    DEFAULT_LETTER_TEMPLATE,
    LETTER_PLACEHOLDERS,
    TransitionResult,
    attach_file,
    attempt,
    default_approval_letter,
    is_permitted,
    letter_template_placeholders,
    permitted_actions,
    sign_request,
)

__all__ = [
    "DEFAULT_LETTER_TEMPLATE",
    "LETTER_PLACEHOLDERS",
    "StrokeRasterizer",
    "TransitionResult",
    "attach_file",
    "attempt",
    "build_request",
    "can_see",
    "default_approval_letter",
    "filter_requests",
    "is_permitted",
    "letter_template_placeholders",
    "permitted_actions",
    "sign_request",
    "visible_requests",
]
