"""
reimburse_engines.visibility -- Role-scoped request visibility.

Responsibility:
    Decide which requests a user may see, and apply the dashboard's
    funder/status/program filters.  Pure functions; results are derived
    on every call and never cached.

Architecture position:
    Engines -- pure decision layer, zero I/O.
    May only import reimburse_kernel/domain types.

Scoping rules:
    - Admin, PI, Finance, Facilitator: every request.
    - Coordinator: requests whose funder is one of their fund sources.
    - Field Staff: requests they created.
    - Any other role: nothing.
"""

from __future__ import annotations

from collections.abc import Iterable

from reimburse_engines.tracer import traced_engine
from reimburse_kernel.domain.reimbursement import Request, RequestStatus, Role, User

_SEE_ALL_ROLES = frozenset({Role.ADMIN, Role.PI, Role.FINANCE, Role.FACILITATOR})

ALL = "All"


def can_see(request: Request, actor: User) -> bool:
    if actor.role in _SEE_ALL_ROLES:
        return True
    if actor.role == Role.COORDINATOR:
        return actor.covers_funder(request.funder)
    if actor.role == Role.FIELD_STAFF:
        return request.created_by == actor.id
    return False


@traced_engine("visibility", "1.0")
def visible_requests(requests: Iterable[Request], actor: User) -> tuple[Request, ...]:
    """The subsequence of ``requests`` visible to ``actor``, order preserved."""
    return tuple(r for r in requests if can_see(r, actor))


def filter_requests(
    requests: Iterable[Request],
    *,
    funder: str | None = None,
    status: RequestStatus | str | None = None,
    program: str | None = None,
) -> tuple[Request, ...]:
    """Dashboard filters.  ``None`` or ``"All"`` disables a filter.

    ``program`` matches case-insensitively as a substring.
    """
    if funder == ALL:
        funder = None
    if status == ALL:
        status = None
    if status is not None:
        status = RequestStatus(status)
    needle = (program or "").strip().lower()

    return tuple(
        r for r in requests
        if (funder is None or r.funder == funder)
        and (status is None or r.status == status)
        and (not needle or needle in r.program.lower())
    )
