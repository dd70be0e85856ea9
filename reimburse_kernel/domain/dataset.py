"""
Application dataset snapshot (``reimburse_kernel.domain.dataset``).

The whole persisted state -- users, templates, requests and the seeded
flag -- as one immutable value.  The coordinating service swaps snapshots;
the persistent store loads and saves them whole.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from uuid import UUID

from reimburse_kernel.domain.reimbursement import Request, UserRecord
from reimburse_kernel.domain.templates import TemplateCatalog
from reimburse_kernel.exceptions import RequestNotFoundError


@dataclass(frozen=True)
class Dataset:
    """Immutable snapshot of everything the store persists.

    ``requests`` is ordered newest first.
    """

    users: tuple[UserRecord, ...] = ()
    templates: TemplateCatalog = TemplateCatalog()
    requests: tuple[Request, ...] = ()
    seeded: bool = False

    def find_request(self, request_id: UUID) -> Request:
        for r in self.requests:
            if r.id == request_id:
                return r
        raise RequestNotFoundError(str(request_id))

    def add_request(self, request: Request) -> Dataset:
        return replace(self, requests=(request,) + self.requests)

    def with_request(self, request: Request) -> Dataset:
        """Replace the stored request that has ``request.id``."""
        self.find_request(request.id)
        return replace(
            self,
            requests=tuple(request if r.id == request.id else r for r in self.requests),
        )

    def add_user(self, record: UserRecord) -> Dataset:
        return replace(self, users=(record,) + self.users)

    def with_templates(self, templates: TemplateCatalog) -> Dataset:
        return replace(self, templates=templates)
