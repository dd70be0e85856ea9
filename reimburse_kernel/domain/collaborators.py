"""
Collaborator protocols (``reimburse_kernel.domain.collaborators``).

Narrow interfaces the reimbursement core consumes.  Reference
implementations live in ``reimburse_kernel.services`` and
``reimburse_engines.signature``; any object with the same methods can be
plugged into ``reimburse_services.app.ReimbursementApp``.
"""

from __future__ import annotations

from typing import Protocol, Sequence

from reimburse_kernel.domain.dataset import Dataset
from reimburse_kernel.domain.reimbursement import AttachmentRef, User, UserRecord

Point = tuple[float, float]
Stroke = Sequence[Point]


class UserDirectory(Protocol):
    """Authenticates users and yields their role and fund-source scope."""

    def authenticate(self, username: str, password: str) -> User:
        """Return the user, or raise ``AuthFailedError``."""
        ...

    def register(self, record: UserRecord) -> UserRecord:
        """Add a new record, or raise ``InvalidUserError``."""
        ...


class PersistentStore(Protocol):
    """Whole-snapshot load/save of the application dataset."""

    def load_all(self) -> Dataset:
        ...

    def save_all(self, dataset: Dataset) -> None:
        ...


class AttachmentStore(Protocol):
    """Binds opaque binary payloads to references embeddable in a request."""

    def put(self, name: str, payload: bytes, content_type: str = ...) -> AttachmentRef:
        ...

    def get(self, ref: AttachmentRef) -> bytes:
        """Return the stored payload, or raise ``AttachmentNotFoundError``."""
        ...


class SignatureCapture(Protocol):
    """Turns pointer/touch strokes into one opaque image artifact."""

    def capture(self, strokes: Sequence[Stroke]) -> bytes:
        ...
