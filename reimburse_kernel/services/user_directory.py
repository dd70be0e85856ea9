"""
reimburse_kernel.services.user_directory -- In-memory user directory.

Responsibility:
    Authenticate a username/password pair against directory records and
    register new records.  Passwords are compared as opaque strings; this
    is not a credential-security component.

Architecture position:
    Kernel > Services.  Implements the ``UserDirectory`` protocol over a
    tuple of ``UserRecord`` values (normally ``Dataset.users``).

Registration rules:
    - username is required and unique.
    - at least one identity document (national id, driver license or
      passport) must be given.
    - fund sources are kept only for coordinators.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import replace

from reimburse_kernel.domain.reimbursement import Role, User, UserRecord
from reimburse_kernel.exceptions import AuthFailedError, InvalidUserError
from reimburse_kernel.logging_config import get_logger

logger = get_logger("services.user_directory")

DEFAULT_PASSWORD = "changeme"


class InMemoryUserDirectory:
    """``UserDirectory`` over a fixed set of records."""

    def __init__(self, records: Iterable[UserRecord]):
        self._records: dict[str, UserRecord] = {r.username: r for r in records}

    def authenticate(self, username: str, password: str) -> User:
        record = self._records.get(username)
        if record is None or record.password != password:
            logger.info("authentication_failed", extra={"username": username})
            raise AuthFailedError(username)
        logger.info(
            "authentication_succeeded",
            extra={"username": username, "role": record.user.role.value},
        )
        return record.user

    def get(self, username: str) -> UserRecord | None:
        return self._records.get(username)

    def records(self) -> tuple[UserRecord, ...]:
        return tuple(self._records.values())

    def register(self, record: UserRecord) -> UserRecord:
        """Validate and normalize a new record, then add it.

        Returns the stored record (name, password and fund sources
        normalized).

        Raises:
            InvalidUserError: missing or duplicate username, or no identity
                document.
        """
        record = normalize_record(record)
        username = record.username
        if not username:
            raise InvalidUserError(username, "username is required")
        if username in self._records:
            raise InvalidUserError(username, "username already exists")
        if not record.has_identity_document:
            raise InvalidUserError(
                username, "provide at least one ID (national, driver, or passport)",
            )
        self._records[username] = record
        logger.info(
            "user_registered",
            extra={"username": username, "role": record.user.role.value},
        )
        return record


def normalize_record(record: UserRecord) -> UserRecord:
    """Apply directory defaults: name falls back to username, blank password
    becomes the default password, non-coordinators carry no fund sources."""
    user = record.user
    username = user.username.strip()
    fund_sources = (
        frozenset(f.strip() for f in user.fund_sources if f.strip())
        if user.role == Role.COORDINATOR
        else frozenset()
    )
    user = replace(
        user,
        username=username,
        name=user.name.strip() or username,
        fund_sources=fund_sources,
    )
    return replace(record, user=user, password=record.password or DEFAULT_PASSWORD)
