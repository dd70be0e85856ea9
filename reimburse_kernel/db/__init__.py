"""Database layer - engine, base class, and portable column types."""

from reimburse_kernel.db.base import Base, DecimalString, UTCDateTime, UUIDString
from reimburse_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "Base",
    "DecimalString",
    "UTCDateTime",
    "UUIDString",
    "create_tables",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "session_scope",
]
