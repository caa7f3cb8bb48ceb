"""Database layer: declarative base, column types, engine and listeners."""

from recon_kernel.db.base import Base, MoneyAmount, UTCDateTime, UUIDString
from recon_kernel.db.engine import (
    build_engine,
    build_session_factory,
    create_tables,
    drop_tables,
    is_postgres,
    session_scope,
)
from recon_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)

__all__ = [
    "Base",
    "MoneyAmount",
    "UTCDateTime",
    "UUIDString",
    "build_engine",
    "build_session_factory",
    "create_tables",
    "drop_tables",
    "is_postgres",
    "register_immutability_listeners",
    "session_scope",
    "unregister_immutability_listeners",
]
