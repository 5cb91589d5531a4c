"""
Database module for SQLAlchemy session management.
"""
from app.db.session import (
    get_db,
    init_db,
    check_db_connection,
    engine,
    SessionLocal,
    transaction,
    insert_ignore,
    is_transient_error,
)

__all__ = [
    "get_db",
    "init_db",
    "check_db_connection",
    "engine",
    "SessionLocal",
    "transaction",
    "insert_ignore",
    "is_transient_error",
]
