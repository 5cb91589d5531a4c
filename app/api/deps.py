"""
Shared FastAPI dependencies.
"""
from fastapi import Depends
from sqlalchemy.orm import Session

from app.db import SessionLocal, get_db
from app.lifecycle import LifecycleService
from app.reclamation import ReclamationOutbox
from app.usage import UsageLedger


def get_lifecycle_service(db: Session = Depends(get_db)) -> LifecycleService:
    return LifecycleService(db)


def get_outbox(db: Session = Depends(get_db)) -> ReclamationOutbox:
    return ReclamationOutbox(db)


def get_session_factory():
    """Session factory for work that opens its own sessions (rollups)."""
    return SessionLocal


def get_usage_ledger(session_factory=Depends(get_session_factory)) -> UsageLedger:
    return UsageLedger(session_factory)
