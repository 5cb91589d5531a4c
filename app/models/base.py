"""
Declarative base shared by every model, plus timestamp helpers.
"""
import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware current UTC time used for all lifecycle timestamps."""
    return datetime.now(timezone.utc)


def new_uuid() -> str:
    return str(uuid.uuid4())
