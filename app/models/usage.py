"""
SQLAlchemy models for the usage ledger.
"""
from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Enum,
    BigInteger,
    Index,
    UniqueConstraint,
    text,
)
import enum

from app.models.base import Base, new_uuid, utcnow


class UsageType(str, enum.Enum):
    """Ledger granularity."""
    DAILY = "daily"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    # Size change of an existing file; many per day, folded like daily rows
    CHANGE = "change"
    # Size of a user's files when their ledger was first seeded; never folded
    BASELINE = "baseline"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class Usage(Base):
    """
    Per-user signed storage delta for one period.

    Daily rows are folded into a monthly row and deleted; monthly rows are
    folded into a yearly row and deleted. A user has at most one baseline
    row, which stays as written. The sum of every row of a user is that
    user's drive usage.
    """
    __tablename__ = "usages"

    id = Column(String(36), primary_key=True, default=new_uuid)
    user_id = Column(String(36), nullable=False, index=True)
    delta = Column(BigInteger, nullable=False)
    period = Column(Date, nullable=False)
    type = Column(
        Enum(UsageType, name="usage_type", values_callable=_enum_values),
        nullable=False,
    )

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        Index(
            "usages_user_id_period_type_unique",
            "user_id",
            "period",
            "type",
            unique=True,
            postgresql_where=text("type IN ('daily', 'monthly', 'yearly', 'baseline')"),
            sqlite_where=text("type IN ('daily', 'monthly', 'yearly', 'baseline')"),
        ),
        Index("usages_type_period_index", "type", "period"),
    )

    def __repr__(self):
        return f"<Usage(user_id={self.user_id}, period={self.period}, type={self.type}, delta={self.delta})>"


class RollupRun(Base):
    """Completion marker of one rollup for one period; the barrier for the next level."""
    __tablename__ = "usage_rollup_runs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    granularity = Column(
        Enum(UsageType, name="usage_type", values_callable=_enum_values),
        nullable=False,
    )
    period = Column(Date, nullable=False)
    rows_written = Column(Integer, default=0, nullable=False)
    completed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("granularity", "period", name="usage_rollup_runs_granularity_period_unique"),
    )

    def __repr__(self):
        return f"<RollupRun(granularity={self.granularity}, period={self.period})>"
