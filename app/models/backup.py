"""
SQLAlchemy model for device backups.

Rows are written by the backup product; this service only sums them for the
``backup`` figure of a user's usage.
"""
from sqlalchemy import Column, Integer, String, DateTime, BigInteger

from app.models.base import Base, utcnow


class Backup(Base):
    __tablename__ = "backups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), nullable=False, index=True)
    network_file_id = Column(String(24), nullable=True)
    size = Column(BigInteger, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Backup(id={self.id}, user_id={self.user_id}, size={self.size})>"
