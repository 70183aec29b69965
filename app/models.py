"""
Database models for the booking cache
SQLAlchemy ORM model backing the durable key-value store
"""
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CacheRecord(Base):
    """
    Cache entry - one serialized value per key
    The booking cache uses a single fixed key
    """
    __tablename__ = "cache_entries"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<CacheRecord(key='{self.key}', updated_at={self.updated_at})>"
