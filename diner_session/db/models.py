"""Database models."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class StoredValue(Base):
    """Durable key/value entry (the client's local storage)."""

    __tablename__ = "device_storage"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, index=True, nullable=False)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class CookieRecord(Base):
    """Persisted cookie jar entry."""

    __tablename__ = "cookie_jar"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, index=True, nullable=False)
    value = Column(Text, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    path = Column(String, nullable=False, default="/")
    same_site = Column(String, nullable=False, default="Lax")
