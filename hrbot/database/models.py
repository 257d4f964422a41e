"""
Database models for the HR Onboarding Bot.
Uses SQLAlchemy with async support.
"""
from datetime import datetime
from sqlalchemy import BigInteger, DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class StoredValue(Base):
    """One key of a Telegram user's local key-value store."""
    __tablename__ = "stored_values"
    __table_args__ = (
        UniqueConstraint("owner_id", "key", name="uq_stored_values_owner_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    key: Mapped[str] = mapped_column(String(100), nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<StoredValue(owner_id={self.owner_id}, key={self.key})>"
