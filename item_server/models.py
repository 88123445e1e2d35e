"""
SQLAlchemy model backing the document store: one row per item, the item itself kept as JSON text.
"""
from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class ItemDocument(Base):
    __tablename__ = "item_documents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Schemaless: whatever JSON object the client sent, plus server-owned user/createdAt
    document: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utc_now, index=True)
