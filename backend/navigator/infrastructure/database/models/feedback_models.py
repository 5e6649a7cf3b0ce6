"""SQLAlchemy ORM models for the feedback ledger and delivered-query records."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from navigator.infrastructure.database.base import Base


class FeedbackModel(Base):
    """ORM model — maps to the append-only 'feedback' table.

    The autoincrement id doubles as the learning loop's watermark.
    """

    __tablename__ = "feedback"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    query_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    resource_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    helpful: Mapped[bool] = mapped_column(Boolean, nullable=False)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    issue_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<FeedbackModel(id={self.id}, resource_id='{self.resource_id}', helpful={self.helpful})>"


class QueryRecordModel(Base):
    """ORM model — maps to the 'query_records' table."""

    __tablename__ = "query_records"

    query_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    primary_need: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    urgency: Mapped[str] = mapped_column(String(20), nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    embedding: Mapped[list[float]] = mapped_column(JSON, nullable=False, default=list)
    snapshot_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    resource_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    stage: Mapped[str] = mapped_column(String(30), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
