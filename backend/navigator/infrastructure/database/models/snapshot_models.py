"""SQLAlchemy ORM model for published scoring snapshots."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from navigator.infrastructure.database.base import Base


class ScoringSnapshotModel(Base):
    """ORM model — maps to the insert-only 'scoring_snapshots' table."""

    __tablename__ = "scoring_snapshots"

    version: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    feedback_watermark: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    embedding_watermark: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)

    def __repr__(self) -> str:
        return f"<ScoringSnapshotModel(version={self.version})>"
