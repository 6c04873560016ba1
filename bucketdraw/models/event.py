from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, CheckConstraint, DateTime, Integer, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from .base import Base
from .column_types import ID_TYPE

EVENT_KINDS = (
    "bucket_created",
    "winner_drawn",
    "entries_appended",
    "entries_replaced",
)


class DrawEvent(Base):
    """Append-only log of giveaway notifications for off-line observers."""

    __tablename__ = "draw_events"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    actor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    bucket_index: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True, index=True
    )
    winner: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(
            "kind IN ('bucket_created','winner_drawn','entries_appended','entries_replaced')",
            name="kind_enum",
        ),
    )

    @classmethod
    def for_bucket(cls, session: Session, bucket_index: int) -> list["DrawEvent"]:
        """Return the events recorded for ``bucket_index`` in insertion order."""
        stmt = (
            select(cls)
            .where(cls.bucket_index == bucket_index)
            .order_by(cls.id.asc())
        )
        return list(session.scalars(stmt))


__all__ = ["DrawEvent", "EVENT_KINDS"]
