"""Database models for giveaway buckets and their randomness requests."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from .base import Base
from .column_types import Uint256


class GiveawayBucket(Base):
    """A contiguous range of ledger entries that produces exactly one winner."""

    __tablename__ = "giveaway_buckets"

    bucket_index: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=False
    )
    """Administrator chosen bucket key."""

    request_id: Mapped[int] = mapped_column(Uint256, nullable=False, unique=True)
    """Randomness request issued when the bucket was created. Never zero."""

    min_index: Mapped[int] = mapped_column(Integer, nullable=False)
    """First ledger position (inclusive) eligible for this bucket."""

    max_index: Mapped[int] = mapped_column(Integer, nullable=False)
    """Last ledger position (inclusive) eligible for this bucket."""

    amount: Mapped[int] = mapped_column(Uint256, nullable=False, default=0)
    """Nominal giveaway amount. Recorded only; settlement happens elsewhere."""

    claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    """Settlement flag maintained by an external payout process."""

    winner: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Winning identity; ``None`` until the randomness request is fulfilled."""

    winner_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    """Ledger position the random value was reduced to."""

    draw_timestamp: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Time of fulfillment; ``None`` means the bucket is still pending."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp when the bucket was created."""

    request: Mapped[Optional["RandomnessRequest"]] = relationship(
        back_populates="bucket"
    )
    """Correlation row of the randomness request."""

    __table_args__ = (
        CheckConstraint("min_index >= 0", name="min_index_non_negative"),
        CheckConstraint("max_index >= min_index", name="index_range_ordered"),
        Index("ix_giveaway_buckets_draw_timestamp", "draw_timestamp"),
    )

    def __init__(
        self,
        *,
        bucket_index: int,
        request_id: int,
        min_index: int,
        max_index: int,
        amount: int = 0,
        claimed: bool = False,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.bucket_index = bucket_index
        self.request_id = request_id
        self.min_index = min_index
        self.max_index = max_index
        self.amount = amount
        self.claimed = claimed
        self.winner = None
        self.winner_index = None
        self.draw_timestamp = None
        if created_at is not None:
            self.created_at = created_at

    @property
    def is_drawn(self) -> bool:
        """``True`` once a winner has been recorded."""
        return self.winner is not None

    @property
    def span(self) -> int:
        """Number of ledger entries eligible for this bucket."""
        return self.max_index - self.min_index + 1

    def covers(self, position: int) -> bool:
        """Return whether ledger ``position`` lies inside this bucket's range."""
        return self.min_index <= position <= self.max_index

    def to_dict(self) -> dict:
        """Serialize the bucket into JSON friendly primitives."""
        return {
            "bucket_index": self.bucket_index,
            "request_id": str(self.request_id),
            "min_index": self.min_index,
            "max_index": self.max_index,
            "amount": str(self.amount),
            "claimed": self.claimed,
            "winner": self.winner,
            "winner_index": self.winner_index,
            "draw_timestamp": (
                self.draw_timestamp.isoformat() if self.draw_timestamp else None
            ),
        }

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<GiveawayBucket(bucket_index={idx}, range=[{lo}, {hi}], request_id={rid}, winner={winner})>".format(
            idx=self.bucket_index,
            lo=self.min_index,
            hi=self.max_index,
            rid=self.request_id,
            winner=self.winner,
        )

    @classmethod
    def get_by_index(cls, session: Session, bucket_index: int) -> Optional["GiveawayBucket"]:
        """Return the bucket stored under ``bucket_index`` if it exists."""
        return session.get(cls, bucket_index)

    @classmethod
    def pending(cls, session: Session) -> list["GiveawayBucket"]:
        """Return every bucket still waiting for randomness, oldest first."""
        stmt = (
            select(cls)
            .where(cls.winner.is_(None))
            .order_by(cls.created_at.asc(), cls.bucket_index.asc())
        )
        return list(session.scalars(stmt))


class RandomnessRequest(Base):
    """Correlates an outstanding oracle request with the bucket that issued it."""

    __tablename__ = "randomness_requests"

    request_id: Mapped[int] = mapped_column(Uint256, primary_key=True)
    """Identifier returned by the randomness gateway."""

    bucket_index: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("giveaway_buckets.bucket_index", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    """Bucket waiting for this request."""

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp when the request was issued."""

    fulfilled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    """Consumption marker. Set exactly once, when the callback is accepted."""

    random_value: Mapped[Optional[int]] = mapped_column(Uint256, nullable=True)
    """First random word delivered for this request."""

    bucket: Mapped["GiveawayBucket"] = relationship(back_populates="request")
    """Bucket this request was issued for."""

    def __init__(
        self,
        *,
        request_id: int,
        bucket_index: int,
        requested_at: Optional[datetime] = None,
    ) -> None:
        self.request_id = request_id
        self.bucket_index = bucket_index
        self.fulfilled_at = None
        self.random_value = None
        if requested_at is not None:
            self.requested_at = requested_at

    @property
    def is_consumed(self) -> bool:
        return self.fulfilled_at is not None

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<RandomnessRequest(request_id={rid}, bucket_index={idx}, fulfilled_at={at})>".format(
            rid=self.request_id,
            idx=self.bucket_index,
            at=self.fulfilled_at,
        )

    @classmethod
    def get_by_request_id(cls, session: Session, request_id: int) -> Optional["RandomnessRequest"]:
        """Return the correlation row for ``request_id`` if it exists."""
        return session.get(cls, request_id)

    @classmethod
    def outstanding(cls, session: Session) -> list["RandomnessRequest"]:
        """Return requests that have not been fulfilled yet, oldest first."""
        stmt = (
            select(cls)
            .where(cls.fulfilled_at.is_(None))
            .order_by(cls.requested_at.asc(), cls.bucket_index.asc())
        )
        return list(session.scalars(stmt))


__all__ = ["GiveawayBucket", "RandomnessRequest"]
