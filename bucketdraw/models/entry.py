"""Database model for the giveaway entry ledger."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Integer, String, func, select
from sqlalchemy.orm import Mapped, Session, mapped_column, validates

from .base import Base


class LedgerEntry(Base):
    """One slot of the append-only, index-addressable entry ledger.

    Slots are never deleted or reordered once written; a slot may only be
    overwritten in place by an administrator correction.
    """

    __tablename__ = "ledger_entries"

    position: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=False
    )
    """Zero-based ledger index. Positions are dense: ``0 .. count - 1``."""

    identity: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    """Participant identity (typically a wallet address)."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    """Timestamp when the slot was first appended."""

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    """Timestamp bumped whenever the slot is overwritten."""

    def __init__(
        self,
        *,
        position: int,
        identity: str,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.position = position
        self.identity = identity
        if created_at is not None:
            self.created_at = created_at

    @validates("identity")
    def _normalize_identity(self, _key: str, value: str) -> str:
        if not isinstance(value, str):
            raise TypeError("identity must be a string")
        normalized = value.strip()
        if not normalized:
            raise ValueError("identity must not be empty")
        return normalized

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return "<LedgerEntry(position={pos}, identity={identity})>".format(
            pos=self.position,
            identity=self.identity,
        )

    @classmethod
    def count(cls, session: Session) -> int:
        """Return the current ledger length."""
        return session.scalar(select(func.count()).select_from(cls)) or 0

    @classmethod
    def get_by_position(cls, session: Session, position: int) -> Optional["LedgerEntry"]:
        """Return the slot stored at ``position`` if it exists."""
        return session.get(cls, position)

    @classmethod
    def get_many(cls, session: Session, positions: list[int]) -> dict[int, "LedgerEntry"]:
        """Return the slots for ``positions`` keyed by position."""
        if not positions:
            return {}
        rows = session.scalars(select(cls).where(cls.position.in_(set(positions))))
        return {row.position: row for row in rows}


__all__ = ["LedgerEntry"]
