"""Column types shared by the giveaway models."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.types import TypeDecorator

# Use BigInteger by default, with a SQLite-safe Integer variant for autoincrement PKs.
ID_TYPE = BigInteger().with_variant(Integer, "sqlite")

UINT256_MAX = (1 << 256) - 1


class Uint256(TypeDecorator):
    """Unsigned 256-bit integer persisted as decimal text.

    Oracle request identifiers, random words and nominal amounts do not fit
    into any native SQL integer type, so they are stored as strings and
    converted back to ``int`` on load.
    """

    impl = String(78)
    cache_ok = True

    def process_bind_param(self, value: Optional[int], dialect) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"Uint256 columns only accept int values, got {value!r}")
        if value < 0 or value > UINT256_MAX:
            raise ValueError(f"{value} does not fit into an unsigned 256-bit integer")
        return str(value)

    def process_result_value(self, value: Optional[str], dialect) -> Optional[int]:
        if value is None:
            return None
        return int(value)


__all__ = ["ID_TYPE", "UINT256_MAX", "Uint256"]
