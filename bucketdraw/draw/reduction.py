"""Helpers for reducing oracle randomness onto a bucket's ledger range."""

from __future__ import annotations

from ..errors import InvalidIndex, InvalidInputs
from ..models.column_types import UINT256_MAX


def validate_random_value(random_value: int) -> int:
    """Check that ``random_value`` is an unsigned 256-bit integer."""

    if isinstance(random_value, bool) or not isinstance(random_value, int):
        raise InvalidInputs("random value must be an integer")
    if random_value < 0 or random_value > UINT256_MAX:
        raise InvalidInputs("random value must fit into an unsigned 256-bit integer")
    return random_value


def derive_winner_index(random_value: int, min_index: int, max_index: int) -> int:
    """Map a random word onto the inclusive range ``[min_index, max_index]``.

    Parameters
    ----------
    random_value : int
        Random word delivered by the oracle, ``0 <= random_value < 2**256``.
    min_index : int
        First eligible ledger position.
    max_index : int
        Last eligible ledger position.

    Returns
    -------
    int
        ``min_index + random_value % (max_index - min_index + 1)``.

    Notes
    -----
    The reduction is exactly uniform when the span divides ``2**256``. For any
    realistic span the modulo bias is below ``span / 2**256`` and is accepted.
    """

    validate_random_value(random_value)
    if min_index < 0 or max_index < min_index:
        raise InvalidIndex(f"invalid index range [{min_index}, {max_index}]")
    span = max_index - min_index + 1
    return min_index + random_value % span


__all__ = ["derive_winner_index", "validate_random_value"]
