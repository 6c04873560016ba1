"""Authorization policies guarding the administrator entry points."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from .errors import AccessDenied, InvalidInputs

logger = logging.getLogger(__name__)


def normalize_account(account: Optional[str]) -> str:
    """Trim and lower-case an account identifier for comparison.

    Raises
    ------
    InvalidInputs
        If ``account`` is not a non-empty string.
    """
    if not isinstance(account, str):
        raise InvalidInputs("account must be a string")
    normalized = account.strip().lower()
    if not normalized:
        raise InvalidInputs("account must not be empty")
    return normalized


class AuthorizationPolicy(Protocol):
    """Capability check performed before every mutating operation."""

    lock_pending_ranges: bool

    def require_admin(self, actor: Optional[str]) -> None:
        """Raise :class:`AccessDenied` unless ``actor`` may administer draws."""
        ...


class SingleAdminPolicy:
    """Grant every administrative capability to exactly one account.

    Parameters
    ----------
    admin : str
        Account allowed to curate entries and create buckets.
    lock_pending_ranges : bool, default: False
        When ``True`` ledger slots inside the range of a pending bucket can no
        longer be overwritten. The default allows it (and logs a warning), so
        administrators remain able to correct entries after a request went out.
    """

    def __init__(self, admin: str, *, lock_pending_ranges: bool = False) -> None:
        self._admin = normalize_account(admin)
        self.lock_pending_ranges = lock_pending_ranges

    @property
    def admin(self) -> str:
        return self._admin

    def is_admin(self, actor: Optional[str]) -> bool:
        try:
            return normalize_account(actor) == self._admin
        except InvalidInputs:
            return False

    def require_admin(self, actor: Optional[str]) -> None:
        if not self.is_admin(actor):
            logger.warning("Rejected administrative call from %r", actor)
            raise AccessDenied(f"{actor!r} is not the giveaway administrator")

    def transfer_admin(self, actor: Optional[str], new_admin: str) -> None:
        """Hand the administrator role over to ``new_admin``."""
        self.require_admin(actor)
        new_account = normalize_account(new_admin)
        logger.info("Administrator role transferred to %s", new_account)
        self._admin = new_account


class ReadOnlyPolicy:
    """Policy used when no administrator is configured; every mutation is denied."""

    lock_pending_ranges = False

    def require_admin(self, actor: Optional[str]) -> None:
        raise AccessDenied("no giveaway administrator is configured")


__all__ = ["AuthorizationPolicy", "ReadOnlyPolicy", "SingleAdminPolicy", "normalize_account"]
