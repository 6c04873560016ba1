"""Exceptions raised by the giveaway draw core.

Every error is raised before any state is written, so a failing call leaves
the ledger, the buckets and the correlation table exactly as they were.
"""


class GiveawayError(Exception):
    pass


class InvalidInputs(GiveawayError, ValueError):
    """Malformed arguments, e.g. paired sequences of different lengths."""


class IndexAlreadyUsed(GiveawayError):
    """A bucket already exists under the requested index."""


class InvalidIndex(GiveawayError):
    """Bucket range is malformed, or the bucket does not exist."""


class EmptyLedger(InvalidIndex):
    """A bucket was requested while the entry ledger holds no entries."""


class NotDrawn(GiveawayError):
    """The bucket exists but its randomness has not been delivered yet."""


class EntryOutOfBounds(GiveawayError, IndexError):
    """Ledger position outside ``0 .. count - 1``."""


class EntryLocked(GiveawayError):
    """Ledger slot belongs to a pending bucket and range locking is enabled."""


class AccessDenied(GiveawayError, PermissionError):
    pass


class UnknownRequest(GiveawayError):
    """Fulfillment arrived for a request id that no bucket issued."""


class RequestAlreadyFulfilled(GiveawayError):
    """Fulfillment arrived for a request id that was already consumed."""


class RandomnessGatewayError(GiveawayError, RuntimeError):
    """The randomness gateway returned an unusable response."""


__all__ = [
    "AccessDenied",
    "EmptyLedger",
    "EntryLocked",
    "EntryOutOfBounds",
    "GiveawayError",
    "IndexAlreadyUsed",
    "InvalidIndex",
    "InvalidInputs",
    "NotDrawn",
    "RandomnessGatewayError",
    "RequestAlreadyFulfilled",
    "UnknownRequest",
]
