from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .entry import LedgerEntry  # noqa: F401
from .bucket import GiveawayBucket, RandomnessRequest  # noqa: F401
from .event import DrawEvent  # noqa: F401

__all__ = [
    "Base",
    "LedgerEntry",
    "GiveawayBucket",
    "RandomnessRequest",
    "DrawEvent",
]
