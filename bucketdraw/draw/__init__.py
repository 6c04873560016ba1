"""Bucket creation, randomness correlation and winner derivation."""

from .engine import DrawEngine, DrawNotification
from .gateway import LocalRandomnessGateway, RandomnessConsumer, RandomnessGateway
from .reduction import derive_winner_index, validate_random_value

__all__ = [
    "DrawEngine",
    "DrawNotification",
    "LocalRandomnessGateway",
    "RandomnessConsumer",
    "RandomnessGateway",
    "derive_winner_index",
    "validate_random_value",
]
