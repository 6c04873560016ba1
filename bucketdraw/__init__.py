"""Giveaway buckets drawn from verifiable oracle randomness."""

__version__ = "0.1.0"
