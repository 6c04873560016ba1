"""Randomness gateway abstractions.

A gateway accepts a request for random words and later delivers exactly one
batch of words for it, tagged with the request identifier, by calling the
consumer's ``fulfill_randomness(caller, request_id, random_values)``.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class RandomnessGateway(Protocol):
    """Minimal interface the draw engine needs from a randomness oracle."""

    def request_randomness(self, num_words: int = 1) -> int:
        """Issue a request and return its non-zero, unique identifier."""
        ...


class RandomnessConsumer(Protocol):
    def fulfill_randomness(
        self, caller: object, request_id: int, random_values: Sequence[int]
    ) -> object:
        ...


class LocalRandomnessGateway:
    """In-process oracle used for development, scripts and tests.

    Request identifiers are sequential starting at ``first_request_id``.
    Words are generated with :func:`secrets.randbits` unless supplied by the
    caller of :meth:`fulfill`.
    """

    def __init__(self, *, first_request_id: int = 1) -> None:
        if first_request_id <= 0:
            raise ValueError("first_request_id must be positive")
        self._next_request_id = first_request_id
        self._outstanding: dict[int, int] = {}
        self._consumer: Optional[RandomnessConsumer] = None

    def attach(self, consumer: RandomnessConsumer) -> None:
        """Register the consumer that receives fulfillment callbacks."""
        self._consumer = consumer

    @property
    def outstanding(self) -> list[int]:
        """Request ids that were issued but not yet delivered."""
        return list(self._outstanding)

    def request_randomness(self, num_words: int = 1) -> int:
        if num_words < 1:
            raise ValueError("num_words must be at least 1")
        request_id = self._next_request_id
        self._next_request_id += 1
        self._outstanding[request_id] = num_words
        logger.debug("Issued local randomness request %s (%s words)", request_id, num_words)
        return request_id

    def fulfill(
        self, request_id: int, random_values: Optional[Sequence[int]] = None
    ):
        """Deliver random words for ``request_id`` to the attached consumer.

        Raises
        ------
        RuntimeError
            If no consumer is attached.
        KeyError
            If ``request_id`` is not outstanding on this gateway.
        """
        if self._consumer is None:
            raise RuntimeError("No randomness consumer attached to the gateway")
        if request_id not in self._outstanding:
            raise KeyError(f"Request {request_id} is not outstanding")
        num_words = self._outstanding[request_id]
        if random_values is None:
            random_values = [secrets.randbits(256) for _ in range(num_words)]
        result = self._consumer.fulfill_randomness(self, request_id, list(random_values))
        # Only forget the request once the consumer accepted it.
        del self._outstanding[request_id]
        return result

    def fulfill_all(self) -> list:
        """Deliver every outstanding request in issue order."""
        return [self.fulfill(request_id) for request_id in sorted(self._outstanding)]


__all__ = ["LocalRandomnessGateway", "RandomnessConsumer", "RandomnessGateway"]
