"""Engine driving the giveaway bucket lifecycle."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .gateway import RandomnessGateway
from .reduction import derive_winner_index, validate_random_value
from ..access import AuthorizationPolicy
from ..errors import (
    AccessDenied,
    EmptyLedger,
    EntryLocked,
    EntryOutOfBounds,
    IndexAlreadyUsed,
    InvalidIndex,
    InvalidInputs,
    NotDrawn,
    RandomnessGatewayError,
    RequestAlreadyFulfilled,
    UnknownRequest,
)
from ..models import DrawEvent, GiveawayBucket, LedgerEntry, RandomnessRequest
from ..models.column_types import UINT256_MAX

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DrawNotification:
    """Notification delivered to subscribers after a successful mutation.

    Attributes
    ----------
    kind : str
        One of ``"bucket_created"``, ``"winner_drawn"``, ``"entries_appended"``
        or ``"entries_replaced"``.
    bucket_index : Optional[int]
        Bucket the notification refers to, ``None`` for ledger notifications.
    winner : Optional[str]
        Winning identity for ``"winner_drawn"`` notifications.
    details : dict
        Additional JSON friendly payload, also stored on the event row.
    """

    kind: str
    bucket_index: Optional[int] = None
    winner: Optional[str] = None
    details: dict = field(default_factory=dict)


Listener = Callable[[DrawNotification], None]


def _normalize_identity(identity: str) -> str:
    if not isinstance(identity, str):
        raise InvalidInputs("entry identities must be strings")
    normalized = identity.strip()
    if not normalized:
        raise InvalidInputs("entry identities must not be empty")
    return normalized


def _require_int(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputs(f"{name} must be an integer")
    return value


class DrawEngine:
    """Engine that curates the entry ledger and turns randomness into winners."""

    def __init__(
        self,
        session: Session,
        gateway: RandomnessGateway,
        policy: AuthorizationPolicy,
    ) -> None:
        """Create a draw engine bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for lookups and persistence. The
            engine only flushes; committing is up to the caller.
        gateway : RandomnessGateway
            Oracle used to request randomness. It is also the only caller
            allowed to deliver fulfillments.
        policy : AuthorizationPolicy
            Administrator gate consulted before every mutating operation.
        """

        self._session = session
        self._gateway = gateway
        self._policy = policy
        self._listeners: list[Listener] = []

    @property
    def gateway(self) -> RandomnessGateway:
        return self._gateway

    def subscribe(self, listener: Listener) -> Listener:
        """Register ``listener`` to receive :class:`DrawNotification` objects."""
        self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    # -------- entry ledger --------
    def entry_count(self) -> int:
        """Return the number of slots in the entry ledger."""
        return LedgerEntry.count(self._session)

    def get_entry(self, index: int) -> str:
        """Return the identity stored at ledger position ``index``.

        Raises
        ------
        EntryOutOfBounds
            If ``index`` is negative or not below :meth:`entry_count`.
        """
        _require_int(index, "index")
        entry = LedgerEntry.get_by_position(self._session, index) if index >= 0 else None
        if entry is None:
            raise EntryOutOfBounds(
                f"ledger index {index} is out of bounds (length {self.entry_count()})"
            )
        return entry.identity

    def append_entries(self, actor: Optional[str], identities: Iterable[str]) -> range:
        """Append ``identities`` to the end of the ledger in order.

        No deduplication is performed; the same identity may appear any number
        of times.

        Returns
        -------
        range
            Ledger positions that were written.
        """

        self._policy.require_admin(actor)
        normalized = [_normalize_identity(identity) for identity in identities]
        start = self.entry_count()
        if not normalized:
            return range(start, start)

        positions = range(start, start + len(normalized))
        with self._session.begin_nested():
            for offset, identity in enumerate(normalized):
                self._session.add(LedgerEntry(position=start + offset, identity=identity))
            self._emit(
                "entries_appended",
                actor=actor,
                details={"start": start, "count": len(normalized)},
            )
        logger.info("Appended %d entries at positions %d..%d", len(normalized), start, positions[-1])
        return positions

    def replace_entries(
        self,
        actor: Optional[str],
        indices: Sequence[int],
        identities: Sequence[str],
    ) -> None:
        """Overwrite ledger slots in place.

        Parameters
        ----------
        actor : Optional[str]
            Account performing the correction; must be the administrator.
        indices : Sequence[int]
            Ledger positions to overwrite.
        identities : Sequence[str]
            Replacement identities, paired with ``indices`` by position.

        Raises
        ------
        InvalidInputs
            If the two sequences differ in length or an identity is empty.
        EntryOutOfBounds
            If any index is outside the current ledger.
        EntryLocked
            If range locking is enabled and a slot belongs to a pending bucket.

        Notes
        -----
        Overwriting a slot referenced by a pending bucket changes who can win
        that bucket after its randomness was requested. This is allowed unless
        the policy enables ``lock_pending_ranges``; a warning is logged either
        way.
        """

        self._policy.require_admin(actor)
        indices = list(indices)
        identities = list(identities)
        if len(indices) != len(identities):
            raise InvalidInputs(
                f"got {len(indices)} indices but {len(identities)} identities"
            )
        normalized = [_normalize_identity(identity) for identity in identities]
        length = self.entry_count()
        for index in indices:
            _require_int(index, "index")
            if index < 0 or index >= length:
                raise EntryOutOfBounds(
                    f"ledger index {index} is out of bounds (length {length})"
                )
        if not indices:
            return

        touched = sorted(set(indices))
        affected = [
            bucket.bucket_index
            for bucket in GiveawayBucket.pending(self._session)
            if any(bucket.covers(index) for index in touched)
        ]
        if affected:
            if self._policy.lock_pending_ranges:
                raise EntryLocked(
                    f"entries {touched} are referenced by pending buckets {affected}"
                )
            logger.warning(
                "Replacing entries %s referenced by pending buckets %s", touched, affected
            )

        with self._session.begin_nested():
            slots = LedgerEntry.get_many(self._session, touched)
            for index, identity in zip(indices, normalized):
                slots[index].identity = identity
            self._emit(
                "entries_replaced",
                actor=actor,
                details={"positions": touched, "pending_buckets": affected},
            )

    # -------- bucket reads --------
    def get_bucket(self, bucket_index: int) -> GiveawayBucket:
        """Return the bucket stored under ``bucket_index``.

        Raises
        ------
        InvalidIndex
            If no bucket was created under ``bucket_index``.
        """
        bucket = None
        if not isinstance(bucket_index, bool) and isinstance(bucket_index, int):
            bucket = GiveawayBucket.get_by_index(self._session, bucket_index)
        if bucket is None or not bucket.request_id:
            raise InvalidIndex(f"bucket {bucket_index!r} does not exist")
        return bucket

    def get_winner(self, bucket_index: int) -> str:
        """Return the winner of ``bucket_index``.

        Raises
        ------
        InvalidIndex
            If the bucket does not exist.
        NotDrawn
            If the bucket's randomness has not been delivered yet.
        """
        bucket = self.get_bucket(bucket_index)
        if bucket.winner is None:
            raise NotDrawn(f"bucket {bucket_index} has not been drawn yet")
        return bucket.winner

    def list_buckets(self, *, pending: Optional[bool] = None) -> list[GiveawayBucket]:
        """Return buckets ordered by index, optionally filtered by draw state."""
        stmt = select(GiveawayBucket).order_by(GiveawayBucket.bucket_index.asc())
        if pending is True:
            stmt = stmt.where(GiveawayBucket.winner.is_(None))
        elif pending is False:
            stmt = stmt.where(GiveawayBucket.winner.is_not(None))
        return list(self._session.scalars(stmt))

    def list_stale_pending(self, older_than: timedelta) -> list[GiveawayBucket]:
        """Return pending buckets whose request is older than ``older_than``.

        Requests are never timed out by the engine; this query exists so that
        an operator can notice an oracle that stopped delivering.
        """
        cutoff = datetime.now(timezone.utc) - older_than
        stmt = (
            select(GiveawayBucket)
            .where(
                GiveawayBucket.winner.is_(None),
                GiveawayBucket.created_at <= cutoff,
            )
            .order_by(GiveawayBucket.created_at.asc())
        )
        return list(self._session.scalars(stmt))

    # -------- creation path --------
    def create_bucket(
        self,
        actor: Optional[str],
        bucket_index: int,
        amount: int,
        min_index: int,
        max_index: int,
    ) -> GiveawayBucket:
        """Create a bucket over ``[min_index, max_index]`` and request randomness.

        Parameters
        ----------
        actor : Optional[str]
            Account creating the bucket; must be the administrator.
        bucket_index : int
            Administrator chosen key. Each key can be used only once.
        amount : int
            Nominal giveaway amount, recorded as-is.
        min_index : int
            First eligible ledger position (inclusive).
        max_index : int
            Last eligible ledger position (inclusive).

        Returns
        -------
        GiveawayBucket
            The pending bucket, flushed to the session.

        Notes
        -----
        The steps are:

        1. Reject a bucket index that is already used.
        2. Reject an empty ledger or a range outside ``[0, count - 1]``.
        3. Request one random word from the gateway.
        4. Store the correlation row and the bucket together.
        5. Emit ``"bucket_created"``.

        Nothing is written if any step fails. Steps 4 and 5 share a savepoint,
        so a failing subscriber also discards the bucket.

        Raises
        ------
        IndexAlreadyUsed
            If ``bucket_index`` already holds a bucket.
        InvalidIndex
            If the range is malformed or exceeds the ledger (``EmptyLedger``
            when the ledger has no entries).
        RandomnessGatewayError
            If the gateway returns a zero or already known request id.
        """

        self._policy.require_admin(actor)
        if isinstance(bucket_index, bool) or not isinstance(bucket_index, int) or bucket_index < 0:
            raise InvalidIndex(f"bucket index must be a non-negative integer, got {bucket_index!r}")
        existing = GiveawayBucket.get_by_index(self._session, bucket_index)
        if existing is not None and existing.request_id:
            raise IndexAlreadyUsed(f"bucket {bucket_index} already exists")

        _require_int(min_index, "min_index")
        _require_int(max_index, "max_index")
        length = self.entry_count()
        if length == 0:
            raise EmptyLedger("cannot create a bucket while the entry ledger is empty")
        if min_index < 0 or max_index < min_index or max_index > length - 1:
            raise InvalidIndex(
                f"invalid range [{min_index}, {max_index}] for ledger of length {length}"
            )
        _require_int(amount, "amount")
        if amount < 0 or amount > UINT256_MAX:
            raise InvalidInputs("amount must fit into an unsigned 256-bit integer")

        request_id = self._gateway.request_randomness(num_words=1)
        if isinstance(request_id, bool) or not isinstance(request_id, int):
            raise RandomnessGatewayError(f"gateway returned a non-integer request id {request_id!r}")
        if request_id <= 0 or request_id > UINT256_MAX:
            raise RandomnessGatewayError(f"gateway returned an invalid request id {request_id}")
        if RandomnessRequest.get_by_request_id(self._session, request_id) is not None:
            raise RandomnessGatewayError(f"gateway reused request id {request_id}")

        with self._session.begin_nested():
            bucket = GiveawayBucket(
                bucket_index=bucket_index,
                request_id=request_id,
                min_index=min_index,
                max_index=max_index,
                amount=amount,
            )
            request = RandomnessRequest(request_id=request_id, bucket_index=bucket_index)
            request.bucket = bucket
            self._session.add_all([bucket, request])
            self._emit(
                "bucket_created",
                actor=actor,
                bucket_index=bucket_index,
                details={
                    "request_id": str(request_id),
                    "min_index": min_index,
                    "max_index": max_index,
                    "amount": str(amount),
                },
            )

        logger.info(
            "Created bucket %d over [%d, %d] with randomness request %s",
            bucket_index,
            min_index,
            max_index,
            request_id,
        )
        return bucket

    # -------- fulfillment path --------
    def fulfill_randomness(
        self,
        caller: object,
        request_id: int,
        random_values: Sequence[int],
    ) -> GiveawayBucket:
        """Resolve the winner of the bucket that issued ``request_id``.

        Parameters
        ----------
        caller : object
            Party delivering the randomness; must be the engine's gateway.
        request_id : int
            Identifier returned by the gateway when the bucket was created.
        random_values : Sequence[int]
            Delivered random words. Only the first one is used.

        Returns
        -------
        GiveawayBucket
            The bucket with ``winner`` and ``draw_timestamp`` populated.

        Raises
        ------
        AccessDenied
            If ``caller`` is not the configured gateway.
        InvalidInputs
            If ``random_values`` is empty or holds a non 256-bit value.
        UnknownRequest
            If no bucket issued ``request_id``.
        RequestAlreadyFulfilled
            If ``request_id`` was already consumed. The stored winner is kept.
        """

        if caller is not self._gateway:
            raise AccessDenied("only the randomness gateway may deliver fulfillments")
        values = list(random_values)
        if not values:
            raise InvalidInputs("fulfillment delivered no random values")
        random_value = validate_random_value(values[0])

        request = None
        if not isinstance(request_id, bool) and isinstance(request_id, int) and 0 < request_id <= UINT256_MAX:
            request = RandomnessRequest.get_by_request_id(self._session, request_id)
        if request is None:
            logger.error("Rejected fulfillment for unknown request id %r", request_id)
            raise UnknownRequest(f"no bucket is waiting for request {request_id!r}")

        bucket = request.bucket
        if request.is_consumed or bucket.winner is not None:
            logger.warning(
                "Ignored repeated fulfillment for request %s (bucket %d)",
                request_id,
                bucket.bucket_index,
            )
            raise RequestAlreadyFulfilled(
                f"request {request_id} for bucket {bucket.bucket_index} was already fulfilled"
            )
        if bucket.request_id != request_id:
            raise UnknownRequest(
                f"request {request_id} does not match bucket {bucket.bucket_index}"
            )

        winner_index = derive_winner_index(random_value, bucket.min_index, bucket.max_index)
        winner = self.get_entry(winner_index)

        now = datetime.now(timezone.utc)
        with self._session.begin_nested():
            bucket.winner = winner
            bucket.winner_index = winner_index
            bucket.draw_timestamp = now
            request.fulfilled_at = now
            request.random_value = random_value
            self._emit(
                "winner_drawn",
                bucket_index=bucket.bucket_index,
                winner=winner,
                details={
                    "request_id": str(request_id),
                    "winner_index": winner_index,
                    "random_value": str(random_value),
                },
            )

        logger.info(
            "Drew winner %s (entry %d) for bucket %d",
            winner,
            winner_index,
            bucket.bucket_index,
        )
        return bucket

    def _emit(
        self,
        kind: str,
        *,
        actor: Optional[str] = None,
        bucket_index: Optional[int] = None,
        winner: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Persist a :class:`DrawEvent`, flush, and notify subscribers.

        Callers run this inside ``session.begin_nested()`` together with the
        writes it reports, so a raising listener rolls those writes back.
        """
        payload = dict(details or {})
        self._session.add(
            DrawEvent(
                kind=kind,
                actor=actor,
                bucket_index=bucket_index,
                winner=winner,
                details=payload,
            )
        )
        self._session.flush()

        notification = DrawNotification(
            kind=kind, bucket_index=bucket_index, winner=winner, details=payload
        )
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("Draw listener %r failed on %s", listener, kind)
                raise


__all__ = ["DrawEngine", "DrawNotification"]
