import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from sqlalchemy.orm import Session

from .access import AuthorizationPolicy, ReadOnlyPolicy, SingleAdminPolicy
from .draw.engine import DrawEngine
from .draw.gateway import RandomnessGateway
from .errors import GiveawayError
from .models import GiveawayBucket, RandomnessRequest

if TYPE_CHECKING:
    from .config import Settings
    from .oracle.api import OracleClient

logger = logging.getLogger(__name__)


def build_engine(
    session: Session,
    gateway: RandomnessGateway,
    settings: "Settings",
) -> DrawEngine:
    """Create a :class:`DrawEngine` guarded by the configured administrator.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    gateway : RandomnessGateway
        Gateway used to request randomness. When it exposes ``attach`` (as
        :class:`~bucketdraw.draw.gateway.LocalRandomnessGateway` does) the new
        engine is attached as its consumer.
    settings : Settings
        Loaded settings. Without ``settings.admin`` the engine can only read.

    Returns
    -------
    DrawEngine
        Engine bound to ``session``.
    """
    policy: AuthorizationPolicy
    if settings.admin:
        policy = SingleAdminPolicy(
            settings.admin,
            lock_pending_ranges=settings.lock_pending_ranges,
        )
    else:
        policy = ReadOnlyPolicy()
    engine = DrawEngine(session, gateway, policy)
    attach = getattr(gateway, "attach", None)
    if callable(attach):
        attach(engine)
    return engine


def load_identities(path: Path) -> list[str]:
    """Read one identity per line from ``path``.

    Blank lines and lines starting with ``#`` are skipped. Duplicates are kept,
    the ledger does not deduplicate entries.
    """
    identities: list[str] = []
    for raw_line in Path(path).read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        identities.append(line)
    return identities


def sync_oracle_fulfillments(
    session: Session,
    engine: DrawEngine,
    client: "OracleClient",
) -> list[GiveawayBucket]:
    """Poll the oracle for every outstanding request and deliver fulfilled ones.

    The workflow performs the following steps for each outstanding
    :class:`RandomnessRequest`, oldest first:

    1. Ask the oracle for the request's status document.
    2. Skip it while the oracle still reports it as pending.
    3. Deliver the random words to the engine's fulfillment path on behalf of
       ``client``.

    Each delivery runs in its own savepoint. A request the oracle or the engine
    rejects is logged, stays outstanding, and does not stop the rest of the
    batch.

    Parameters
    ----------
    session : Session
        Session used to list outstanding requests.
    engine : DrawEngine
        Engine whose gateway is ``client``.
    client : OracleClient
        Oracle client that issued the requests.

    Returns
    -------
    list[GiveawayBucket]
        Buckets that received their winner during this run.
    """
    if engine.gateway is not client:
        raise ValueError("The draw engine must use the supplied oracle client as its gateway")

    drawn: list[GiveawayBucket] = []
    for request in RandomnessRequest.outstanding(session):
        request_id, bucket_index = request.request_id, request.bucket_index
        try:
            status = client.get_request(request_id)
            if status.get("status") != "fulfilled" or not status.get("random_words"):
                logger.debug("Request %s for bucket %d still pending", request_id, bucket_index)
                continue
            with session.begin_nested():
                drawn.append(
                    engine.fulfill_randomness(client, request_id, status["random_words"])
                )
        except GiveawayError as exc:
            logger.error(
                "Could not deliver request %s for bucket %d: %s", request_id, bucket_index, exc
            )
    session.flush()
    return drawn


def pending_report(engine: DrawEngine, *, older_than_minutes: Optional[int] = None) -> list[dict]:
    """Summarize pending buckets and how long they have been waiting."""
    if older_than_minutes is None:
        buckets = engine.list_buckets(pending=True)
    else:
        buckets = engine.list_stale_pending(timedelta(minutes=older_than_minutes))

    now = datetime.now(timezone.utc)
    report = []
    for bucket in buckets:
        created_at = bucket.created_at
        if created_at.tzinfo is None:
            # SQLite drops tzinfo; values are always written in UTC.
            created_at = created_at.replace(tzinfo=timezone.utc)
        report.append(
            {
                "bucket_index": bucket.bucket_index,
                "request_id": str(bucket.request_id),
                "waiting_seconds": int((now - created_at).total_seconds()),
            }
        )
    return report
