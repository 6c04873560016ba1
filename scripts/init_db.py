from __future__ import annotations

import sys
from typing import Optional

from sqlalchemy import func, select

from bucketdraw.db.engine import get_sessionmaker, make_engine
from bucketdraw.db.migrations import current_revision, upgrade_db
from bucketdraw.models import GiveawayBucket, LedgerEntry, RandomnessRequest


def report_ledger(database_url: Optional[str] = None) -> None:
    """Print the schema revision and a summary of ledger and bucket state."""
    engine = make_engine(database_url)
    try:
        with get_sessionmaker(engine)() as session:
            entries = LedgerEntry.count(session)
            buckets = session.scalar(select(func.count()).select_from(GiveawayBucket))
            pending = len(GiveawayBucket.pending(session))
            outstanding = len(RandomnessRequest.outstanding(session))
    finally:
        engine.dispose()
    print(f"Schema revision: {current_revision(database_url)}")
    print(f"Ledger entries: {entries}")
    print(f"Buckets: {buckets} ({pending} pending, {outstanding} outstanding requests)")


def main(argv: Optional[list[str]] = None) -> None:
    """Migrate the database given as first argument (else DB_URL) and report it."""
    args = sys.argv[1:] if argv is None else argv
    database_url = args[0] if args else None
    upgrade_db(database_url)
    report_ledger(database_url)


if __name__ == "__main__":
    main()
