from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from sqlalchemy.orm import Session

from .config import Settings
from .db.engine import get_sessionmaker, make_engine
from .db.migrations import current_revision, upgrade_db
from .draw.engine import DrawEngine
from .draw.gateway import LocalRandomnessGateway, RandomnessGateway
from .errors import GiveawayError
from .oracle.api import OracleClient
from .workflows import build_engine, load_identities, pending_report, sync_oracle_fulfillments

log = logging.getLogger("bucketdraw")


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _oracle_client(settings: Settings, args: argparse.Namespace) -> OracleClient:
    return OracleClient(
        base_fqdn=settings.oracle_base_fqdn,
        request_config=settings.oracle,
        timeout=args.timeout,
    )


def _run(
    args: argparse.Namespace,
    action: Callable[[Session, DrawEngine, Optional[str]], int],
    *,
    gateway_factory: Optional[Callable[[Settings], RandomnessGateway]] = None,
) -> int:
    """Open a transaction, build the engine and run ``action`` inside it."""
    settings = Settings.from_env()
    actor = args.actor or settings.admin
    engine = make_engine(args.db_url)
    Session_ = get_sessionmaker(engine)
    try:
        gateway = gateway_factory(settings) if gateway_factory else LocalRandomnessGateway()
        with Session_.begin() as session:
            draw_engine = build_engine(session, gateway, settings)
            return action(session, draw_engine, actor)
    finally:
        engine.dispose()


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2))


def cmd_init_db(args: argparse.Namespace) -> int:
    upgrade_db(args.db_url)
    log.info("Database schema at revision %s", current_revision(args.db_url))
    return 0


def cmd_append(args: argparse.Namespace) -> int:
    identities: list[str] = []
    if args.file:
        identities.extend(load_identities(Path(args.file)))
    identities.extend(args.identities)

    def action(session, engine, actor):
        positions = engine.append_entries(actor, identities)
        print(f"Appended {len(positions)} entries; ledger length is {engine.entry_count()}")
        return 0

    return _run(args, action)


def cmd_replace(args: argparse.Namespace) -> int:
    indices: list[int] = []
    identities: list[str] = []
    for pair in args.pairs:
        index, sep, identity = pair.partition("=")
        if not sep:
            raise SystemExit(f"error: expected INDEX=IDENTITY, got {pair!r}")
        try:
            indices.append(int(index))
        except ValueError:
            raise SystemExit(f"error: invalid ledger index {index!r}")
        identities.append(identity)

    def action(session, engine, actor):
        engine.replace_entries(actor, indices, identities)
        print(f"Replaced {len(indices)} entries")
        return 0

    return _run(args, action)


def cmd_create_bucket(args: argparse.Namespace) -> int:
    def action(session, engine, actor):
        bucket = engine.create_bucket(
            actor, args.index, args.amount, args.min_index, args.max_index
        )
        _print_json(bucket.to_dict())
        return 0

    return _run(args, action, gateway_factory=lambda s: _oracle_client(s, args))


def cmd_sync(args: argparse.Namespace) -> int:
    def action(session, engine, actor):
        drawn = sync_oracle_fulfillments(session, engine, engine.gateway)
        for bucket in drawn:
            print(f"Bucket {bucket.bucket_index}: winner {bucket.winner}")
        print(f"{len(drawn)} bucket(s) drawn")
        return 0

    return _run(args, action, gateway_factory=lambda s: _oracle_client(s, args))


def cmd_bucket(args: argparse.Namespace) -> int:
    def action(session, engine, actor):
        _print_json(engine.get_bucket(args.index).to_dict())
        return 0

    return _run(args, action)


def cmd_winner(args: argparse.Namespace) -> int:
    def action(session, engine, actor):
        print(engine.get_winner(args.index))
        return 0

    return _run(args, action)


def cmd_entry(args: argparse.Namespace) -> int:
    def action(session, engine, actor):
        print(engine.get_entry(args.index))
        return 0

    return _run(args, action)


def cmd_pending(args: argparse.Namespace) -> int:
    def action(session, engine, actor):
        _print_json(pending_report(engine, older_than_minutes=args.older_than_minutes))
        return 0

    return _run(args, action)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="bucketdraw",
        description="Administer giveaway buckets drawn from oracle randomness.",
    )
    p.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    p.add_argument("--db-url", default=None, help="Override database URL (else DB_URL).")
    p.add_argument(
        "--actor", default=None, help="Acting account (else BUCKETDRAW_ADMIN)."
    )
    p.add_argument("--timeout", type=int, default=45, help="Oracle timeout seconds.")

    sub = p.add_subparsers(dest="cmd", required=True)

    i = sub.add_parser("init-db", help="Apply database migrations up to head.")
    i.set_defaults(func=cmd_init_db)

    a = sub.add_parser("append", help="Append identities to the entry ledger.")
    a.add_argument("identities", nargs="*", help="Identities to append.")
    a.add_argument("--file", default=None, help="File with one identity per line.")
    a.set_defaults(func=cmd_append)

    r = sub.add_parser("replace", help="Overwrite ledger slots in place.")
    r.add_argument("pairs", nargs="+", metavar="INDEX=IDENTITY")
    r.set_defaults(func=cmd_replace)

    c = sub.add_parser("create-bucket", help="Create a bucket and request randomness.")
    c.add_argument("index", type=int, help="Bucket index.")
    c.add_argument("--amount", type=int, default=0, help="Nominal giveaway amount.")
    c.add_argument("--min", dest="min_index", type=int, required=True)
    c.add_argument("--max", dest="max_index", type=int, required=True)
    c.set_defaults(func=cmd_create_bucket)

    s = sub.add_parser("sync", help="Deliver fulfilled oracle requests.")
    s.set_defaults(func=cmd_sync)

    b = sub.add_parser("bucket", help="Show a bucket.")
    b.add_argument("index", type=int)
    b.set_defaults(func=cmd_bucket)

    w = sub.add_parser("winner", help="Show the winner of a bucket.")
    w.add_argument("index", type=int)
    w.set_defaults(func=cmd_winner)

    e = sub.add_parser("entry", help="Show a ledger entry.")
    e.add_argument("index", type=int)
    e.set_defaults(func=cmd_entry)

    pe = sub.add_parser("pending", help="List buckets still waiting for randomness.")
    pe.add_argument("--older-than-minutes", type=int, default=None)
    pe.set_defaults(func=cmd_pending)

    return p


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    try:
        return args.func(args)
    except GiveawayError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
