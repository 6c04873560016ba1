import unittest
from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, StatementError
from sqlalchemy.orm import sessionmaker

from bucketdraw.models import (
    Base,
    DrawEvent,
    GiveawayBucket,
    LedgerEntry,
    RandomnessRequest,
)

BIG_REQUEST_ID = (1 << 255) + 12345
BIG_AMOUNT = 10**30


class DBTestCase(unittest.TestCase):
    def setUp(self):
        # In-memory SQLite for isolation
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(
            bind=self.engine, future=True, expire_on_commit=False
        )

    def tearDown(self):
        self.engine.dispose()

    def _add_bucket(self, session, bucket_index=0, request_id=BIG_REQUEST_ID):
        bucket = GiveawayBucket(
            bucket_index=bucket_index,
            request_id=request_id,
            min_index=0,
            max_index=2,
            amount=BIG_AMOUNT,
        )
        request = RandomnessRequest(request_id=request_id, bucket_index=bucket_index)
        request.bucket = bucket
        session.add_all([bucket, request])
        session.flush()
        return bucket

    def test_uint256_columns_round_trip_through_database(self):
        with self.Session() as session:
            self._add_bucket(session)
            session.commit()

        with self.Session() as session:
            bucket = GiveawayBucket.get_by_index(session, 0)
            assert bucket is not None
            self.assertEqual(bucket.request_id, BIG_REQUEST_ID)
            self.assertEqual(bucket.amount, BIG_AMOUNT)
            self.assertIsInstance(bucket.request_id, int)

            request = RandomnessRequest.get_by_request_id(session, BIG_REQUEST_ID)
            assert request is not None
            self.assertEqual(request.bucket_index, 0)
            self.assertIs(request.bucket, bucket)
            self.assertIs(bucket.request, request)

    def test_uint256_rejects_out_of_range_values(self):
        with self.Session() as session:
            with self.assertRaises(StatementError):
                self._add_bucket(session, request_id=1 << 256)
            session.rollback()
            with self.assertRaises(StatementError):
                self._add_bucket(session, request_id=-5)

    def test_request_id_must_be_unique_across_buckets(self):
        with self.Session() as session:
            session.add(
                GiveawayBucket(bucket_index=0, request_id=9, min_index=0, max_index=0)
            )
            session.add(
                GiveawayBucket(bucket_index=1, request_id=9, min_index=0, max_index=0)
            )
            with self.assertRaises(IntegrityError):
                session.flush()

    def test_bucket_range_check_constraint(self):
        with self.Session() as session:
            session.add(
                GiveawayBucket(bucket_index=0, request_id=1, min_index=3, max_index=2)
            )
            with self.assertRaises(IntegrityError):
                session.flush()

    def test_new_bucket_defaults(self):
        with self.Session() as session:
            bucket = self._add_bucket(session)
            self.assertFalse(bucket.claimed)
            self.assertFalse(bucket.is_drawn)
            self.assertIsNone(bucket.winner_index)
            self.assertIsNotNone(bucket.created_at)
            self.assertEqual(bucket.span, 3)
            self.assertTrue(bucket.covers(0))
            self.assertTrue(bucket.covers(2))
            self.assertFalse(bucket.covers(3))
            self.assertEqual(GiveawayBucket.pending(session), [bucket])
            self.assertEqual(len(RandomnessRequest.outstanding(session)), 1)

    def test_bucket_to_dict(self):
        with self.Session() as session:
            bucket = self._add_bucket(session)
            bucket.winner = "0xwinner"
            bucket.winner_index = 1
            bucket.draw_timestamp = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
            payload = bucket.to_dict()
        self.assertEqual(payload["request_id"], str(BIG_REQUEST_ID))
        self.assertEqual(payload["amount"], str(BIG_AMOUNT))
        self.assertEqual(payload["winner"], "0xwinner")
        self.assertEqual(payload["draw_timestamp"], "2026-10-18T12:00:00+00:00")

    def test_ledger_entry_identity_is_trimmed_and_required(self):
        with self.Session() as session:
            entry = LedgerEntry(position=0, identity="  0xabc ")
            session.add(entry)
            session.flush()
            self.assertEqual(entry.identity, "0xabc")
            self.assertEqual(LedgerEntry.count(session), 1)
            with self.assertRaises(ValueError):
                LedgerEntry(position=1, identity="   ")
            with self.assertRaises(TypeError):
                LedgerEntry(position=1, identity=None)  # type: ignore[arg-type]

    def test_ledger_get_many(self):
        with self.Session() as session:
            session.add_all(
                [LedgerEntry(position=i, identity=f"0x{i}") for i in range(4)]
            )
            session.flush()
            found = LedgerEntry.get_many(session, [3, 1, 3])
            self.assertEqual(sorted(found), [1, 3])
            self.assertEqual(found[3].identity, "0x3")
            self.assertEqual(LedgerEntry.get_many(session, []), {})

    def test_draw_event_kind_is_constrained(self):
        with self.Session() as session:
            session.add(DrawEvent(kind="bucket_deleted", bucket_index=0))
            with self.assertRaises(IntegrityError):
                session.flush()


if __name__ == "__main__":
    unittest.main()
