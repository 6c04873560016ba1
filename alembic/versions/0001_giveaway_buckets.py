"""giveaway buckets

Revision ID: 0001_giveaway_buckets
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_giveaway_buckets"
down_revision = None
branch_labels = None
depends_on = None

UINT256 = sa.String(length=78)


def upgrade() -> None:
    op.create_table(
        "ledger_entries",
        sa.Column("position", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("identity", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("position", name="pk_ledger_entries"),
    )
    op.create_index("ix_ledger_entries_identity", "ledger_entries", ["identity"], unique=False)

    op.create_table(
        "giveaway_buckets",
        sa.Column("bucket_index", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("request_id", UINT256, nullable=False),
        sa.Column("min_index", sa.Integer(), nullable=False),
        sa.Column("max_index", sa.Integer(), nullable=False),
        sa.Column("amount", UINT256, nullable=False),
        sa.Column("claimed", sa.Boolean(), nullable=False),
        sa.Column("winner", sa.String(length=255), nullable=True),
        sa.Column("winner_index", sa.Integer(), nullable=True),
        sa.Column("draw_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("min_index >= 0", name=op.f("ck_giveaway_buckets_min_index_non_negative")),
        sa.CheckConstraint("max_index >= min_index", name=op.f("ck_giveaway_buckets_index_range_ordered")),
        sa.PrimaryKeyConstraint("bucket_index", name="pk_giveaway_buckets"),
        sa.UniqueConstraint("request_id", name="uq_giveaway_buckets_request_id"),
    )
    op.create_index(
        "ix_giveaway_buckets_draw_timestamp", "giveaway_buckets", ["draw_timestamp"], unique=False
    )

    op.create_table(
        "randomness_requests",
        sa.Column("request_id", UINT256, nullable=False),
        sa.Column("bucket_index", sa.Integer(), nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("fulfilled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("random_value", UINT256, nullable=True),
        sa.ForeignKeyConstraint(
            ["bucket_index"],
            ["giveaway_buckets.bucket_index"],
            name="fk_randomness_requests_bucket_index_giveaway_buckets",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("request_id", name="pk_randomness_requests"),
        sa.UniqueConstraint("bucket_index", name="uq_randomness_requests_bucket_index"),
    )

    op.create_table(
        "draw_events",
        sa.Column(
            "id",
            sa.BigInteger().with_variant(sa.Integer(), "sqlite"),
            autoincrement=True,
            nullable=False,
        ),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("actor", sa.String(length=255), nullable=True),
        sa.Column("bucket_index", sa.Integer(), nullable=True),
        sa.Column("winner", sa.String(length=255), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "kind IN ('bucket_created','winner_drawn','entries_appended','entries_replaced')",
            name=op.f("ck_draw_events_kind_enum"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_draw_events"),
    )
    op.create_index("ix_draw_events_kind", "draw_events", ["kind"], unique=False)
    op.create_index("ix_draw_events_bucket_index", "draw_events", ["bucket_index"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_draw_events_bucket_index", table_name="draw_events")
    op.drop_index("ix_draw_events_kind", table_name="draw_events")
    op.drop_table("draw_events")
    op.drop_table("randomness_requests")
    op.drop_index("ix_giveaway_buckets_draw_timestamp", table_name="giveaway_buckets")
    op.drop_table("giveaway_buckets")
    op.drop_index("ix_ledger_entries_identity", table_name="ledger_entries")
    op.drop_table("ledger_entries")
