"""create raffle tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

UINT256 = sa.String(78)


def upgrade() -> None:
    op.create_table(
        "raffles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entrance_fee", UINT256, nullable=False),
        sa.Column("interval_seconds", sa.Integer(), nullable=False),
        sa.Column("key_hash", sa.String(66), nullable=False),
        sa.Column("subscription_id", UINT256, nullable=False),
        sa.Column("request_confirmations", sa.Integer(), nullable=False),
        sa.Column("callback_gas_limit", sa.Integer(), nullable=False),
        sa.Column("num_words", sa.Integer(), nullable=False),
        sa.Column("coordinator_address", sa.String(255), nullable=False),
        sa.Column("state", sa.String(20), nullable=False),
        sa.Column("pool", UINT256, nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("last_draw_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("recent_winner", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "state IN ('open','calculating')", name=op.f("ck_raffles_state_enum")
        ),
        sa.CheckConstraint(
            "interval_seconds >= 0", name=op.f("ck_raffles_interval_non_negative")
        ),
        sa.CheckConstraint("num_words >= 1", name=op.f("ck_raffles_num_words_positive")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_raffles")),
    )

    op.create_table(
        "raffle_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("raffle_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("participant", sa.String(255), nullable=False),
        sa.Column("amount", UINT256, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["raffle_id"],
            ["raffles.id"],
            name=op.f("fk_raffle_entries_raffle_id_raffles"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_raffle_entries")),
        sa.UniqueConstraint(
            "raffle_id", "round_number", "position", name="uq_raffle_entry_position"
        ),
    )
    op.create_index(
        "ix_raffle_entries_round", "raffle_entries", ["raffle_id", "round_number"]
    )
    op.create_index("ix_raffle_entries_participant", "raffle_entries", ["participant"])

    op.create_table(
        "randomness_requests",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("raffle_id", sa.Integer(), nullable=False),
        sa.Column("request_id", UINT256, nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("participant_count", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("random_value", UINT256, nullable=True),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("fulfilled_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','fulfilled')",
            name=op.f("ck_randomness_requests_status_enum"),
        ),
        sa.CheckConstraint(
            "participant_count > 0",
            name=op.f("ck_randomness_requests_participant_count_positive"),
        ),
        sa.ForeignKeyConstraint(
            ["raffle_id"],
            ["raffles.id"],
            name=op.f("fk_randomness_requests_raffle_id_raffles"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_randomness_requests")),
        sa.UniqueConstraint("raffle_id", "request_id", name="uq_randomness_request_id"),
    )
    op.create_index(
        op.f("ix_randomness_requests_raffle_id"), "randomness_requests", ["raffle_id"]
    )
    op.create_index(
        "ix_randomness_requests_status", "randomness_requests", ["raffle_id", "status"]
    )
    op.create_index(
        "uq_randomness_request_pending",
        "randomness_requests",
        ["raffle_id"],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "raffle_draws",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("raffle_id", sa.Integer(), nullable=False),
        sa.Column("randomness_request_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("random_value", UINT256, nullable=False),
        sa.Column("winner_index", sa.Integer(), nullable=False),
        sa.Column("winner", sa.String(255), nullable=False),
        sa.Column("amount", UINT256, nullable=False),
        sa.Column("tx_hash", sa.String(255), nullable=True),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["raffle_id"],
            ["raffles.id"],
            name=op.f("fk_raffle_draws_raffle_id_raffles"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["randomness_request_id"],
            ["randomness_requests.id"],
            name=op.f("fk_raffle_draws_randomness_request_id_randomness_requests"),
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_raffle_draws")),
        sa.UniqueConstraint("raffle_id", "round_number", name="uq_raffle_draw_round"),
    )
    op.create_index(op.f("ix_raffle_draws_raffle_id"), "raffle_draws", ["raffle_id"])

    op.create_table(
        "raffle_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("raffle_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(40), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("emitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "name IN ('RaffleEnter','RequestedRaffleWinner','WinnerPicked')",
            name=op.f("ck_raffle_events_name_enum"),
        ),
        sa.ForeignKeyConstraint(
            ["raffle_id"],
            ["raffles.id"],
            name=op.f("fk_raffle_events_raffle_id_raffles"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_raffle_events")),
    )
    op.create_index(
        "ix_raffle_events_raffle_name", "raffle_events", ["raffle_id", "name"]
    )


def downgrade() -> None:
    op.drop_index("ix_raffle_events_raffle_name", table_name="raffle_events")
    op.drop_table("raffle_events")
    op.drop_index(op.f("ix_raffle_draws_raffle_id"), table_name="raffle_draws")
    op.drop_table("raffle_draws")
    op.drop_index("uq_randomness_request_pending", table_name="randomness_requests")
    op.drop_index("ix_randomness_requests_status", table_name="randomness_requests")
    op.drop_index(
        op.f("ix_randomness_requests_raffle_id"), table_name="randomness_requests"
    )
    op.drop_table("randomness_requests")
    op.drop_index("ix_raffle_entries_participant", table_name="raffle_entries")
    op.drop_index("ix_raffle_entries_round", table_name="raffle_entries")
    op.drop_table("raffle_entries")
    op.drop_table("raffles")
