"""Initial ladder schema

Revision ID: 3e8a51c0b7d4
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers, used by Alembic.
revision: str = "3e8a51c0b7d4"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "players",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("current_rating", sa.Integer(), nullable=False),
        sa.Column("matches_played", sa.Integer(), nullable=False),
        sa.Column("wins", sa.Integer(), nullable=False),
        sa.Column("losses", sa.Integer(), nullable=False),
        sa.Column("draws", sa.Integer(), nullable=False),
        sa.Column("last_active_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "wins + losses + draws = matches_played",
            name="ck_players_record_consistent",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("idx_players_rating", "players", ["current_rating"])

    op.create_table(
        "decay_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("period_key", sa.String(length=40), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("floor_used", sa.Integer(), nullable=False),
        sa.Column("total_decay", sa.Integer(), nullable=False),
        sa.Column("bonus_per_player", sa.Integer(), nullable=False),
        sa.Column("players_decayed", sa.Integer(), nullable=False),
        sa.Column("players_bonused", sa.Integer(), nullable=False),
        sa.Column("players_failed", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("period_key"),
    )
    op.create_index("idx_decay_runs_started_at", "decay_runs", ["started_at"])

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_a_id", sa.Integer(), nullable=False),
        sa.Column("player_b_id", sa.Integer(), nullable=True),
        sa.Column("winner", sa.String(length=20), nullable=False),
        sa.Column("rating_a_before", sa.Integer(), nullable=False),
        sa.Column("rating_b_before", sa.Integer(), nullable=False),
        sa.Column("rating_a_after", sa.Integer(), nullable=False),
        sa.Column("rating_b_after", sa.Integer(), nullable=False),
        sa.Column("played_at", sa.DateTime(), nullable=False),
        sa.Column("decay_run_id", sa.Integer(), nullable=True),
        sa.CheckConstraint(
            "winner IN ('A', 'B', 'DRAW', 'DECAY', 'ACTIVITY_BONUS')",
            name="ck_matches_winner",
        ),
        sa.ForeignKeyConstraint(["player_a_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["player_b_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["decay_run_id"], ["decay_runs.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_matches_played_at", "matches", ["played_at"])
    op.create_index("idx_matches_player_a", "matches", ["player_a_id", "played_at"])
    op.create_index("idx_matches_player_b", "matches", ["player_b_id", "played_at"])

    op.create_table(
        "rating_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_id", sa.Integer(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=True),
        sa.Column("event_key", sa.String(length=64), nullable=True),
        sa.ForeignKeyConstraint(["player_id"], ["players.id"]),
        sa.ForeignKeyConstraint(["match_id"], ["matches.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_rating_history_player_time", "rating_history", ["player_id", "recorded_at"]
    )
    op.create_index("idx_rating_history_event_key", "rating_history", ["event_key"])

    op.create_table(
        "update_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("update_type", sa.String(length=50), nullable=False),
        sa.Column("details", sa.JSON(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("duration_seconds", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_update_log_type_date", "update_log", ["update_type", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_update_log_type_date", table_name="update_log")
    op.drop_table("update_log")
    op.drop_index("idx_rating_history_event_key", table_name="rating_history")
    op.drop_index("idx_rating_history_player_time", table_name="rating_history")
    op.drop_table("rating_history")
    op.drop_index("idx_matches_player_b", table_name="matches")
    op.drop_index("idx_matches_player_a", table_name="matches")
    op.drop_index("idx_matches_played_at", table_name="matches")
    op.drop_table("matches")
    op.drop_index("idx_decay_runs_started_at", table_name="decay_runs")
    op.drop_table("decay_runs")
    op.drop_index("idx_players_rating", table_name="players")
    op.drop_table("players")
