"""Initial schema: league context, ratings, season locks and brackets

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 12:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# Revision identifiers, used by Alembic.
revision: str = "a1b2c3d4e5f6"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "seasons",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "divisions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("game_type", sa.String(length=10), nullable=False),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_divisions_season", "divisions", ["season_id"], unique=False)

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("division_id", sa.Integer(), nullable=True),
        sa.Column("match_type", sa.String(length=10), nullable=False),
        sa.Column("format", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("is_walkover", sa.Boolean(), nullable=False),
        sa.Column("outcome", sa.String(length=10), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.ForeignKeyConstraint(["division_id"], ["divisions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_matches_season_status", "matches", ["season_id", "status"], unique=False)
    op.create_index("idx_matches_completed_at", "matches", ["completed_at"], unique=False)

    op.create_table(
        "match_participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("team", sa.String(length=10), nullable=False),
        sa.ForeignKeyConstraint(["match_id"], ["matches.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("match_id", "user_id", name="uq_match_participant"),
    )

    op.create_table(
        "division_standings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("division_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("rank", sa.Integer(), nullable=False),
        sa.Column("wins", sa.Integer(), nullable=False),
        sa.Column("losses", sa.Integer(), nullable=False),
        sa.Column("total_points", sa.Integer(), nullable=False),
        sa.Column("sets_won", sa.Integer(), nullable=False),
        sa.Column("sets_lost", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.ForeignKeyConstraint(["division_id"], ["divisions.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_standings_division_rank", "division_standings", ["division_id", "rank"], unique=False
    )

    op.create_table(
        "rating_parameters",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("initial_rating", sa.Float(), nullable=False),
        sa.Column("initial_rd", sa.Float(), nullable=False),
        sa.Column("k_factor_new", sa.Float(), nullable=False),
        sa.Column("k_factor_established", sa.Float(), nullable=False),
        sa.Column("k_factor_threshold", sa.Integer(), nullable=False),
        sa.Column("singles_weight", sa.Float(), nullable=False),
        sa.Column("doubles_weight", sa.Float(), nullable=False),
        sa.Column("one_set_match_weight", sa.Float(), nullable=False),
        sa.Column("walkover_win_impact", sa.Float(), nullable=False),
        sa.Column("walkover_loss_impact", sa.Float(), nullable=False),
        sa.Column("provisional_threshold", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("season_id", "version", name="uq_rating_parameters_season_version"),
    )
    op.create_index(
        "idx_rating_parameters_active", "rating_parameters", ["season_id", "is_active"], unique=False
    )

    op.create_table(
        "player_ratings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("division_id", sa.Integer(), nullable=True),
        sa.Column("game_type", sa.String(length=10), nullable=False),
        sa.Column("current_rating", sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column("rating_deviation", sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column("matches_played", sa.Integer(), nullable=False),
        sa.Column("is_provisional", sa.Boolean(), nullable=False),
        sa.Column("peak_rating", sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column("peak_rating_date", sa.DateTime(), nullable=True),
        sa.Column("lowest_rating", sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column("last_match_id", sa.Integer(), nullable=True),
        sa.Column("last_updated_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("matches_played >= 0", name="ck_player_rating_matches_played"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.ForeignKeyConstraint(["division_id"], ["divisions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "season_id", "game_type", name="uq_player_rating_scope"),
    )
    op.create_index(
        "idx_player_ratings_season", "player_ratings", ["season_id", "game_type"], unique=False
    )

    op.create_table(
        "rating_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("player_rating_id", sa.Integer(), nullable=False),
        sa.Column("match_id", sa.Integer(), nullable=True),
        sa.Column("rating_before", sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column("rating_after", sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column("delta", sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column("rd_before", sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column("rd_after", sa.Numeric(precision=8, scale=2), nullable=False),
        sa.Column("reason", sa.String(length=30), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["player_rating_id"], ["player_ratings.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_rating_history_rating", "rating_history", ["player_rating_id", "id"], unique=False
    )
    op.create_index("idx_rating_history_match", "rating_history", ["match_id"], unique=False)

    op.create_table(
        "season_locks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("is_locked", sa.Boolean(), nullable=False),
        sa.Column("locked_at", sa.DateTime(), nullable=True),
        sa.Column("locked_by", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("season_id"),
    )

    op.create_table(
        "brackets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("season_id", sa.Integer(), nullable=False),
        sa.Column("division_id", sa.Integer(), nullable=False),
        sa.Column("bracket_name", sa.String(length=255), nullable=False),
        sa.Column("bracket_type", sa.String(length=30), nullable=False),
        sa.Column("seeding_source", sa.String(length=20), nullable=False),
        sa.Column("num_players", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("is_locked", sa.Boolean(), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=True),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.Column("published_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["season_id"], ["seasons.id"]),
        sa.ForeignKeyConstraint(["division_id"], ["divisions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("season_id", "division_id", name="uq_bracket_season_division"),
    )
    op.create_table(
        "bracket_rounds",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bracket_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("round_name", sa.String(length=50), nullable=False),
        sa.ForeignKeyConstraint(["bracket_id"], ["brackets.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bracket_id", "round_number", name="uq_bracket_round_number"),
    )
    op.create_table(
        "bracket_matches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bracket_id", sa.Integer(), nullable=False),
        sa.Column("round_id", sa.Integer(), nullable=False),
        sa.Column("match_number", sa.Integer(), nullable=False),
        sa.Column("seed1", sa.Integer(), nullable=True),
        sa.Column("seed2", sa.Integer(), nullable=True),
        sa.Column("player1_id", sa.Integer(), nullable=True),
        sa.Column("player2_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("winner_id", sa.Integer(), nullable=True),
        sa.Column("match_id", sa.Integer(), nullable=True),
        sa.Column("scheduled_time", sa.DateTime(), nullable=True),
        sa.Column("court_location", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["bracket_id"], ["brackets.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["round_id"], ["bracket_rounds.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["player1_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["player2_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["match_id"], ["matches.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("round_id", "match_number", name="uq_bracket_match_position"),
    )


def downgrade() -> None:
    op.drop_table("bracket_matches")
    op.drop_table("bracket_rounds")
    op.drop_table("brackets")
    op.drop_table("season_locks")
    op.drop_index("idx_rating_history_match", table_name="rating_history")
    op.drop_index("idx_rating_history_rating", table_name="rating_history")
    op.drop_table("rating_history")
    op.drop_index("idx_player_ratings_season", table_name="player_ratings")
    op.drop_table("player_ratings")
    op.drop_index("idx_rating_parameters_active", table_name="rating_parameters")
    op.drop_table("rating_parameters")
    op.drop_index("idx_standings_division_rank", table_name="division_standings")
    op.drop_table("division_standings")
    op.drop_table("match_participants")
    op.drop_index("idx_matches_completed_at", table_name="matches")
    op.drop_index("idx_matches_season_status", table_name="matches")
    op.drop_table("matches")
    op.drop_index("idx_divisions_season", table_name="divisions")
    op.drop_table("divisions")
    op.drop_table("seasons")
    op.drop_table("users")
