"""Initial migration: play sessions, roster, teams, courts, matches and pair history

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create play_session table
    op.create_table(
        "play_session",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("host_key_hash", sa.String(), nullable=False),
        sa.Column("phase", sa.String(), nullable=False, server_default="coverage"),
        sa.Column("court_count", sa.Integer(), nullable=False),
        sa.Column("scoring_target", sa.Integer(), nullable=False, server_default="21"),
        sa.Column("odd_mode", sa.String(), nullable=False, server_default="three_player_rotation"),
        sa.Column("locked", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("active_team_ids", sa.JSON(), nullable=False),
        sa.Column("queue_team_ids", sa.JSON(), nullable=False),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create player table
    op.create_table(
        "player",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("losses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("play_history", sa.JSON(), nullable=False),
        sa.Column("avatar_ref", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["play_session.id"]),
    )
    op.create_index("ix_player_session_id", "player", ["session_id"])

    # Create team table
    op.create_table(
        "team",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("player_ids", sa.JSON(), nullable=False),
        sa.Column("played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("losses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("archived", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("rotation_index", sa.Integer(), nullable=True),
        sa.Column("pair_preference", sa.JSON(), nullable=True),
        sa.Column("pending_odd_choice", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["play_session.id"]),
    )
    op.create_index("ix_team_session_id", "team", ["session_id"])
    op.create_index("ix_team_archived", "team", ["archived"])

    # Create court table
    op.create_table(
        "court",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("court_number", sa.Integer(), nullable=False),
        sa.Column("current_match_id", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["play_session.id"]),
        sa.UniqueConstraint("session_id", "court_number", name="uq_session_court_number"),
    )
    op.create_index("ix_court_session_id", "court", ["session_id"])

    # Create match table
    op.create_table(
        "match",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("court_id", sa.Integer(), nullable=False),
        sa.Column("team_a_id", sa.String(), nullable=False),
        sa.Column("team_b_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="in_progress"),
        sa.Column("is_fallback", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("winner_team_id", sa.String(), nullable=True),
        sa.Column("team_a_played_player_ids", sa.JSON(), nullable=True),
        sa.Column("team_b_played_player_ids", sa.JSON(), nullable=True),
        sa.Column("score_a", sa.Integer(), nullable=True),
        sa.Column("score_b", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["play_session.id"]),
        sa.ForeignKeyConstraint(["court_id"], ["court.id"]),
        sa.ForeignKeyConstraint(["team_a_id"], ["team.id"]),
        sa.ForeignKeyConstraint(["team_b_id"], ["team.id"]),
    )
    op.create_index("ix_match_session_id", "match", ["session_id"])

    # Create match_result table (recent results feed)
    op.create_table(
        "match_result",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("match_id", sa.String(), nullable=False),
        sa.Column("court_id", sa.Integer(), nullable=False),
        sa.Column("team_a_id", sa.String(), nullable=False),
        sa.Column("team_b_id", sa.String(), nullable=False),
        sa.Column("winner_team_id", sa.String(), nullable=False),
        sa.Column("is_fallback", sa.Boolean(), nullable=False, server_default="0"),
        sa.Column("score_a", sa.Integer(), nullable=True),
        sa.Column("score_b", sa.Integer(), nullable=True),
        sa.Column("team_a_played_player_ids", sa.JSON(), nullable=False),
        sa.Column("team_b_played_player_ids", sa.JSON(), nullable=False),
        sa.Column("ended_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["play_session.id"]),
        sa.ForeignKeyConstraint(["match_id"], ["match.id"]),
    )
    op.create_index("ix_match_result_session_id", "match_result", ["session_id"])
    op.create_index("ix_match_result_ended_at", "match_result", ["ended_at"])

    # Create met_pair table (canonical: team_id_a < team_id_b)
    op.create_table(
        "met_pair",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("team_id_a", sa.String(), nullable=False),
        sa.Column("team_id_b", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["play_session.id"]),
        sa.UniqueConstraint("session_id", "team_id_a", "team_id_b", name="uq_session_met_pair"),
        sa.CheckConstraint("team_id_a < team_id_b", name="ck_met_team_order"),
    )
    op.create_index("ix_met_pair_session_id", "met_pair", ["session_id"])

    # Create teammate_pair table (canonical: player_id_a < player_id_b)
    op.create_table(
        "teammate_pair",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("player_id_a", sa.String(), nullable=False),
        sa.Column("player_id_b", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["session_id"], ["play_session.id"]),
        sa.UniqueConstraint("session_id", "player_id_a", "player_id_b", name="uq_session_teammate_pair"),
        sa.CheckConstraint("player_id_a < player_id_b", name="ck_teammate_player_order"),
    )
    op.create_index("ix_teammate_pair_session_id", "teammate_pair", ["session_id"])


def downgrade() -> None:
    op.drop_table("teammate_pair")
    op.drop_table("met_pair")
    op.drop_table("match_result")
    op.drop_table("match")
    op.drop_table("court")
    op.drop_table("team")
    op.drop_table("player")
    op.drop_table("play_session")
