"""
Teammate Pair Model

Pairs of players that have been on the same team in a session.
Survives pairing resets so rebuilt teams can avoid repeats.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class TeammatePair(SQLModel, table=True):
    """Constraint: player_id_a < player_id_b to prevent duplicate rows"""

    __tablename__ = "teammate_pair"

    __table_args__ = (
        SAUniqueConstraint("session_id", "player_id_a", "player_id_b", name="uq_session_teammate_pair"),
        CheckConstraint("player_id_a < player_id_b", name="ck_teammate_player_order"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(foreign_key="play_session.id", index=True)
    player_id_a: str
    player_id_b: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
