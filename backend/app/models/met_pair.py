"""
Met Pair Model

Pairs of teams that have already played each other in a session.
Append-only while the session runs.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import CheckConstraint
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class MetPair(SQLModel, table=True):
    """
    Canonical team pair that has met.

    Constraint: team_id_a < team_id_b so (A, B) and (B, A) are one row
    """

    __tablename__ = "met_pair"

    __table_args__ = (
        SAUniqueConstraint("session_id", "team_id_a", "team_id_b", name="uq_session_met_pair"),
        CheckConstraint("team_id_a < team_id_b", name="ck_met_team_order"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(foreign_key="play_session.id", index=True)
    team_id_a: str
    team_id_b: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
