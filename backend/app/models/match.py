from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class Match(SQLModel, table=True):
    id: str = Field(primary_key=True)
    session_id: str = Field(foreign_key="play_session.id", index=True)
    court_id: int = Field(foreign_key="court.id")
    team_a_id: str = Field(foreign_key="team.id")
    team_b_id: str = Field(foreign_key="team.id")

    status: str = Field(default="in_progress")  # "scheduled" | "in_progress" | "finished" | "canceled"
    is_fallback: bool = Field(default=False)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    started_at: Optional[datetime] = Field(default=None)
    ended_at: Optional[datetime] = Field(default=None)

    winner_team_id: Optional[str] = Field(default=None)
    # Who actually played per side (matters when a side is a rotation team)
    team_a_played_player_ids: Optional[List[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    team_b_played_player_ids: Optional[List[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    score_a: Optional[int] = Field(default=None)
    score_b: Optional[int] = Field(default=None)
