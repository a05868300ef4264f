from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class MatchResult(SQLModel, table=True):
    """Append-only feed of finished matches (recent results board)."""

    __tablename__ = "match_result"

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(foreign_key="play_session.id", index=True)
    match_id: str = Field(foreign_key="match.id")
    court_id: int
    team_a_id: str
    team_b_id: str
    winner_team_id: str
    is_fallback: bool = Field(default=False)
    score_a: Optional[int] = Field(default=None)
    score_b: Optional[int] = Field(default=None)
    team_a_played_player_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    team_b_played_player_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    ended_at: datetime = Field(index=True)
