from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class PlaySession(SQLModel, table=True):
    """One tournament run: phase, court config and the live team sets."""

    __tablename__ = "play_session"

    id: str = Field(primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    host_key_hash: str  # sha256 hex of the host key handed out at creation

    phase: str = Field(default="coverage")  # "coverage" | "bracket"
    court_count: int
    scoring_target: int = Field(default=21)
    odd_mode: str = Field(default="three_player_rotation")  # "three_player_rotation" | "none"

    locked: bool = Field(default=False)  # roster edits frozen once play starts
    started_at: Optional[datetime] = Field(default=None)

    # Team id sets; a team is in at most one of them
    active_team_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    queue_team_ids: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))

    # Bumped by every committed mutation (compare-and-set guard)
    revision: int = Field(default=0)
