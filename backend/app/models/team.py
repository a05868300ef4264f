from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class Team(SQLModel, table=True):
    id: str = Field(primary_key=True)
    session_id: str = Field(foreign_key="play_session.id", index=True)
    player_ids: List[str] = Field(sa_column=Column(JSON, nullable=False))  # 2 players, or 3 for rotation

    played: int = Field(default=0)
    wins: int = Field(default=0)
    losses: int = Field(default=0)

    is_active: bool = Field(default=False)
    archived: bool = Field(default=False, index=True)  # retired by a pairing reset

    # Rotation teams only (3 players)
    rotation_index: Optional[int] = Field(default=None)
    pair_preference: Optional[List[str]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    pending_odd_choice: bool = Field(default=False)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
