from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class Player(SQLModel, table=True):
    id: str = Field(primary_key=True)
    session_id: str = Field(foreign_key="play_session.id", index=True)
    name: str

    played: int = Field(default=0)
    wins: int = Field(default=0)
    losses: int = Field(default=0)

    # ISO timestamps of every match end this player took part in
    play_history: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    avatar_ref: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
