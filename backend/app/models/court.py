from typing import Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel


class Court(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("session_id", "court_number", name="uq_session_court_number"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    session_id: str = Field(foreign_key="play_session.id", index=True)
    court_number: int  # 1-based
    current_match_id: Optional[str] = Field(default=None)  # null when idle
