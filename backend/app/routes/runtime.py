"""
Match runtime: finish, cancel and score matches; match list and recent results.
Finishing a match releases its court and both teams and records the pairing
as met, so the pair is never proposed again this session.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session, select

from app.database import get_session
from app.models.match import Match
from app.models.match_result import MatchResult
from app.models.play_session import PlaySession
from app.services import session_mutations as mutations
from app.utils.session_guards import http_error, require_host

router = APIRouter()

HOST_ONLY = [Depends(require_host)]


class MatchFinishRequest(BaseModel):
    winner_team_id: str
    team_a_played_player_ids: Optional[List[str]] = None
    team_b_played_player_ids: Optional[List[str]] = None
    score_a: Optional[int] = Field(default=None, ge=0)
    score_b: Optional[int] = Field(default=None, ge=0)


class MatchScoreUpdate(BaseModel):
    score_a: int = Field(ge=0)
    score_b: int = Field(ge=0)


class MatchState(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    court_id: int
    team_a_id: str
    team_b_id: str
    status: str
    is_fallback: bool
    created_at: datetime
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    winner_team_id: Optional[str] = None
    team_a_played_player_ids: Optional[List[str]] = None
    team_b_played_player_ids: Optional[List[str]] = None
    score_a: Optional[int] = None
    score_b: Optional[int] = None


class ResultRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    match_id: str
    court_id: int
    team_a_id: str
    team_b_id: str
    winner_team_id: str
    is_fallback: bool
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    team_a_played_player_ids: List[str]
    team_b_played_player_ids: List[str]
    ended_at: datetime


def _require_session(session: Session, session_id: str) -> PlaySession:
    play = session.get(PlaySession, session_id)
    if not play:
        raise HTTPException(status_code=404, detail="Session not found")
    return play


@router.get("/sessions/{session_id}/matches", response_model=List[MatchState])
def get_matches(session_id: str, status: Optional[str] = None, session: Session = Depends(get_session)):
    _require_session(session, session_id)
    query = select(Match).where(Match.session_id == session_id)
    if status:
        query = query.where(Match.status == status)
    return session.exec(query.order_by(Match.created_at, Match.id)).all()


@router.get("/sessions/{session_id}/results", response_model=List[ResultRow])
def get_recent_results(
    session_id: str,
    limit: int = Query(default=20, ge=1, le=200),
    session: Session = Depends(get_session),
):
    """Most recent finished matches first."""
    _require_session(session, session_id)
    return session.exec(
        select(MatchResult)
        .where(MatchResult.session_id == session_id)
        .order_by(MatchResult.ended_at.desc(), MatchResult.id.desc())
        .limit(limit)
    ).all()


@router.post("/sessions/{session_id}/matches/{match_id}/finish", response_model=MatchState, dependencies=HOST_ONLY)
def finish_match(
    session_id: str,
    match_id: str,
    payload: MatchFinishRequest,
    session: Session = Depends(get_session),
):
    """Record the winner. Played player ids matter only for a 3-player team."""
    try:
        return mutations.finish_match(
            session,
            session_id,
            match_id,
            winner_team_id=payload.winner_team_id,
            team_a_played_player_ids=payload.team_a_played_player_ids,
            team_b_played_player_ids=payload.team_b_played_player_ids,
            score_a=payload.score_a,
            score_b=payload.score_b,
        )
    except mutations.SessionError as exc:
        raise http_error(exc)


@router.post("/sessions/{session_id}/matches/{match_id}/cancel", response_model=MatchState, dependencies=HOST_ONLY)
def cancel_match(session_id: str, match_id: str, session: Session = Depends(get_session)):
    try:
        return mutations.cancel_match(session, session_id, match_id)
    except mutations.SessionError as exc:
        raise http_error(exc)


@router.patch("/sessions/{session_id}/matches/{match_id}/score", response_model=MatchState, dependencies=HOST_ONLY)
def update_match_score(
    session_id: str,
    match_id: str,
    payload: MatchScoreUpdate,
    session: Session = Depends(get_session),
):
    try:
        return mutations.update_match_score(session, session_id, match_id, payload.score_a, payload.score_b)
    except mutations.SessionError as exc:
        raise http_error(exc)
