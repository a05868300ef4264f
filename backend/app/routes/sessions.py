"""
Session API Routes
Session lifecycle, roster and team management. Reads are public;
mutations require the host key.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlmodel import Session, select

from app.database import get_session
from app.models.play_session import PlaySession
from app.models.player import Player
from app.models.team import Team
from app.services import session_mutations as mutations
from app.services.engine_types import OddMode
from app.services.session_invariants import verify_session_invariants
from app.utils.session_guards import http_error, require_host

router = APIRouter()

HOST_ONLY = [Depends(require_host)]


# ============================================================================
# Request/Response Models
# ============================================================================


class SessionCreateRequest(BaseModel):
    court_count: int = Field(ge=1, le=50)
    odd_mode: OddMode = OddMode.THREE_PLAYER_ROTATION
    scoring_target: int = Field(default=21, ge=1)


class SessionCreateResponse(BaseModel):
    session_id: str
    host_key: str


class SessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    phase: str
    court_count: int
    scoring_target: int
    odd_mode: str
    locked: bool
    started_at: Optional[datetime] = None
    active_team_ids: List[str]
    queue_team_ids: List[str]
    revision: int


class PlayersAddRequest(BaseModel):
    names: List[str]


class PlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    played: int
    wins: int
    losses: int
    play_history: List[str] = []
    avatar_ref: Optional[str] = None


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    player_ids: List[str]
    played: int
    wins: int
    losses: int
    is_active: bool
    archived: bool
    rotation_index: Optional[int] = None
    pair_preference: Optional[List[str]] = None
    pending_odd_choice: bool


class TeamBuildResponse(BaseModel):
    teams: List[TeamResponse]
    warnings: List[str]


class LockRequest(BaseModel):
    locked: bool


class ResetRequest(BaseModel):
    keep_names: bool = True


class PairPreferenceRequest(BaseModel):
    player_ids: List[str]

    @field_validator("player_ids")
    @classmethod
    def two_distinct_players(cls, value: List[str]) -> List[str]:
        if len(value) != 2 or value[0] == value[1]:
            raise ValueError("player_ids must hold exactly 2 distinct players")
        return value


def _live_teams(session: Session, session_id: str, include_archived: bool = False) -> List[Team]:
    query = select(Team).where(Team.session_id == session_id)
    if not include_archived:
        query = query.where(Team.archived == False)  # noqa: E712
    return list(session.exec(query.order_by(Team.created_at, Team.id)).all())


def _team_build_response(session: Session, session_id: str, warnings: List[str]) -> TeamBuildResponse:
    teams = _live_teams(session, session_id)
    return TeamBuildResponse(
        teams=[TeamResponse.model_validate(t) for t in teams],
        warnings=warnings,
    )


# ============================================================================
# Session Endpoints
# ============================================================================


@router.post("/sessions", response_model=SessionCreateResponse, status_code=201)
def create_session(request: SessionCreateRequest, session: Session = Depends(get_session)):
    """
    Create a session and its courts.

    The returned host_key is shown once; mutation routes require it in the
    X-Host-Key header.
    """
    try:
        play, host_key = mutations.create_session(
            session,
            court_count=request.court_count,
            odd_mode=request.odd_mode,
            scoring_target=request.scoring_target,
        )
    except mutations.SessionError as exc:
        raise http_error(exc)
    return SessionCreateResponse(session_id=play.id, host_key=host_key)


@router.get("/sessions/{session_id}", response_model=SessionResponse)
def get_session_state(session_id: str, session: Session = Depends(get_session)):
    play = session.get(PlaySession, session_id)
    if not play:
        raise HTTPException(status_code=404, detail="Session not found")
    return play


@router.post("/sessions/{session_id}/start", response_model=TeamBuildResponse, dependencies=HOST_ONLY)
def start_session(
    session_id: str,
    session: Session = Depends(get_session),
):
    """Form the opening teams, queue them and lock the roster."""
    try:
        result = mutations.start_session(session, session_id)
    except mutations.SessionError as exc:
        raise http_error(exc)
    return _team_build_response(session, session_id, result.warnings)


@router.post("/sessions/{session_id}/lock", response_model=SessionResponse, dependencies=HOST_ONLY)
def set_lock(
    session_id: str,
    request: LockRequest,
    session: Session = Depends(get_session),
):
    try:
        return mutations.set_locked(session, session_id, request.locked)
    except mutations.SessionError as exc:
        raise http_error(exc)


@router.post("/sessions/{session_id}/phase/advance", response_model=SessionResponse, dependencies=HOST_ONLY)
def advance_phase(
    session_id: str,
    session: Session = Depends(get_session),
):
    """Move to the bracket phase if every team has played."""
    try:
        mutations.advance_phase(session, session_id)
    except mutations.SessionError as exc:
        raise http_error(exc)
    return mutations.get_play_session(session, session_id)


@router.post("/sessions/{session_id}/reset-pairing", response_model=TeamBuildResponse, dependencies=HOST_ONLY)
def reset_pairing(
    session_id: str,
    session: Session = Depends(get_session),
):
    """Rebuild teams avoiding past teammates. Open matches are canceled."""
    try:
        result = mutations.reset_pairing(session, session_id)
    except mutations.SessionError as exc:
        raise http_error(exc)
    return _team_build_response(session, session_id, result.warnings)


@router.post("/sessions/{session_id}/reset-stats", dependencies=HOST_ONLY)
def reset_stats(
    session_id: str,
    session: Session = Depends(get_session),
):
    try:
        count = mutations.reset_stats(session, session_id)
    except mutations.SessionError as exc:
        raise http_error(exc)
    return {"players_reset": count}


@router.post("/sessions/{session_id}/reset", response_model=SessionResponse, dependencies=HOST_ONLY)
def reset_all(
    session_id: str,
    request: ResetRequest,
    session: Session = Depends(get_session),
):
    """Full reset: matches, teams and histories are removed."""
    try:
        return mutations.reset_all(session, session_id, keep_names=request.keep_names)
    except mutations.SessionError as exc:
        raise http_error(exc)


@router.get("/sessions/{session_id}/invariants")
def get_invariants(session_id: str, session: Session = Depends(get_session)):
    try:
        report = verify_session_invariants(session, session_id)
    except mutations.SessionError as exc:
        raise http_error(exc)
    return report.to_dict()


# ============================================================================
# Roster Endpoints
# ============================================================================


@router.get("/sessions/{session_id}/players", response_model=List[PlayerResponse])
def get_players(session_id: str, session: Session = Depends(get_session)):
    if not session.get(PlaySession, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return session.exec(
        select(Player).where(Player.session_id == session_id).order_by(Player.created_at, Player.id)
    ).all()


@router.post(
    "/sessions/{session_id}/players",
    response_model=List[PlayerResponse],
    status_code=201,
    dependencies=HOST_ONLY,
)
def add_players(
    session_id: str,
    request: PlayersAddRequest,
    session: Session = Depends(get_session),
):
    try:
        return mutations.add_players(session, session_id, request.names)
    except mutations.SessionError as exc:
        raise http_error(exc)


@router.delete("/sessions/{session_id}/players/{player_id}", status_code=204, dependencies=HOST_ONLY)
def remove_player(
    session_id: str,
    player_id: str,
    session: Session = Depends(get_session),
):
    try:
        mutations.remove_player(session, session_id, player_id)
    except mutations.SessionError as exc:
        raise http_error(exc)


# ============================================================================
# Team Endpoints
# ============================================================================


@router.get("/sessions/{session_id}/teams", response_model=List[TeamResponse])
def get_teams(session_id: str, include_archived: bool = False, session: Session = Depends(get_session)):
    if not session.get(PlaySession, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return _live_teams(session, session_id, include_archived)


@router.post(
    "/sessions/{session_id}/teams/{team_id}/pair-preference",
    response_model=TeamResponse,
    dependencies=HOST_ONLY,
)
def set_pair_preference(
    session_id: str,
    team_id: str,
    request: PairPreferenceRequest,
    session: Session = Depends(get_session),
):
    """Choose which two members of the 3-player team play their next match."""
    try:
        return mutations.set_pair_preference(session, session_id, team_id, request.player_ids)
    except mutations.SessionError as exc:
        raise http_error(exc)
