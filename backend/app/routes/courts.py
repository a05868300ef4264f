"""
Court API Routes
Court status, next-match preview and court assignment.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session, select

from app.database import get_session
from app.models.court import Court
from app.models.play_session import PlaySession
from app.services import session_mutations as mutations
from app.utils.session_guards import http_error, require_host

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class CourtResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    court_number: int
    current_match_id: Optional[str] = None


class ProposalResponse(BaseModel):
    team_a_id: str
    team_b_id: str
    is_fallback: bool


class AssignedMatch(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    court_id: int
    team_a_id: str
    team_b_id: str
    status: str
    is_fallback: bool
    started_at: Optional[datetime] = None


class AssignmentResponse(BaseModel):
    status: str  # "assigned" | "idle" | "conflict"
    match: Optional[AssignedMatch] = None
    reason: Optional[str] = None


# ============================================================================
# Endpoints
# ============================================================================


@router.get("/sessions/{session_id}/courts", response_model=List[CourtResponse])
def get_courts(session_id: str, session: Session = Depends(get_session)):
    if not session.get(PlaySession, session_id):
        raise HTTPException(status_code=404, detail="Session not found")
    return session.exec(
        select(Court).where(Court.session_id == session_id).order_by(Court.court_number)
    ).all()


@router.get("/sessions/{session_id}/proposal", response_model=Optional[ProposalResponse])
def get_proposal(session_id: str, session: Session = Depends(get_session)):
    """Preview the next pairing without reserving anything; null when none is legal."""
    try:
        proposal = mutations.preview_next_match(session, session_id)
    except mutations.SessionError as exc:
        raise http_error(exc)
    if proposal is None:
        return None
    return ProposalResponse(
        team_a_id=proposal.team_a_id,
        team_b_id=proposal.team_b_id,
        is_fallback=proposal.is_fallback,
    )


@router.post(
    "/sessions/{session_id}/courts/{court_number}/assign",
    response_model=AssignmentResponse,
    dependencies=[Depends(require_host)],
)
def assign_court(session_id: str, court_number: int, session: Session = Depends(get_session)):
    """
    Put the next legal match on an idle court.

    status:
    - assigned: match created and both teams marked active
    - idle: no legal pairing right now; court left idle
    - conflict: the proposal went stale before commit; nothing written, retry
    """
    try:
        outcome = mutations.assign_next_for_court(session, session_id, court_number)
    except mutations.SessionError as exc:
        raise http_error(exc)
    return AssignmentResponse(
        status=outcome.status,
        match=AssignedMatch.model_validate(outcome.match) if outcome.match else None,
        reason=outcome.reason,
    )
