"""
Session Guards and Utilities

Reusable guards for host-only routes and translation of service errors
into HTTP responses.
"""

import hmac

from fastapi import Depends, Header, HTTPException
from sqlmodel import Session

from app.database import get_session
from app.models.play_session import PlaySession
from app.services.session_mutations import (
    CourtBusyError,
    EntityNotFoundError,
    SessionError,
    SessionLockedError,
    SessionNotFoundError,
    SessionPreconditionError,
    StaleRevisionError,
    hash_host_key,
)


def require_host(
    session_id: str,
    x_host_key: str = Header(default=""),
    session: Session = Depends(get_session),
) -> PlaySession:
    """
    Require the caller to present the session's host key.

    Raises:
        HTTPException 404: Session not found
        HTTPException 403: Missing or wrong host key
    """
    play = session.get(PlaySession, session_id)
    if not play:
        raise HTTPException(status_code=404, detail="Session not found")
    if not x_host_key or not hmac.compare_digest(hash_host_key(x_host_key), play.host_key_hash):
        raise HTTPException(status_code=403, detail="NOT_HOST: a valid X-Host-Key header is required")
    return play


def http_error(exc: SessionError) -> HTTPException:
    """Map a rejected session operation to its HTTP status."""
    if isinstance(exc, (SessionNotFoundError, EntityNotFoundError)):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (SessionLockedError, CourtBusyError)):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, StaleRevisionError):
        return HTTPException(status_code=409, detail=f"CONCURRENT_UPDATE: {exc}")
    if isinstance(exc, SessionPreconditionError):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
