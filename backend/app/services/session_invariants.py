"""
Session Invariant Verifier
==========================
Read-only audit of stored session state.

Invariants:
  A) No team is both active and queued
  B) A team flagged active is in the session's active set
  C) No two in-progress matches share a team
  D) A court points at a match iff that match is in progress on it
  E) Rotation index of a 3-player team is in [0, 3)
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlmodel import Session, select

from app.models.court import Court
from app.models.match import Match
from app.services.engine_types import ROTATION_SIZE, MatchStatus
from app.services.session_mutations import get_play_session
from app.services.session_state import load_live_team_rows


@dataclass
class Violation:
    code: str
    message: str
    team_id: Optional[str] = None
    match_id: Optional[str] = None
    court_number: Optional[int] = None


@dataclass
class InvariantReport:
    ok: bool
    violations: List[Violation] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "violations": [
                {
                    "code": v.code,
                    "message": v.message,
                    "team_id": v.team_id,
                    "match_id": v.match_id,
                    "court_number": v.court_number,
                }
                for v in self.violations
            ],
        }


def verify_session_invariants(session: Session, session_id: str) -> InvariantReport:
    play = get_play_session(session, session_id)
    violations: List[Violation] = []

    active = set(play.active_team_ids or [])
    queued = set(play.queue_team_ids or [])
    for team_id in sorted(active & queued):
        violations.append(Violation("ACTIVE_AND_QUEUED", f"Team {team_id} is both active and queued", team_id=team_id))

    for row in load_live_team_rows(session, session_id):
        if row.is_active and row.id not in active:
            violations.append(
                Violation("ACTIVE_FLAG_DRIFT", f"Team {row.id} is flagged active but not in the active set", team_id=row.id)
            )
        if len(row.player_ids) == ROTATION_SIZE and not 0 <= (row.rotation_index or 0) < ROTATION_SIZE:
            violations.append(
                Violation("ROTATION_RANGE", f"Team {row.id} has rotation index {row.rotation_index}", team_id=row.id)
            )

    in_progress = session.exec(
        select(Match).where(Match.session_id == session_id, Match.status == MatchStatus.IN_PROGRESS.value)
    ).all()
    matches_by_team: Dict[str, List[str]] = defaultdict(list)
    in_progress_by_court: Dict[int, List[str]] = defaultdict(list)
    for m in in_progress:
        matches_by_team[m.team_a_id].append(m.id)
        matches_by_team[m.team_b_id].append(m.id)
        in_progress_by_court[m.court_id].append(m.id)
    for team_id, match_ids in sorted(matches_by_team.items()):
        if len(match_ids) > 1:
            violations.append(
                Violation("TEAM_DOUBLE_BOOKED", f"Team {team_id} is in matches {sorted(match_ids)}", team_id=team_id)
            )

    courts = session.exec(select(Court).where(Court.session_id == session_id).order_by(Court.court_number)).all()
    for court in courts:
        running = in_progress_by_court.get(court.id, [])
        if court.current_match_id is None and running:
            violations.append(
                Violation(
                    "COURT_POINTER_MISSING",
                    f"Court {court.court_number} is idle but match {running[0]} is in progress on it",
                    match_id=running[0],
                    court_number=court.court_number,
                )
            )
        elif court.current_match_id is not None and court.current_match_id not in running:
            violations.append(
                Violation(
                    "COURT_POINTER_STALE",
                    f"Court {court.court_number} points at {court.current_match_id}, which is not in progress there",
                    match_id=court.current_match_id,
                    court_number=court.court_number,
                )
            )

    return InvariantReport(ok=not violations, violations=violations)
