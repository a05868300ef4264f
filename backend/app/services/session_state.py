"""
Bridges stored rows and the pure engine.

Reads build frozen ``SessionSnapshot`` / engine team values; writes copy
engine team values back onto ``Team`` rows and append pair histories.
"""

from typing import FrozenSet, Iterable, List, Sequence, Tuple

from sqlmodel import Session, select

from app.models.met_pair import MetPair
from app.models.play_session import PlaySession
from app.models.player import Player
from app.models.team import Team
from app.models.teammate_pair import TeammatePair
from app.services.engine_types import (
    ROTATION_SIZE,
    EngineTeam,
    PairTeam,
    Phase,
    RosterPlayer,
    RotationTeam,
    SessionSnapshot,
    TeamStats,
)
from app.utils.pair_keys import PairKey, pair_key


def roster_from_rows(rows: Sequence[Player]) -> List[RosterPlayer]:
    return [RosterPlayer(id=row.id, name=row.name) for row in rows]


def team_from_row(row: Team) -> EngineTeam:
    stats = TeamStats(played=row.played, wins=row.wins, losses=row.losses)
    if len(row.player_ids) == ROTATION_SIZE:
        return RotationTeam(
            id=row.id,
            player_ids=tuple(row.player_ids),
            pair_preference=tuple(row.pair_preference or row.player_ids[:2]),
            stats=stats,
            is_active=row.is_active,
            archived=row.archived,
            rotation_index=row.rotation_index or 0,
            pending_odd_choice=row.pending_odd_choice,
        )
    return PairTeam(
        id=row.id,
        player_ids=tuple(row.player_ids),
        stats=stats,
        is_active=row.is_active,
        archived=row.archived,
    )


def team_to_row(team: EngineTeam, session_id: str) -> Team:
    row = Team(id=team.id, session_id=session_id, player_ids=list(team.player_ids))
    apply_team_to_row(team, row)
    return row


def apply_team_to_row(team: EngineTeam, row: Team) -> Team:
    """Copy stats, flags and rotation bookkeeping from *team* onto *row*."""
    row.played = team.stats.played
    row.wins = team.stats.wins
    row.losses = team.stats.losses
    row.is_active = team.is_active
    row.archived = team.archived
    if isinstance(team, RotationTeam):
        row.rotation_index = team.rotation_index
        row.pair_preference = list(team.pair_preference)
        row.pending_odd_choice = team.pending_odd_choice
    return row


def load_live_team_rows(session: Session, session_id: str) -> List[Team]:
    """Non-archived teams, oldest first so scans are deterministic."""
    return list(
        session.exec(
            select(Team)
            .where(Team.session_id == session_id, Team.archived == False)  # noqa: E712
            .order_by(Team.created_at, Team.id)
        ).all()
    )


def load_met_history(session: Session, session_id: str) -> FrozenSet[PairKey]:
    rows = session.exec(select(MetPair).where(MetPair.session_id == session_id)).all()
    return frozenset((r.team_id_a, r.team_id_b) for r in rows)


def load_teammate_history(session: Session, session_id: str) -> FrozenSet[PairKey]:
    rows = session.exec(select(TeammatePair).where(TeammatePair.session_id == session_id)).all()
    return frozenset((r.player_id_a, r.player_id_b) for r in rows)


def load_snapshot(session: Session, play: PlaySession) -> Tuple[SessionSnapshot, List[EngineTeam]]:
    """Consistent read of session state plus live teams for the engine."""
    snapshot = SessionSnapshot(
        phase=Phase(play.phase),
        active_teams=frozenset(play.active_team_ids or []),
        queue_teams=frozenset(play.queue_team_ids or []),
        met_history=load_met_history(session, play.id),
        teammate_history=load_teammate_history(session, play.id),
        locked=play.locked,
    )
    teams = [team_from_row(row) for row in load_live_team_rows(session, play.id)]
    return snapshot, teams


def record_met_pair(session: Session, session_id: str, a: str, b: str) -> bool:
    """Append (a, b) to met history; returns False when it was already there."""
    key_a, key_b = pair_key(a, b)
    existing = session.exec(
        select(MetPair).where(
            MetPair.session_id == session_id,
            MetPair.team_id_a == key_a,
            MetPair.team_id_b == key_b,
        )
    ).first()
    if existing:
        return False
    session.add(MetPair(session_id=session_id, team_id_a=key_a, team_id_b=key_b))
    return True


def record_teammate_pairs(session: Session, session_id: str, pairs: Iterable[PairKey]) -> int:
    """Append any new player pairs to teammate history; returns how many were added."""
    known = load_teammate_history(session, session_id)
    added = 0
    for a, b in sorted(set(pairs) - known):
        session.add(TeammatePair(session_id=session_id, player_id_a=a, player_id_b=b))
        added += 1
    return added
