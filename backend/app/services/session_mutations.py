"""
Session Mutations
=================
Host operations against the session store: roster edits, start, court
assignment, match completion, resets.

Every operation commits all of its writes together. The commit is guarded
by a compare-and-set on ``PlaySession.revision``: when another writer
committed in between, nothing is written.

Court assignment keeps the two-phase shape:
  1) plan   - read a snapshot, compute a proposal, write nothing
  2) commit - re-read the court and both teams, re-validate, then write
A proposal that went stale between the two phases is dropped (conflict
outcome) and the court stays idle; callers may simply plan again.
"""

from __future__ import annotations

import hashlib
import logging
import random
import secrets
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlmodel import Session, select

from app.models.court import Court
from app.models.match import Match
from app.models.match_result import MatchResult
from app.models.met_pair import MetPair
from app.models.play_session import PlaySession
from app.models.player import Player
from app.models.team import Team
from app.models.teammate_pair import TeammatePair
from app.services.engine_types import (
    EngineTeam,
    MatchStatus,
    OddMode,
    Phase,
    ProposedMatch,
    RotationTeam,
    SessionConfig,
    TeamBuildResult,
)
from app.services.match_proposer import propose_next_match
from app.services.phase_controller import next_phase
from app.services.session_state import (
    apply_team_to_row,
    load_live_team_rows,
    load_snapshot,
    load_teammate_history,
    record_met_pair,
    record_teammate_pairs,
    roster_from_rows,
    team_from_row,
    team_to_row,
)
from app.services.team_builder import (
    advance_rotation,
    build_initial_teams,
    default_played_players,
    rebuild_teams_avoiding_teammates,
    teammate_history_from_teams,
    with_pair_preference,
)
from app.utils.ids import new_id
from app.utils.pair_keys import team_pair_key

logger = logging.getLogger(__name__)

ASSIGN_ASSIGNED = "assigned"
ASSIGN_IDLE = "idle"
ASSIGN_CONFLICT = "conflict"

OPEN_STATUSES = (MatchStatus.SCHEDULED.value, MatchStatus.IN_PROGRESS.value)
CLOSED_STATUSES = (MatchStatus.FINISHED.value, MatchStatus.CANCELED.value)


# ─── Errors ──────────────────────────────────────────────────────────────


class SessionError(Exception):
    """Base class for rejected session operations"""


class SessionNotFoundError(SessionError):
    pass


class EntityNotFoundError(SessionError):
    """Unknown player, team, court or match id within a session"""


class SessionPreconditionError(SessionError):
    pass


class SessionLockedError(SessionError):
    """Roster edits attempted after play started"""


class CourtBusyError(SessionError):
    pass


class StaleRevisionError(SessionError):
    """Another writer committed between our read and our commit"""


@dataclass
class AssignmentOutcome:
    status: str  # "assigned" | "idle" | "conflict"
    match: Optional[Match] = None
    proposal: Optional[ProposedMatch] = None
    reason: Optional[str] = None


# ─── Helpers ─────────────────────────────────────────────────────────────


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_host_key(host_key: str) -> str:
    return hashlib.sha256(host_key.encode("utf-8")).hexdigest()


def _add_ids(current: Optional[Iterable[str]], ids: Iterable[str]) -> List[str]:
    result = list(current or [])
    for team_id in ids:
        if team_id not in result:
            result.append(team_id)
    return result


def _remove_ids(current: Optional[Iterable[str]], ids: Iterable[str]) -> List[str]:
    drop = set(ids)
    return [team_id for team_id in (current or []) if team_id not in drop]


def _commit(session: Session, play: PlaySession, expected_revision: int) -> None:
    """Flush pending writes and commit only if nobody else committed meanwhile."""
    session.flush()
    result = session.connection().execute(
        update(PlaySession)
        .where(PlaySession.id == play.id, PlaySession.revision == expected_revision)
        .values(revision=expected_revision + 1)
    )
    if result.rowcount != 1:
        session.rollback()
        logger.warning(f"Session {play.id}: revision {expected_revision} is stale, commit aborted")
        raise StaleRevisionError(f"Session {play.id} changed concurrently; retry the operation")
    session.commit()


def get_play_session(session: Session, session_id: str) -> PlaySession:
    play = session.get(PlaySession, session_id, populate_existing=True)
    if not play:
        raise SessionNotFoundError(f"Session {session_id} not found")
    return play


def _get_court(session: Session, session_id: str, court_number: int) -> Court:
    court = session.exec(
        select(Court)
        .where(Court.session_id == session_id, Court.court_number == court_number)
        .execution_options(populate_existing=True)
    ).first()
    if not court:
        raise EntityNotFoundError(f"Court {court_number} not found in session {session_id}")
    return court


def _get_match(session: Session, session_id: str, match_id: str) -> Match:
    match = session.get(Match, match_id, populate_existing=True)
    if not match or match.session_id != session_id:
        raise EntityNotFoundError(f"Match {match_id} not found in session {session_id}")
    return match


def _get_team(session: Session, session_id: str, team_id: str) -> Team:
    team = session.get(Team, team_id, populate_existing=True)
    if not team or team.session_id != session_id:
        raise EntityNotFoundError(f"Team {team_id} not found in session {session_id}")
    return team


def _session_players(session: Session, session_id: str) -> List[Player]:
    return list(
        session.exec(
            select(Player).where(Player.session_id == session_id).order_by(Player.created_at, Player.id)
        ).all()
    )


def _archive_live_teams(session: Session, session_id: str) -> int:
    rows = load_live_team_rows(session, session_id)
    for row in rows:
        row.archived = True
        row.is_active = False
        session.add(row)
    return len(rows)


def _persist_new_teams(session: Session, play: PlaySession, teams: Sequence[EngineTeam]) -> None:
    for team in teams:
        session.add(team_to_row(team, play.id))
    record_teammate_pairs(session, play.id, teammate_history_from_teams(teams))


# ─── Session & roster ────────────────────────────────────────────────────


def create_session(
    session: Session,
    court_count: int,
    odd_mode: OddMode = OddMode.THREE_PLAYER_ROTATION,
    scoring_target: int = 21,
) -> Tuple[PlaySession, str]:
    """Create a session with courts 1..N. Returns (session, host_key)."""
    if court_count < 1:
        raise SessionPreconditionError("At least one court is required")

    host_key = secrets.token_urlsafe(24)
    play = PlaySession(
        id=new_id(),
        host_key_hash=hash_host_key(host_key),
        court_count=court_count,
        scoring_target=scoring_target,
        odd_mode=OddMode(odd_mode).value,
    )
    session.add(play)
    for number in range(1, court_count + 1):
        session.add(Court(session_id=play.id, court_number=number))
    session.commit()
    session.refresh(play)

    logger.info(f"Created session {play.id} with {court_count} courts ({play.odd_mode})")
    return play, host_key


def add_players(session: Session, session_id: str, names: Iterable[str]) -> List[Player]:
    play = get_play_session(session, session_id)
    if play.locked:
        raise SessionLockedError("Roster is locked once play has started")

    cleaned = [name.strip() for name in names if name and name.strip()]
    if not cleaned:
        raise SessionPreconditionError("No player names given")

    revision = play.revision
    players = [Player(id=new_id(8), session_id=play.id, name=name) for name in cleaned]
    for player in players:
        session.add(player)
    _commit(session, play, revision)

    for player in players:
        session.refresh(player)
    return players


def remove_player(session: Session, session_id: str, player_id: str) -> None:
    play = get_play_session(session, session_id)
    if play.locked:
        raise SessionLockedError("Roster is locked once play has started")

    player = session.get(Player, player_id)
    if not player or player.session_id != session_id:
        raise EntityNotFoundError(f"Player {player_id} not found in session {session_id}")
    # Live and archived teams both pin their players
    teams = session.exec(select(Team).where(Team.session_id == session_id)).all()
    if any(player_id in row.player_ids for row in teams):
        raise SessionPreconditionError(f"Player {player_id} still belongs to a team")

    revision = play.revision
    session.delete(player)
    _commit(session, play, revision)


def set_locked(session: Session, session_id: str, locked: bool) -> PlaySession:
    play = get_play_session(session, session_id)
    revision = play.revision
    play.locked = locked
    session.add(play)
    _commit(session, play, revision)
    session.refresh(play)
    return play


def start_session(
    session: Session, session_id: str, rng: Optional[random.Random] = None
) -> TeamBuildResult:
    """Form the opening teams, queue them all and lock the roster."""
    play = get_play_session(session, session_id)
    if play.started_at is not None:
        raise SessionPreconditionError("Session already started")

    config = SessionConfig(
        court_count=play.court_count,
        scoring_target=play.scoring_target,
        odd_mode=OddMode(play.odd_mode),
    )
    result = build_initial_teams(config, roster_from_rows(_session_players(session, session_id)), rng)
    if not result.teams:
        raise SessionPreconditionError(" ".join(result.warnings) or "No teams could be formed")

    revision = play.revision
    _archive_live_teams(session, session_id)
    _persist_new_teams(session, play, result.teams)

    play.queue_team_ids = [team.id for team in result.teams]
    play.active_team_ids = []
    play.phase = Phase.COVERAGE.value
    play.locked = True
    play.started_at = _utcnow()
    session.add(play)
    _commit(session, play, revision)

    logger.info(f"Session {session_id} started with {len(result.teams)} teams")
    return result


# ─── Court assignment ────────────────────────────────────────────────────


def preview_next_match(session: Session, session_id: str) -> Optional[ProposedMatch]:
    """Read-only proposal for display; nothing is reserved."""
    play = get_play_session(session, session_id)
    snapshot, teams = load_snapshot(session, play)
    return propose_next_match(snapshot, teams)


def plan_assignment(session: Session, session_id: str, court_number: int) -> Optional[ProposedMatch]:
    """Phase 1: propose from a snapshot. Writes nothing and ends the read."""
    play = get_play_session(session, session_id)
    court = _get_court(session, session_id, court_number)
    if court.current_match_id:
        raise CourtBusyError(f"Court {court_number} already has match {court.current_match_id}")

    snapshot, teams = load_snapshot(session, play)
    proposal = propose_next_match(snapshot, teams)
    session.rollback()
    return proposal


def _assignment_blocker(
    session: Session, play: PlaySession, team_a: Optional[Team], team_b: Optional[Team]
) -> Optional[str]:
    for team in (team_a, team_b):
        if team is None or team.session_id != play.id:
            return "team no longer exists"
        if team.archived:
            return f"team {team.id} was retired by a pairing reset"
        if team.is_active or team.id in (play.active_team_ids or []):
            return f"team {team.id} is already playing"
    if team_a.id == team_b.id:
        return "a team cannot play itself"

    key_a, key_b = team_pair_key(team_a.id, team_b.id)
    met = session.exec(
        select(MetPair).where(
            MetPair.session_id == play.id,
            MetPair.team_id_a == key_a,
            MetPair.team_id_b == key_b,
        )
    ).first()
    if met:
        return f"teams {team_a.id} and {team_b.id} already met"
    return None


def commit_assignment(
    session: Session,
    session_id: str,
    court_number: int,
    proposal: Optional[ProposedMatch],
) -> AssignmentOutcome:
    """Phase 2: re-validate *proposal* against fresh state and commit it atomically."""
    play = get_play_session(session, session_id)
    court = _get_court(session, session_id, court_number)
    if court.current_match_id:
        raise CourtBusyError(f"Court {court_number} already has match {court.current_match_id}")

    if proposal is None:
        logger.info(f"Session {session_id}: no legal pairing, court {court_number} stays idle")
        return AssignmentOutcome(status=ASSIGN_IDLE)

    revision = play.revision
    team_a = session.get(Team, proposal.team_a_id, populate_existing=True)
    team_b = session.get(Team, proposal.team_b_id, populate_existing=True)

    reason = _assignment_blocker(session, play, team_a, team_b)
    if reason:
        session.rollback()
        logger.warning(f"Session {session_id}: dropped stale proposal for court {court_number}: {reason}")
        return AssignmentOutcome(status=ASSIGN_CONFLICT, proposal=proposal, reason=reason)

    now = _utcnow()
    match = Match(
        id=new_id(),
        session_id=session_id,
        court_id=court.id,
        team_a_id=team_a.id,
        team_b_id=team_b.id,
        status=MatchStatus.IN_PROGRESS.value,
        is_fallback=proposal.is_fallback,
        created_at=now,
        started_at=now,
    )
    session.add(match)

    team_a.is_active = True
    team_b.is_active = True
    session.add(team_a)
    session.add(team_b)

    play.active_team_ids = _add_ids(play.active_team_ids, [team_a.id, team_b.id])
    play.queue_team_ids = _remove_ids(play.queue_team_ids, [team_a.id, team_b.id])
    session.add(play)

    court.current_match_id = match.id
    session.add(court)

    try:
        _commit(session, play, revision)
    except StaleRevisionError as exc:
        return AssignmentOutcome(status=ASSIGN_CONFLICT, proposal=proposal, reason=str(exc))

    session.refresh(match)
    logger.info(
        f"Session {session_id}: court {court_number} -> {match.team_a_id} vs {match.team_b_id}"
        f"{' (fallback)' if match.is_fallback else ''}"
    )
    return AssignmentOutcome(status=ASSIGN_ASSIGNED, match=match, proposal=proposal)


def assign_next_for_court(session: Session, session_id: str, court_number: int) -> AssignmentOutcome:
    proposal = plan_assignment(session, session_id, court_number)
    return commit_assignment(session, session_id, court_number, proposal)


# ─── Match lifecycle ─────────────────────────────────────────────────────


def _resolve_played(team: EngineTeam, supplied: Optional[Sequence[str]]) -> List[str]:
    if supplied is None:
        return list(default_played_players(team))
    ids = list(supplied)
    if len(ids) != 2 or len(set(ids)) != 2 or not set(ids) <= set(team.player_ids):
        raise SessionPreconditionError(f"Played players {ids} must be 2 distinct members of team {team.id}")
    return ids


def _check_scores(*scores: Optional[int]) -> None:
    if any(score is not None and score < 0 for score in scores):
        raise SessionPreconditionError("Scores cannot be negative")


def _release_court(session: Session, match: Match) -> None:
    court = session.get(Court, match.court_id)
    if court and court.current_match_id == match.id:
        court.current_match_id = None
        session.add(court)


def _credit_players(session: Session, player_ids: Sequence[str], won: bool, ended_at: datetime) -> None:
    for player_id in player_ids:
        player = session.get(Player, player_id)
        if not player:
            continue
        player.played += 1
        player.wins += 1 if won else 0
        player.losses += 0 if won else 1
        player.play_history = [*(player.play_history or []), ended_at.isoformat()]
        session.add(player)


def _apply_phase_transition(session: Session, play: PlaySession) -> None:
    teams = [team_from_row(row) for row in load_live_team_rows(session, play.id)]
    current = Phase(play.phase)
    new = next_phase(current, teams)
    if new != current:
        play.phase = new.value
        session.add(play)
        logger.info(f"Session {play.id}: phase {current.value} -> {new.value}")


def finish_match(
    session: Session,
    session_id: str,
    match_id: str,
    winner_team_id: str,
    team_a_played_player_ids: Optional[Sequence[str]] = None,
    team_b_played_player_ids: Optional[Sequence[str]] = None,
    score_a: Optional[int] = None,
    score_b: Optional[int] = None,
) -> Match:
    """Close a match: stats, rotation, met history, queues, court, then phase check."""
    play = get_play_session(session, session_id)
    match = _get_match(session, session_id, match_id)
    if match.status in CLOSED_STATUSES:
        logger.info(f"Session {session_id}: match {match_id} already {match.status}, finish ignored")
        return match
    if winner_team_id not in (match.team_a_id, match.team_b_id):
        raise SessionPreconditionError(f"Winner {winner_team_id} did not play in match {match_id}")
    _check_scores(score_a, score_b)

    revision = play.revision
    row_a = _get_team(session, session_id, match.team_a_id)
    row_b = _get_team(session, session_id, match.team_b_id)
    team_a, team_b = team_from_row(row_a), team_from_row(row_b)

    played_a = _resolve_played(team_a, team_a_played_player_ids)
    played_b = _resolve_played(team_b, team_b_played_player_ids)
    a_won = winner_team_id == team_a.id
    ended_at = _utcnow()

    match.status = MatchStatus.FINISHED.value
    match.ended_at = ended_at
    match.winner_team_id = winner_team_id
    if score_a is not None:
        match.score_a = score_a
    if score_b is not None:
        match.score_b = score_b
    match.team_a_played_player_ids = played_a
    match.team_b_played_player_ids = played_b
    session.add(match)

    for team, row, won in ((team_a, row_a, a_won), (team_b, row_b, not a_won)):
        updated = advance_rotation(replace(team, stats=team.stats.record(won), is_active=False))
        apply_team_to_row(updated, row)
        session.add(row)

    _credit_players(session, played_a, a_won, ended_at)
    _credit_players(session, played_b, not a_won, ended_at)

    record_met_pair(session, session_id, match.team_a_id, match.team_b_id)
    pair = [match.team_a_id, match.team_b_id]
    play.active_team_ids = _remove_ids(play.active_team_ids, pair)
    play.queue_team_ids = _add_ids(play.queue_team_ids, pair)
    session.add(play)

    session.add(
        MatchResult(
            session_id=session_id,
            match_id=match.id,
            court_id=match.court_id,
            team_a_id=match.team_a_id,
            team_b_id=match.team_b_id,
            winner_team_id=winner_team_id,
            is_fallback=match.is_fallback,
            score_a=match.score_a,
            score_b=match.score_b,
            team_a_played_player_ids=played_a,
            team_b_played_player_ids=played_b,
            ended_at=ended_at,
        )
    )
    _release_court(session, match)
    _apply_phase_transition(session, play)
    _commit(session, play, revision)

    session.refresh(match)
    logger.info(f"Session {session_id}: match {match_id} finished, winner {winner_team_id}")
    return match


def cancel_match(session: Session, session_id: str, match_id: str) -> Match:
    """Cancel an open match and release both teams; the pair does not count as met."""
    play = get_play_session(session, session_id)
    match = _get_match(session, session_id, match_id)
    if match.status in CLOSED_STATUSES:
        return match

    revision = play.revision
    match.status = MatchStatus.CANCELED.value
    match.ended_at = _utcnow()
    session.add(match)

    for team_id in (match.team_a_id, match.team_b_id):
        row = session.get(Team, team_id)
        if row:
            row.is_active = False
            session.add(row)

    pair = [match.team_a_id, match.team_b_id]
    play.active_team_ids = _remove_ids(play.active_team_ids, pair)
    play.queue_team_ids = _add_ids(play.queue_team_ids, pair)
    session.add(play)

    _release_court(session, match)
    _commit(session, play, revision)

    session.refresh(match)
    logger.info(f"Session {session_id}: match {match_id} canceled")
    return match


def update_match_score(
    session: Session, session_id: str, match_id: str, score_a: int, score_b: int
) -> Match:
    play = get_play_session(session, session_id)
    match = _get_match(session, session_id, match_id)
    if match.status == MatchStatus.CANCELED.value:
        raise SessionPreconditionError(f"Match {match_id} was canceled")
    _check_scores(score_a, score_b)

    revision = play.revision
    match.score_a = score_a
    match.score_b = score_b
    session.add(match)
    _commit(session, play, revision)
    session.refresh(match)
    return match


def set_pair_preference(
    session: Session, session_id: str, team_id: str, player_ids: Sequence[str]
) -> Team:
    """Host picks which two members of a rotation team play next."""
    play = get_play_session(session, session_id)
    row = _get_team(session, session_id, team_id)
    if row.archived:
        raise SessionPreconditionError(f"Team {team_id} was retired by a pairing reset")

    team = team_from_row(row)
    if not isinstance(team, RotationTeam):
        raise SessionPreconditionError(f"Team {team_id} is not a 3-player rotation team")
    if row.is_active or team_id in (play.active_team_ids or []):
        raise SessionPreconditionError(f"Team {team_id} is playing; change the pair after the match")

    try:
        updated = with_pair_preference(team, player_ids)
    except ValueError as exc:
        raise SessionPreconditionError(str(exc)) from exc

    revision = play.revision
    apply_team_to_row(updated, row)
    session.add(row)
    _commit(session, play, revision)
    session.refresh(row)
    return row


def advance_phase(session: Session, session_id: str) -> Phase:
    """Opportunistic phase check; persists a coverage -> bracket transition."""
    play = get_play_session(session, session_id)
    revision = play.revision
    before = play.phase
    _apply_phase_transition(session, play)
    if play.phase != before:
        _commit(session, play, revision)
    return Phase(play.phase)


# ─── Resets ──────────────────────────────────────────────────────────────


def reset_pairing(
    session: Session, session_id: str, rng: Optional[random.Random] = None
) -> TeamBuildResult:
    """Rebuild 2-player teams avoiding past teammates; met history is kept."""
    play = get_play_session(session, session_id)
    players = roster_from_rows(_session_players(session, session_id))
    result = rebuild_teams_avoiding_teammates(players, load_teammate_history(session, session_id), rng)
    if not result.teams:
        raise SessionPreconditionError("Need at least 2 players to rebuild pairings")

    revision = play.revision
    now = _utcnow()
    open_matches = session.exec(
        select(Match).where(Match.session_id == session_id, Match.status.in_(OPEN_STATUSES))
    ).all()
    for match in open_matches:
        match.status = MatchStatus.CANCELED.value
        match.ended_at = now
        session.add(match)

    for court in session.exec(select(Court).where(Court.session_id == session_id)).all():
        court.current_match_id = None
        session.add(court)

    archived = _archive_live_teams(session, session_id)
    _persist_new_teams(session, play, result.teams)

    play.phase = Phase.COVERAGE.value
    play.active_team_ids = []
    play.queue_team_ids = [team.id for team in result.teams]
    session.add(play)
    _commit(session, play, revision)

    logger.info(
        f"Session {session_id}: pairing reset, archived {archived} teams, "
        f"created {len(result.teams)}, canceled {len(open_matches)} matches"
    )
    return result


def reset_stats(session: Session, session_id: str) -> int:
    """Zero every player's stats and play history; returns the number of players."""
    play = get_play_session(session, session_id)
    revision = play.revision
    players = _session_players(session, session_id)
    for player in players:
        player.played = 0
        player.wins = 0
        player.losses = 0
        player.play_history = []
        session.add(player)
    _commit(session, play, revision)
    return len(players)


def reset_all(session: Session, session_id: str, keep_names: bool) -> PlaySession:
    """Back to a fresh, unlocked session; players optionally kept with zeroed stats."""
    play = get_play_session(session, session_id)
    revision = play.revision

    for model in (MatchResult, Match, MetPair, TeammatePair, Team):
        for row in session.exec(select(model).where(model.session_id == session_id)).all():
            session.delete(row)
        session.flush()

    for court in session.exec(select(Court).where(Court.session_id == session_id)).all():
        court.current_match_id = None
        session.add(court)

    for player in _session_players(session, session_id):
        if keep_names:
            player.played = 0
            player.wins = 0
            player.losses = 0
            player.play_history = []
            session.add(player)
        else:
            session.delete(player)

    play.phase = Phase.COVERAGE.value
    play.active_team_ids = []
    play.queue_team_ids = []
    play.started_at = None
    play.locked = False
    session.add(play)
    _commit(session, play, revision)

    session.refresh(play)
    logger.info(f"Session {session_id}: full reset (keep_names={keep_names})")
    return play
