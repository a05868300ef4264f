"""
Constraint Evaluator

Side-effect-free predicates over a session snapshot and a team list.
Safe to call concurrently on different snapshots; repeated calls on the
same snapshot give the same answers.
"""

from typing import AbstractSet, List, Sequence, Set, Tuple

from app.services.engine_types import EngineTeam, SessionSnapshot, find_team
from app.utils.pair_keys import team_pair_key


def active_set(snapshot: SessionSnapshot, teams: Sequence[EngineTeam]) -> Set[str]:
    """Recorded active teams unioned with teams flagged active on their own record."""
    active = set(snapshot.active_teams)
    # Reconcile drift between the session record and the team records
    active.update(t.id for t in teams if t.is_active)
    return active


def is_eligible(snapshot: SessionSnapshot, team: EngineTeam) -> bool:
    return not team.is_active and team.id not in snapshot.active_teams


def would_conflict(active: AbstractSet[str], a: str, b: str) -> bool:
    """A self-match or a match involving an already-playing team."""
    return a == b or a in active or b in active


def has_met(snapshot: SessionSnapshot, a: str, b: str) -> bool:
    if a == b:
        return False
    return team_pair_key(a, b) in snapshot.met_history


def safe_opponent_count(
    snapshot: SessionSnapshot,
    teams: Sequence[EngineTeam],
    team_id: str,
    active: AbstractSet[str],
) -> int:
    """Number of legal opponents still open to *team_id* (scarcity signal)."""
    team = find_team(list(teams), team_id)
    if team is None or team.is_active:
        return 0

    count = 0
    for other in teams:
        if other.id == team_id or other.is_active:
            continue
        if would_conflict(active, team_id, other.id):
            continue
        if has_met(snapshot, team_id, other.id):
            continue
        count += 1
    return count


def partition_by_record(teams: Sequence[EngineTeam]) -> Tuple[List[EngineTeam], List[EngineTeam]]:
    """Split into (winners, losers); a level record counts as winning."""
    winners: List[EngineTeam] = []
    losers: List[EngineTeam] = []
    for team in teams:
        if team.stats.wins >= team.stats.losses:
            winners.append(team)
        else:
            losers.append(team)
    return winners, losers
