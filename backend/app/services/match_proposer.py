"""
Match Proposer: next pairing for an idle court.

Coverage phase: get every team on court once before records matter.
  Rank eligible teams by (never played first, fewest safe opponents,
  fewest played), then take the first non-conflicting, not-yet-met pair
  in scan order.

Bracket phase: competitive matches by running record.
  Winners (wins >= losses) vs winners, then losers vs losers, each group
  ranked by (fewest safe opponents, best margin). When neither group
  yields a pair, any unmet winner-vs-loser pair is proposed as a fallback.

Never mutates anything. ``None`` means "leave the court idle" and is a
normal steady state, not an error.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, Dict, List, Optional, Sequence

from app.services.constraints import (
    active_set,
    has_met,
    partition_by_record,
    safe_opponent_count,
    would_conflict,
)
from app.services.engine_types import EngineTeam, Phase, ProposedMatch, SessionSnapshot

logger = logging.getLogger(__name__)


def _eligible(teams: Sequence[EngineTeam], active: AbstractSet[str]) -> List[EngineTeam]:
    return [t for t in teams if not t.is_active and t.id not in active]


def _opponent_counts(
    snapshot: SessionSnapshot,
    teams: Sequence[EngineTeam],
    candidates: Sequence[EngineTeam],
    active: AbstractSet[str],
) -> Dict[str, int]:
    return {t.id: safe_opponent_count(snapshot, teams, t.id, active) for t in candidates}


def _first_open_pair(
    snapshot: SessionSnapshot,
    ranked: Sequence[EngineTeam],
    active: AbstractSet[str],
) -> Optional[ProposedMatch]:
    for a in ranked:
        for b in ranked:
            if a.id == b.id:
                continue
            if would_conflict(active, a.id, b.id):
                continue
            if has_met(snapshot, a.id, b.id):
                continue
            return ProposedMatch(team_a_id=a.id, team_b_id=b.id)
    return None


def _pick_coverage(snapshot: SessionSnapshot, teams: Sequence[EngineTeam]) -> Optional[ProposedMatch]:
    active = active_set(snapshot, teams)
    eligible = _eligible(teams, active)
    if len(eligible) < 2:
        return None

    options = _opponent_counts(snapshot, teams, eligible, active)

    def rank(team: EngineTeam):
        return (
            0 if team.stats.played == 0 else 1,
            options[team.id],
            team.stats.played,
        )

    ranked = sorted(eligible, key=rank)
    logger.debug(f"Coverage ranking: {[(t.id, rank(t)) for t in ranked]}")
    return _first_open_pair(snapshot, ranked, active)


def _pick_bracket(snapshot: SessionSnapshot, teams: Sequence[EngineTeam]) -> Optional[ProposedMatch]:
    active = active_set(snapshot, teams)
    eligible = _eligible(teams, active)
    if len(eligible) < 2:
        return None

    options = _opponent_counts(snapshot, teams, eligible, active)
    winners, losers = partition_by_record(eligible)

    def rank(team: EngineTeam):
        # fewer options first to avoid dead ends, then best record
        return (options[team.id], -team.stats.margin)

    for group in (winners, losers):
        proposal = _first_open_pair(snapshot, sorted(group, key=rank), active)
        if proposal:
            return proposal

    # Cross-tier only to keep the court busy, and still never a rematch
    for a in winners:
        for b in losers:
            if has_met(snapshot, a.id, b.id):
                continue
            logger.debug(f"Bracket fallback pairing {a.id} vs {b.id}")
            return ProposedMatch(team_a_id=a.id, team_b_id=b.id, is_fallback=True)
    return None


def propose_next_match(snapshot: SessionSnapshot, teams: Sequence[EngineTeam]) -> Optional[ProposedMatch]:
    """Next legal pairing for an idle court, or ``None`` when none exists."""
    if snapshot.phase == Phase.COVERAGE:
        return _pick_coverage(snapshot, teams)
    return _pick_bracket(snapshot, teams)
