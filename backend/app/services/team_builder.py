"""
Roster & Team Builder

Turns a flat player pool into teams.

- Initial build: uniform shuffle, then consecutive pairs. An odd pool in
  rotation mode ends with one 3-player rotation team; in "none" mode the
  trailing player sits out.
- Repair build (pairing reset): greedy best-effort pairing that avoids
  repeating earlier teammates. Always terminates; repeats are reported,
  not prevented. Only 2-player teams; an odd leftover stays unpaired.
"""

from __future__ import annotations

import logging
import random
from dataclasses import replace
from typing import AbstractSet, List, Optional, Sequence, Set, Tuple, TypeVar

from app.services.engine_types import (
    MIN_PLAYERS_TO_START,
    ROTATION_SIZE,
    EngineTeam,
    OddMode,
    PairTeam,
    RosterPlayer,
    RotationTeam,
    SessionConfig,
    TeamBuildResult,
)
from app.utils.ids import new_id
from app.utils.pair_keys import PairKey, player_pair_key, pairs_within

logger = logging.getLogger(__name__)

T = TypeVar("T")

WARN_TOO_FEW_PLAYERS = "Need at least 4 players to start doubles matches."
WARN_ROTATION_TEAM = "Odd player mode: created one 3-player team (rotation required when they play)."
WARN_PLAYER_LEFT_OUT = "Odd player count: one player was left out of this round."
WARN_TEAMMATE_REPEAT = "Some teammate-repeat violations were unavoidable."


def shuffle(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Uniform permutation of *items* (Fisher-Yates); the input is left untouched."""
    rng = rng or random.Random()
    pool = list(items)
    rng.shuffle(pool)
    return pool


def _pair_team(a: str, b: str) -> PairTeam:
    return PairTeam(id=new_id(), player_ids=(a, b))


def rotation_pair(player_ids: Sequence[str], index: int) -> Tuple[str, str]:
    """Members playing at rotation *index*: 0 -> (A, B), 1 -> (B, C), 2 -> (C, A)."""
    i = index % ROTATION_SIZE
    return (player_ids[i], player_ids[(i + 1) % ROTATION_SIZE])


def build_initial_teams(
    config: SessionConfig, players: Sequence[RosterPlayer], rng: Optional[random.Random] = None
) -> TeamBuildResult:
    """Build the opening teams from the session roster."""
    result = TeamBuildResult()

    if len(players) < MIN_PLAYERS_TO_START:
        result.warnings.append(WARN_TOO_FEW_PLAYERS)
        return result

    pool = [p.id for p in shuffle(players, rng)]
    is_odd = len(pool) % 2 == 1

    if not is_odd or config.odd_mode == OddMode.NONE:
        for i in range(0, len(pool) - 1, 2):
            result.teams.append(_pair_team(pool[i], pool[i + 1]))
        if is_odd:
            result.warnings.append(WARN_PLAYER_LEFT_OUT)
            logger.info(f"Odd roster without rotation: player {pool[-1]} left out")
        return result

    # Odd roster in rotation mode: the last three shuffled players share a team
    paired = pool[:-ROTATION_SIZE]
    for i in range(0, len(paired), 2):
        result.teams.append(_pair_team(paired[i], paired[i + 1]))

    trio = tuple(pool[-ROTATION_SIZE:])
    result.teams.append(
        RotationTeam(
            id=new_id(),
            player_ids=trio,
            pair_preference=rotation_pair(trio, 0),
            rotation_index=0,
            pending_odd_choice=True,
        )
    )
    result.warnings.append(WARN_ROTATION_TEAM)
    return result


def teammate_history_from_teams(teams: Sequence[EngineTeam]) -> Set[PairKey]:
    """Every unordered intra-team player pair across *teams*."""
    history: Set[PairKey] = set()
    for team in teams:
        history.update(pairs_within(team.player_ids))
    return history


def rebuild_teams_avoiding_teammates(
    players: Sequence[RosterPlayer],
    prior_teammate_history: AbstractSet[PairKey],
    rng: Optional[random.Random] = None,
) -> TeamBuildResult:
    """Greedy repair pairing minimizing teammate repeats.

    Each unplaced player (in shuffled order) takes the first remaining
    player with the lowest penalty: 1 for a previous teammate, 0 otherwise.
    """
    result = TeamBuildResult()
    pool = [p.id for p in shuffle(players, rng)]

    def penalty(a: str, b: str) -> int:
        return 1 if player_pair_key(a, b) in prior_teammate_history else 0

    while len(pool) >= 2:
        first = pool.pop(0)

        best_idx = 0
        best_score = penalty(first, pool[0])
        for idx in range(1, len(pool)):
            if best_score == 0:
                break
            score = penalty(first, pool[idx])
            if score < best_score:
                best_idx, best_score = idx, score

        partner = pool.pop(best_idx)
        if best_score > 0:
            result.warnings.append(WARN_TEAMMATE_REPEAT)
            logger.warning(f"Teammate repeat unavoidable for players {first} and {partner}")

        result.teams.append(_pair_team(first, partner))

    return result


def advance_rotation(team: EngineTeam) -> EngineTeam:
    """Rotation bookkeeping after a finished match; pair teams are returned as-is."""
    if not isinstance(team, RotationTeam):
        return team
    next_index = (team.rotation_index + 1) % ROTATION_SIZE
    return replace(
        team,
        rotation_index=next_index,
        pair_preference=rotation_pair(team.player_ids, next_index),
        pending_odd_choice=True,
    )


def with_pair_preference(team: RotationTeam, pair: Sequence[str]) -> RotationTeam:
    """Host override of which two rotation members play next."""
    pref = tuple(pair)
    if len(pref) != 2 or pref[0] == pref[1] or not set(pref) <= set(team.player_ids):
        raise ValueError(f"Pair {pref} must be 2 distinct members of team {team.id}")
    return replace(team, pair_preference=pref, pending_odd_choice=False)


def default_played_players(team: EngineTeam) -> Tuple[str, ...]:
    """Who played for *team* when the host did not say: the preferred pair for a trio."""
    if isinstance(team, RotationTeam):
        return tuple(team.pair_preference)
    return tuple(team.player_ids)
