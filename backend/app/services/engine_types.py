"""
Matchmaking engine value types.

Pure, database-free structures consumed by the team builder, the
constraint evaluator, the match proposer and the phase controller.
Teams come in two explicit shapes: ``PairTeam`` (two players) and
``RotationTeam`` (three players, two of whom play each match).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional, Tuple, Union

from app.utils.pair_keys import PairKey


class Phase(str, Enum):
    COVERAGE = "coverage"
    BRACKET = "bracket"


class OddMode(str, Enum):
    THREE_PLAYER_ROTATION = "three_player_rotation"
    NONE = "none"


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    CANCELED = "canceled"


MIN_PLAYERS_TO_START = 4
ROTATION_SIZE = 3


@dataclass(frozen=True)
class SessionConfig:
    court_count: int
    scoring_target: int = 21
    odd_mode: OddMode = OddMode.THREE_PLAYER_ROTATION


@dataclass(frozen=True)
class TeamStats:
    played: int = 0
    wins: int = 0
    losses: int = 0

    @property
    def margin(self) -> int:
        return self.wins - self.losses

    def record(self, won: bool) -> "TeamStats":
        return TeamStats(
            played=self.played + 1,
            wins=self.wins + (1 if won else 0),
            losses=self.losses + (0 if won else 1),
        )


@dataclass(frozen=True)
class RosterPlayer:
    """Lightweight struct for team-building input."""

    id: str
    name: str = ""


@dataclass(frozen=True)
class PairTeam:
    id: str
    player_ids: Tuple[str, str]
    stats: TeamStats = field(default_factory=TeamStats)
    is_active: bool = False
    archived: bool = False

    def __post_init__(self):
        if len(self.player_ids) != 2 or self.player_ids[0] == self.player_ids[1]:
            raise ValueError(f"PairTeam {self.id} needs 2 distinct players, got {self.player_ids}")


@dataclass(frozen=True)
class RotationTeam:
    """Three-player team absorbing an odd roster; exactly two members play per match.

    ``rotation_index`` picks the pair that plays next:
    0 -> (A, B), 1 -> (B, C), 2 -> (C, A).
    """

    id: str
    player_ids: Tuple[str, str, str]
    pair_preference: Tuple[str, str]
    stats: TeamStats = field(default_factory=TeamStats)
    is_active: bool = False
    archived: bool = False
    rotation_index: int = 0
    pending_odd_choice: bool = True

    def __post_init__(self):
        if len(self.player_ids) != ROTATION_SIZE or len(set(self.player_ids)) != ROTATION_SIZE:
            raise ValueError(f"RotationTeam {self.id} needs 3 distinct players, got {self.player_ids}")
        if not 0 <= self.rotation_index < ROTATION_SIZE:
            raise ValueError(f"rotation_index must be in [0, 3), got {self.rotation_index}")
        pref = self.pair_preference
        if len(pref) != 2 or pref[0] == pref[1] or not set(pref) <= set(self.player_ids):
            raise ValueError(f"pair_preference {pref} must be 2 distinct members of team {self.id}")


EngineTeam = Union[PairTeam, RotationTeam]


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view of session state at one instant."""

    phase: Phase = Phase.COVERAGE
    active_teams: FrozenSet[str] = frozenset()
    queue_teams: FrozenSet[str] = frozenset()
    met_history: FrozenSet[PairKey] = frozenset()
    teammate_history: FrozenSet[PairKey] = frozenset()
    locked: bool = False


@dataclass(frozen=True)
class ProposedMatch:
    team_a_id: str
    team_b_id: str
    is_fallback: bool = False


@dataclass
class TeamBuildResult:
    teams: List[EngineTeam] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def find_team(teams: List[EngineTeam], team_id: str) -> Optional[EngineTeam]:
    for team in teams:
        if team.id == team_id:
            return team
    return None
