"""
Tests for the roster & team builder: initial build, rotation team,
repair pairing and rotation bookkeeping.
"""

import random
from typing import List

import pytest

from app.services.engine_types import (
    OddMode,
    PairTeam,
    RosterPlayer,
    RotationTeam,
    SessionConfig,
)
from app.services.team_builder import (
    WARN_PLAYER_LEFT_OUT,
    WARN_ROTATION_TEAM,
    WARN_TEAMMATE_REPEAT,
    WARN_TOO_FEW_PLAYERS,
    advance_rotation,
    build_initial_teams,
    default_played_players,
    rebuild_teams_avoiding_teammates,
    rotation_pair,
    shuffle,
    teammate_history_from_teams,
    with_pair_preference,
)
from app.utils.pair_keys import player_pair_key

ROTATION = SessionConfig(court_count=2, odd_mode=OddMode.THREE_PLAYER_ROTATION)
NO_ODD = SessionConfig(court_count=2, odd_mode=OddMode.NONE)


def _players(n: int) -> List[RosterPlayer]:
    return [RosterPlayer(id=f"p{i:02d}", name=f"Player {i}") for i in range(1, n + 1)]


def _all_member_ids(teams) -> List[str]:
    return [pid for t in teams for pid in t.player_ids]


class TestShuffle:
    def test_is_a_permutation(self):
        items = list(range(20))
        shuffled = shuffle(items, random.Random(3))
        assert sorted(shuffled) == items

    def test_does_not_touch_input(self):
        items = [1, 2, 3, 4]
        shuffle(items, random.Random(1))
        assert items == [1, 2, 3, 4]


class TestBuildInitialTeams:
    def test_too_few_players(self):
        result = build_initial_teams(ROTATION, _players(3), random.Random(1))
        assert result.teams == []
        assert result.warnings == [WARN_TOO_FEW_PLAYERS]

    def test_even_roster_pairs_everyone(self):
        result = build_initial_teams(ROTATION, _players(8), random.Random(7))
        assert len(result.teams) == 4
        assert all(isinstance(t, PairTeam) for t in result.teams)
        assert sorted(_all_member_ids(result.teams)) == [p.id for p in _players(8)]
        assert result.warnings == []

    def test_nine_players_rotation_mode(self):
        result = build_initial_teams(ROTATION, _players(9), random.Random(11))

        pairs = [t for t in result.teams if isinstance(t, PairTeam)]
        trios = [t for t in result.teams if isinstance(t, RotationTeam)]
        assert len(pairs) == 3
        assert len(trios) == 1

        trio = trios[0]
        assert len(trio.pair_preference) == 2
        assert set(trio.pair_preference) < set(trio.player_ids)
        assert trio.pending_odd_choice is True
        assert trio.rotation_index == 0
        assert sorted(_all_member_ids(result.teams)) == [p.id for p in _players(9)]
        assert WARN_ROTATION_TEAM in result.warnings

    def test_rotation_team_takes_last_three_shuffled(self):
        players = _players(5)
        expected_order = [p.id for p in shuffle(players, random.Random(42))]

        result = build_initial_teams(ROTATION, players, random.Random(42))

        assert result.teams[0].player_ids == tuple(expected_order[:2])
        assert result.teams[1].player_ids == tuple(expected_order[2:])
        assert result.teams[1].pair_preference == tuple(expected_order[2:4])

    def test_odd_roster_without_rotation_drops_trailing_player(self):
        players = _players(7)
        expected_order = [p.id for p in shuffle(players, random.Random(5))]

        result = build_initial_teams(NO_ODD, players, random.Random(5))

        assert len(result.teams) == 3
        assert all(isinstance(t, PairTeam) for t in result.teams)
        assert expected_order[-1] not in _all_member_ids(result.teams)
        assert WARN_PLAYER_LEFT_OUT in result.warnings

    def test_team_ids_are_unique(self):
        result = build_initial_teams(ROTATION, _players(11), random.Random(2))
        ids = [t.id for t in result.teams]
        assert len(ids) == len(set(ids))


class TestTeammateHistory:
    def test_pairs_and_trios(self):
        teams = [
            PairTeam(id="t1", player_ids=("b", "a")),
            RotationTeam(id="t2", player_ids=("c", "d", "e"), pair_preference=("c", "d")),
        ]
        assert teammate_history_from_teams(teams) == {
            ("a", "b"),
            ("c", "d"),
            ("c", "e"),
            ("d", "e"),
        }


class TestRebuildAvoidingTeammates:
    def test_avoids_previous_teammates_when_possible(self):
        players = _players(8)
        first = build_initial_teams(ROTATION, players, random.Random(9))
        history = teammate_history_from_teams(first.teams)

        result = rebuild_teams_avoiding_teammates(players, history, random.Random(10))

        assert len(result.teams) == 4
        repeats = sum(1 for t in result.teams if player_pair_key(*t.player_ids) in history)
        # Each player has one former teammate, so only the final forced pair can repeat
        assert repeats <= 1
        assert result.warnings.count(WARN_TEAMMATE_REPEAT) == repeats

    def test_unavoidable_repeat_is_reported_not_blocked(self):
        players = _players(2)
        history = {player_pair_key("p01", "p02")}

        result = rebuild_teams_avoiding_teammates(players, history, random.Random(1))

        assert len(result.teams) == 1
        assert set(result.teams[0].player_ids) == {"p01", "p02"}
        assert result.warnings == [WARN_TEAMMATE_REPEAT]

    def test_odd_leftover_stays_unpaired(self):
        result = rebuild_teams_avoiding_teammates(_players(7), set(), random.Random(4))
        assert len(result.teams) == 3
        assert all(isinstance(t, PairTeam) for t in result.teams)
        assert len(_all_member_ids(result.teams)) == 6

    def test_ties_broken_by_pool_order(self):
        players = _players(4)
        order = [p.id for p in shuffle(players, random.Random(8))]

        result = rebuild_teams_avoiding_teammates(players, set(), random.Random(8))

        assert result.teams[0].player_ids == (order[0], order[1])
        assert result.teams[1].player_ids == (order[2], order[3])

    def test_skips_penalized_candidate(self):
        players = _players(4)
        order = [p.id for p in shuffle(players, random.Random(8))]
        history = {player_pair_key(order[0], order[1])}

        result = rebuild_teams_avoiding_teammates(players, history, random.Random(8))

        assert result.teams[0].player_ids == (order[0], order[2])
        assert result.teams[1].player_ids == (order[1], order[3])


class TestRotation:
    def _trio(self) -> RotationTeam:
        return RotationTeam(id="t9", player_ids=("a", "b", "c"), pair_preference=("a", "b"))

    def test_rotation_pairs(self):
        ids = ("a", "b", "c")
        assert rotation_pair(ids, 0) == ("a", "b")
        assert rotation_pair(ids, 1) == ("b", "c")
        assert rotation_pair(ids, 2) == ("c", "a")

    @pytest.mark.parametrize("finished", [1, 2, 3, 4, 7])
    def test_index_is_matches_mod_three(self, finished):
        team = self._trio()
        for _ in range(finished):
            team = advance_rotation(team)
        assert team.rotation_index == finished % 3
        assert team.pair_preference == rotation_pair(team.player_ids, finished % 3)
        assert team.pending_odd_choice is True

    def test_pair_team_unchanged(self):
        team = PairTeam(id="t1", player_ids=("a", "b"))
        assert advance_rotation(team) is team

    def test_host_override(self):
        team = with_pair_preference(self._trio(), ["c", "a"])
        assert team.pair_preference == ("c", "a")
        assert team.pending_odd_choice is False
        assert default_played_players(team) == ("c", "a")

    def test_override_rejects_outsider(self):
        with pytest.raises(ValueError):
            with_pair_preference(self._trio(), ["a", "z"])

    def test_invalid_shapes_rejected(self):
        with pytest.raises(ValueError):
            PairTeam(id="bad", player_ids=("a", "a"))
        with pytest.raises(ValueError):
            RotationTeam(id="bad", player_ids=("a", "b", "c"), pair_preference=("a", "b"), rotation_index=3)
