from app.services.engine_types import PairTeam, Phase, TeamStats
from app.services.phase_controller import next_phase


def _team(team_id: str, played: int) -> PairTeam:
    return PairTeam(id=team_id, player_ids=(f"{team_id}1", f"{team_id}2"), stats=TeamStats(played=played))


def test_stays_in_coverage_until_everyone_played():
    teams = [_team("A", 1), _team("B", 0)]
    assert next_phase(Phase.COVERAGE, teams) == Phase.COVERAGE


def test_moves_to_bracket_when_all_played():
    teams = [_team("A", 1), _team("B", 3)]
    assert next_phase(Phase.COVERAGE, teams) == Phase.BRACKET


def test_bracket_is_terminal():
    assert next_phase(Phase.BRACKET, [_team("A", 0)]) == Phase.BRACKET


def test_no_teams_keeps_coverage():
    assert next_phase(Phase.COVERAGE, []) == Phase.COVERAGE
