"""
Phase Controller: coverage -> bracket, one way.

The transition fires once every current team has played at least one
match. Callers decide when to check; nothing here polls.
"""

from typing import Sequence

from app.services.engine_types import EngineTeam, Phase


def next_phase(current: Phase, teams: Sequence[EngineTeam]) -> Phase:
    if current == Phase.COVERAGE and teams and all(t.stats.played >= 1 for t in teams):
        return Phase.BRACKET
    return current
