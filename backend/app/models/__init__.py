from app.models.court import Court
from app.models.match import Match
from app.models.match_result import MatchResult
from app.models.met_pair import MetPair
from app.models.play_session import PlaySession
from app.models.player import Player
from app.models.team import Team
from app.models.teammate_pair import TeammatePair

__all__ = [
    "PlaySession",
    "Player",
    "Team",
    "Court",
    "Match",
    "MatchResult",
    "MetPair",
    "TeammatePair",
]
