# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from app.models.court import Court  # noqa: F401
from app.models.match import Match  # noqa: F401
from app.models.match_result import MatchResult  # noqa: F401
from app.models.met_pair import MetPair  # noqa: F401
from app.models.play_session import PlaySession  # noqa: F401
from app.models.player import Player  # noqa: F401
from app.models.team import Team  # noqa: F401
from app.models.teammate_pair import TeammatePair  # noqa: F401
