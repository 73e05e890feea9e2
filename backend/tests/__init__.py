# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from app.models.game import Game  # noqa: F401
from app.models.match import Match  # noqa: F401
from app.models.scoresheet_session import ScoresheetSession  # noqa: F401
from app.models.scoresheet_template import ScoresheetTemplate  # noqa: F401
from app.models.series import Series  # noqa: F401
from app.models.tournament import Tournament  # noqa: F401
from app.models.tournament_player import TournamentPlayer  # noqa: F401
from app.models.user_favorite import UserFavorite  # noqa: F401
