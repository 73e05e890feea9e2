from app.models.game import Game
from app.models.game_legal_status import GameLegalStatus
from app.models.game_rules import GameRules
from app.models.game_source import GameSource
from app.models.match import Match
from app.models.multiplayer_player import MultiplayerPlayer
from app.models.multiplayer_session import MultiplayerSession
from app.models.scoresheet_field import FieldType, ScoresheetField
from app.models.scoresheet_session import ScoresheetSession
from app.models.scoresheet_subcategory import ScoresheetSubcategory
from app.models.scoresheet_template import ScoresheetTemplate
from app.models.series import Series
from app.models.tournament import Tournament, TournamentFormat, TournamentStatus
from app.models.tournament_player import TournamentPlayer
from app.models.user_favorite import UserFavorite

__all__ = [
    "Game",
    "GameRules",
    "GameSource",
    "GameLegalStatus",
    "ScoresheetTemplate",
    "ScoresheetSubcategory",
    "ScoresheetField",
    "FieldType",
    "ScoresheetSession",
    "Series",
    "Tournament",
    "TournamentFormat",
    "TournamentStatus",
    "TournamentPlayer",
    "Match",
    "UserFavorite",
    "MultiplayerSession",
    "MultiplayerPlayer",
]
