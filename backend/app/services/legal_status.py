"""
Play-legality for catalog games.

A stored GameLegalStatus row always wins. Games without one get a status
inferred from name and category; only public-domain titles, traditional card
games and RPG mechanics are playable in-app. Everything else is scoresheet-only.
"""
import re
from dataclasses import dataclass, field
from typing import List, Optional

from sqlmodel import Session, select

from app.models.game import Game
from app.models.game_legal_status import GameLegalStatus

PUBLIC_DOMAIN_GAMES = [
    "chess",
    "checkers",
    "backgammon",
    "go",
    "mancala",
    "dominoes",
    "tic-tac-toe",
    "connect four",
    "battleship",
    "yahtzee",
]


@dataclass
class LegalStatus:
    can_play: bool
    reason: Optional[str] = None
    license_info: Optional[str] = None
    copyright_owner: Optional[str] = None
    play_restrictions: List[str] = field(default_factory=list)
    inferred: bool = False


def _is_public_domain(name: str) -> bool:
    # whole words only, or "Mongoose" would match "go"
    lowered = name.lower()
    return any(re.search(rf"\b{re.escape(title)}\b", lowered) for title in PUBLIC_DOMAIN_GAMES)


def infer_legal_status(game: Game) -> LegalStatus:
    if _is_public_domain(game.name):
        return LegalStatus(
            can_play=True,
            reason="Game is in the public domain",
            license_info="Public Domain",
            inferred=True,
        )

    if game.category == "Card Games" and not game.is_official:
        return LegalStatus(
            can_play=True,
            reason="Traditional card game rules are not copyrightable",
            license_info="Game rules are not subject to copyright, but specific implementations may be",
            play_restrictions=["No commercial use without proper licensing"],
            inferred=True,
        )

    if game.category == "Role Playing":
        return LegalStatus(
            can_play=True,
            reason="Basic game mechanics are implemented, but proprietary content is not included",
            license_info="Game mechanics are not subject to copyright, but specific content is protected",
            copyright_owner=game.created_by or "Unknown",
            play_restrictions=[
                "No proprietary content included",
                "For personal use only",
                "Players should own the official game materials",
            ],
            inferred=True,
        )

    return LegalStatus(
        can_play=False,
        reason="This game is under copyright protection and cannot be played directly in the app",
        license_info="Copyright protected",
        copyright_owner=game.created_by or "Unknown",
        play_restrictions=[
            "Scoresheet functionality only",
            "No digital implementation of gameplay",
            "For use with physical game only",
        ],
        inferred=True,
    )


def resolve_legal_status(session: Session, game: Game) -> LegalStatus:
    stored = session.exec(select(GameLegalStatus).where(GameLegalStatus.game_id == game.id)).first()
    if stored is None:
        return infer_legal_status(game)
    return LegalStatus(
        can_play=stored.can_play,
        reason=stored.reason,
        license_info=stored.license_info,
        copyright_owner=stored.copyright_owner,
        play_restrictions=list(stored.play_restrictions or []),
    )
