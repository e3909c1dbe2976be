"""Static language and game-type catalog."""
from dataclasses import dataclass
from typing import Optional

from livecode.schemas.enums import LanguageKind


@dataclass(frozen=True)
class Language:
    """An editor language a stream can be written in."""
    id: int
    name: str
    kind: LanguageKind
    extensions: tuple[str, ...]


@dataclass(frozen=True)
class GameType:
    """A preset lineup of stream kinds."""
    id: int
    name: str
    lineup: tuple[LanguageKind, ...]


LANGUAGES: tuple[Language, ...] = (
    Language(1, "HTML", LanguageKind.MARKUP, ("html", "htm")),
    Language(2, "CSS", LanguageKind.STYLING, ("css",)),
    Language(3, "JavaScript", LanguageKind.LOGIC, ("js", "es6")),
    Language(4, "SCSS", LanguageKind.STYLING, ("scss",)),
    Language(5, "SASS", LanguageKind.STYLING, ("sass",)),
    Language(6, "Stylus", LanguageKind.STYLING, ("styl", "stylus")),
    Language(7, "CoffeeScript", LanguageKind.LOGIC, ("coffee",)),
)

GAME_TYPES: tuple[GameType, ...] = (
    GameType(1, "Classic", (LanguageKind.MARKUP, LanguageKind.STYLING, LanguageKind.LOGIC)),
    GameType(2, "Zen Garden", (LanguageKind.STYLING,)),
    GameType(3, "Custom", ()),
)

_LANGUAGES_BY_ID = {language.id: language for language in LANGUAGES}
_GAME_TYPES_BY_ID = {game_type.id: game_type for game_type in GAME_TYPES}


def get_language(language_id: int) -> Optional[Language]:
    """Resolve a language id against the catalog."""
    return _LANGUAGES_BY_ID.get(language_id)


def get_game_type(game_type_id: int) -> Optional[GameType]:
    """Resolve a game type id against the catalog."""
    return _GAME_TYPES_BY_ID.get(game_type_id)


def default_language_for(kind: LanguageKind) -> Language:
    """First catalog language of a kind (HTML, CSS, JavaScript)."""
    return next(language for language in LANGUAGES if language.kind == kind)


def default_streams_for(game_type: GameType) -> list[int]:
    """Language ids of the streams a game type starts with, in lineup order."""
    return [default_language_for(kind).id for kind in game_type.lineup]
