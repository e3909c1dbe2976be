"""Game API endpoints and the language catalog."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from livecode.api.dependencies import (
    current_account,
    get_current_account,
    get_document_store,
    get_persistence,
)
from livecode.core.exceptions import AccountNotFoundError, InvalidGameTypeError, UnknownStreamError
from livecode.models.document import StreamSpec
from livecode.schemas.api import (
    AssignPlayerRequest,
    CatalogResponse,
    CreateGameRequest,
    GameResponse,
    GameTypeResponse,
    LanguageResponse,
    StreamResponse,
)
from livecode.schemas.languages import GAME_TYPES, LANGUAGES, default_streams_for, get_game_type
from livecode.services.document_store import DocumentStore
from livecode.storage.backend import AccountRow, GamePersistence

router = APIRouter(tags=["games"])
logger = logging.getLogger(__name__)


@router.get("/languages", response_model=CatalogResponse)
async def list_languages():
    """Languages and game-type lineups a game can be created with."""
    return CatalogResponse(
        languages=[
            LanguageResponse(
                id=language.id,
                name=language.name,
                kind=language.kind.value,
                extensions=list(language.extensions),
            )
            for language in LANGUAGES
        ],
        game_types=[
            GameTypeResponse(id=game_type.id, name=game_type.name, languages=default_streams_for(game_type))
            for game_type in GAME_TYPES
        ],
    )


@router.get("/games", response_model=list[GameResponse])
async def list_games(store: DocumentStore = Depends(get_document_store)):
    """Every loaded game without stream values."""
    return [game.to_dict(include_values=False) for game in store.list_games()]


@router.post("/games", response_model=GameResponse, status_code=201)
async def create_game(
    body: CreateGameRequest,
    account: Optional[AccountRow] = Depends(current_account),
    store: DocumentStore = Depends(get_document_store),
):
    """
    Create a game.

    Streams come either from the explicit list or from a game type lineup.
    Anonymous callers create games without an owner.
    """
    if body.streams is not None:
        specs = [StreamSpec(language=spec.language, active=spec.active, value=spec.value) for spec in body.streams]
    else:
        game_type = get_game_type(body.game_type)
        if game_type is None:
            raise InvalidGameTypeError(body.game_type)
        specs = [StreamSpec(language=language_id) for language_id in default_streams_for(game_type)]

    game = await store.create_game(account.id if account else None, specs)
    return game.to_dict()


@router.get("/games/{guid}", response_model=GameResponse)
async def get_game(guid: str, store: DocumentStore = Depends(get_document_store)):
    game = store.get_game(guid)
    if game is None:
        raise UnknownStreamError(guid)
    return game.to_dict()


@router.put("/games/{guid}/streams/{stream_id}/player", response_model=StreamResponse)
async def assign_player(
    guid: str,
    stream_id: int,
    body: AssignPlayerRequest,
    account: AccountRow = Depends(get_current_account),
    store: DocumentStore = Depends(get_document_store),
    persistence: GamePersistence = Depends(get_persistence),
):
    """Assign an account to a stream, or clear the assignment with null."""
    if not store.stream_exists(guid, stream_id):
        raise UnknownStreamError(guid, stream_id)

    player_id = None
    if body.player is not None:
        player = await persistence.find_account(body.player)
        if player is None:
            raise AccountNotFoundError(body.player)
        player_id = player.id

    stream = await store.assign_player(guid, stream_id, player_id)
    logger.info(f"Account {account.id} set player of stream {stream_id} in game {guid} to {player_id}")
    return stream.to_dict()
