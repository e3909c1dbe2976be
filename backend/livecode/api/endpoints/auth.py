"""Authentication API endpoints."""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from livecode.api.dependencies import (
    ACCESS_TOKEN_COOKIE,
    get_current_account,
    get_persistence,
    get_settings,
)
from livecode.core.auth import authenticate, create_account_token
from livecode.core.config import Settings
from livecode.core.security import hash_password
from livecode.schemas.api import AccountResponse, AuthResponse, LoginRequest, SignupRequest
from livecode.storage.backend import AccountRow, GamePersistence

router = APIRouter(prefix="/auth", tags=["authentication"])
logger = logging.getLogger(__name__)


def _session_response(account: AccountRow, config: Settings) -> JSONResponse:
    """Token body plus HttpOnly cookie for a freshly authenticated account."""
    access_token = create_account_token(account.id, account.username, config)
    response_data = AuthResponse(
        access_token=access_token,
        token_type="bearer",
        account=AccountResponse.model_validate(account),
    )
    response = JSONResponse(content=response_data.model_dump(mode="json"))
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=access_token,
        httponly=True,
        secure=not config.DEBUG,
        samesite="lax",
        max_age=config.JWT_EXPIRE_MINUTES * 60,
        path="/",
    )
    return response


@router.post("/signup", response_model=AuthResponse)
async def signup(
    body: SignupRequest,
    config: Settings = Depends(get_settings),
    persistence: GamePersistence = Depends(get_persistence),
):
    """
    Create an account and log it in.

    Raises AccountExistsError (409) when the username is taken, compared
    case-insensitively.
    """
    account = await persistence.create_account(body.username, hash_password(body.password))
    logger.info(f"Account {account.id} ({account.username}) signed up")
    return _session_response(account, config)


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    config: Settings = Depends(get_settings),
    persistence: GamePersistence = Depends(get_persistence),
):
    """Login with username and password."""
    account = await authenticate(persistence, body.username, body.password)
    logger.info(f"Account {account.id} logged in")
    return _session_response(account, config)


@router.post("/logout")
async def logout(config: Settings = Depends(get_settings)):
    """Clear the session cookie."""
    response = JSONResponse(content={"message": "Logged out successfully"})
    response.delete_cookie(
        key=ACCESS_TOKEN_COOKIE,
        path="/",
        httponly=True,
        secure=not config.DEBUG,
        samesite="lax",
    )
    return response


@router.get("/me", response_model=AccountResponse)
async def me(account: AccountRow = Depends(get_current_account)):
    return AccountResponse.model_validate(account)
