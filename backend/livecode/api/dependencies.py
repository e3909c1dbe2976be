"""FastAPI dependency injection functions.

The store, server, persistence and settings are built by the application
lifespan and kept on app.state; endpoints reach them only through these
dependencies.
"""
import logging
from typing import Optional

import jwt
from fastapi import Cookie, Depends, Header, Request, WebSocket

from livecode.core.auth import verify_account_token
from livecode.core.config import Settings
from livecode.core.exceptions import PersistenceError, UnauthorizedError
from livecode.services.document_store import DocumentStore
from livecode.services.sync_server import SyncServer
from livecode.storage.backend import AccountRow, GamePersistence

logger = logging.getLogger(__name__)

ACCESS_TOKEN_COOKIE = "access_token"


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_persistence(request: Request) -> GamePersistence:
    return request.app.state.persistence


def get_document_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_sync_server(websocket: WebSocket) -> SyncServer:
    return websocket.app.state.sync_server


def _extract_bearer_token(authorization: str) -> Optional[str]:
    """Extract JWT token from 'Authorization: Bearer <token>' header.

    Returns:
        Token string if valid format, None otherwise.
    """
    parts = authorization.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


async def current_account(
    authorization: Optional[str] = Header(None),
    access_token: Optional[str] = Cookie(None),
    config: Settings = Depends(get_settings),
    persistence: GamePersistence = Depends(get_persistence),
) -> Optional[AccountRow]:
    """
    Dependency returning the logged-in account, or None for anonymous callers.

    The Authorization header takes precedence over the HttpOnly cookie. Bad,
    expired or orphaned tokens are treated as anonymous.
    """
    token = None
    if authorization:
        token = _extract_bearer_token(authorization)
    elif access_token:
        token = access_token
    if not token:
        return None

    try:
        payload = verify_account_token(token, config)
    except (jwt.InvalidTokenError, ValueError) as e:
        logger.debug(f"Ignoring unusable token: {e}")
        return None

    try:
        account_id = int(payload.get("sub", ""))
    except ValueError:
        return None

    try:
        return await persistence.find_account(account_id)
    except PersistenceError as e:
        logger.error(f"Account lookup failed: {e.message}")
        return None


async def get_current_account(
    account: Optional[AccountRow] = Depends(current_account),
) -> AccountRow:
    """
    Dependency requiring a logged-in account.

    Raises:
        UnauthorizedError: no valid credentials were supplied
    """
    if account is None:
        raise UnauthorizedError("Login required")
    return account
