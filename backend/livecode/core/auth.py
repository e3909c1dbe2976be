"""JWT utilities for account sessions."""
import jwt
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict

from livecode.core.config import Settings, settings as default_settings
from livecode.core.exceptions import InvalidCredentialsError
from livecode.core.security import verify_password
from livecode.storage.backend import AccountRow, GamePersistence


def _secret(config: Settings) -> str:
    if not config.JWT_SECRET_KEY:
        raise ValueError("JWT_SECRET_KEY not configured")
    return config.JWT_SECRET_KEY


def create_account_token(account_id: int, username: str, config: Optional[Settings] = None) -> str:
    """
    Create JWT token for a logged-in account.

    Args:
        account_id: Account primary key
        username: Account username (informational claim)
        config: Settings to sign with, defaults to process settings

    Returns:
        JWT token string
    """
    config = config or default_settings
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(account_id),
        "username": username,
        "jti": str(uuid.uuid4()),
        "iat": int(now.timestamp()),
        "exp": now + timedelta(minutes=config.JWT_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, _secret(config), algorithm=config.JWT_ALGORITHM)


def verify_account_token(token: str, config: Optional[Settings] = None) -> Dict:
    """
    Verify and decode JWT token.

    Raises:
        jwt.ExpiredSignatureError: Token has expired
        jwt.InvalidTokenError: Token is invalid
    """
    config = config or default_settings
    return jwt.decode(
        token,
        _secret(config),
        algorithms=[config.JWT_ALGORITHM]
    )


async def authenticate(persistence: GamePersistence, username: str, password: str) -> AccountRow:
    """
    Resolve an account from a username and password.

    Raises:
        InvalidCredentialsError: Unknown username or wrong password
    """
    account = await persistence.find_account(username)
    if account is None or not verify_password(password, account.password_hash):
        raise InvalidCredentialsError()
    return account
