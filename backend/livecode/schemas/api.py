"""HTTP request and response schemas."""
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

BCRYPT_MAX_PASSWORD_BYTES = 72


class SignupRequest(BaseModel):
    """Account signup request."""
    username: str = Field(..., min_length=2, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
    password: str = Field(..., min_length=6, max_length=100)

    @field_validator("password")
    @classmethod
    def _validate_password(cls, v: str) -> str:
        # bcrypt only takes the first 72 bytes
        if len(v.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValueError(f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes")
        return v


class LoginRequest(BaseModel):
    """Account login request."""
    username: str
    password: str


class AccountResponse(BaseModel):
    """Public account profile."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str


class AuthResponse(BaseModel):
    """Authentication success response."""
    access_token: str
    token_type: str = "bearer"
    account: AccountResponse


class StreamSpecIn(BaseModel):
    """Initial state of one stream in a create-game request."""
    language: int
    active: bool = True
    value: str = ""


class CreateGameRequest(BaseModel):
    """Create a game from explicit streams or from a game type lineup."""
    streams: Optional[list[StreamSpecIn]] = None
    game_type: Optional[int] = None

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "CreateGameRequest":
        if (self.streams is None) == (self.game_type is None):
            raise ValueError("Provide either streams or game_type")
        return self


class AssignPlayerRequest(BaseModel):
    """Assign an account (by username or id) to a stream; null clears it."""
    player: Optional[Union[int, str]] = None


class StreamResponse(BaseModel):
    id: int
    language: int
    active: bool
    value: Optional[str] = None
    sequence: Optional[int] = None
    player_id: Optional[int] = None


class GameResponse(BaseModel):
    guid: str
    owner_id: Optional[int] = None
    streams: list[StreamResponse]


class LanguageResponse(BaseModel):
    id: int
    name: str
    kind: str
    extensions: list[str]


class GameTypeResponse(BaseModel):
    id: int
    name: str
    languages: list[int]


class CatalogResponse(BaseModel):
    languages: list[LanguageResponse]
    game_types: list[GameTypeResponse]
