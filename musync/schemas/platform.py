from datetime import datetime

from pydantic import BaseModel

from musync.models.platform import PlatformType


class TokenPair(BaseModel):
    """Credentials returned by a provider token endpoint."""

    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None


class AuthUrlResponse(BaseModel):
    platform_type: PlatformType
    auth_url: str
    state: str


class PlatformStatus(BaseModel):
    """Connection state of a platform. Tokens are never included."""

    id: int
    type: PlatformType
    is_connected: bool
    connected_at: datetime | None = None

    class Config:
        from_attributes = True
