from pydantic import BaseModel, Field
from typing import Optional

from pharmacy_portal.models.user import UserRole

USERNAME_PATTERN = r"^[a-zA-Z0-9_-]{3,50}$"


class UserBase(BaseModel):
    username: str = Field(..., pattern=USERNAME_PATTERN)


class UserCreate(UserBase):
    password: str = Field(..., min_length=8)


class UserUpdate(BaseModel):
    username: Optional[str] = Field(None, pattern=USERNAME_PATTERN)
    password: Optional[str] = Field(None, min_length=8)


class RoleUpdate(BaseModel):
    role: UserRole


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str


class UserResponse(UserBase):
    id: int
    role: UserRole
    is_active: bool

    class Config:
        from_attributes = True
