from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import uuid

from pharmacy_portal.models.user import User
from pharmacy_portal.core import get_settings

settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class SecurityService:
    """Password hashing and JWT handling for portal accounts"""

    @staticmethod
    def create_password_hash(password: str) -> str:
        return pwd_context.hash(password)

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        return pwd_context.verify(plain_password, hashed_password)

    @staticmethod
    async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
        query = select(User).where(User.username == username)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
        query = select(User).where(User.id == user_id)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def authenticate_user(db: AsyncSession, username: str, password: str) -> Optional[User]:
        user = await SecurityService.get_user_by_username(db, username)
        if not user:
            return None

        if not SecurityService.verify_password(password, user.hashed_password):
            return None

        return user

    @staticmethod
    def _encode(data: Dict[str, Any], token_type: str, expires_delta: timedelta) -> str:
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + expires_delta
        to_encode.update({"exp": expire, "type": token_type})
        return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        return SecurityService._encode(
            data,
            "access",
            expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    @staticmethod
    def create_refresh_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        # Unique jti so two refresh tokens are never identical
        payload = {**data, "jti": str(uuid.uuid4())}
        return SecurityService._encode(
            payload,
            "refresh",
            expires_delta or timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        )

    @staticmethod
    def create_tokens(user: User) -> Dict[str, str]:
        token_data = {"sub": str(user.id), "role": user.role.value}
        return {
            "access_token": SecurityService.create_access_token(token_data),
            "refresh_token": SecurityService.create_refresh_token(token_data),
            "token_type": "bearer",
        }

    @staticmethod
    def verify_token(token: str, token_type: str = "access") -> Optional[Dict[str, Any]]:
        """Payload of a valid token of the given type, otherwise None"""
        try:
            # jose rejects expired tokens itself
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            return None

        if payload.get("type") != token_type:
            return None
        return payload

    @staticmethod
    async def get_current_user(db: AsyncSession, token: str) -> Optional[User]:
        payload = SecurityService.verify_token(token)
        if not payload:
            return None

        user_id = payload.get("sub")
        if user_id is None:
            return None

        return await SecurityService.get_user_by_id(db, int(user_id))

    @staticmethod
    async def refresh_tokens(db: AsyncSession, refresh_token: str) -> Optional[Dict[str, str]]:
        payload = SecurityService.verify_token(refresh_token, token_type="refresh")
        if not payload:
            return None

        user_id = payload.get("sub")
        if user_id is None:
            return None

        user = await SecurityService.get_user_by_id(db, int(user_id))
        if not user or not user.is_active:
            return None

        return SecurityService.create_tokens(user)
