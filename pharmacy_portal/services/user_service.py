from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete

from pharmacy_portal.models.user import User, UserRole
from pharmacy_portal.services.security_service import SecurityService


class UserService:
    """CRUD operations for portal accounts"""

    @staticmethod
    async def create(
        db: AsyncSession,
        username: str,
        password: str,
        role: UserRole = UserRole.USER,
        is_active: bool = True,
    ) -> User:
        user = User(
            username=username,
            hashed_password=SecurityService.create_password_hash(password),
            role=role,
            is_active=is_active,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
        query = select(User).where(User.id == user_id)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_by_username(db: AsyncSession, username: str) -> Optional[User]:
        query = select(User).where(User.username == username)
        result = await db.execute(query)
        return result.scalars().first()

    @staticmethod
    async def get_all(db: AsyncSession, skip: int = 0, limit: int = 100) -> List[User]:
        query = select(User).order_by(User.username).offset(skip).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def update(
        db: AsyncSession,
        user_id: int,
        username: Optional[str] = None,
        password: Optional[str] = None,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
    ) -> Optional[User]:
        update_data = {}
        if username is not None:
            update_data["username"] = username
        if password is not None:
            update_data["hashed_password"] = SecurityService.create_password_hash(password)
        if role is not None:
            update_data["role"] = role
        if is_active is not None:
            update_data["is_active"] = is_active

        if not update_data:
            return await UserService.get_by_id(db, user_id)

        stmt = update(User).where(User.id == user_id).values(**update_data)
        await db.execute(stmt)
        await db.commit()

        return await UserService.get_by_id(db, user_id)

    @staticmethod
    async def delete(db: AsyncSession, user_id: int) -> bool:
        stmt = delete(User).where(User.id == user_id)
        result = await db.execute(stmt)
        await db.commit()
        return result.rowcount > 0
