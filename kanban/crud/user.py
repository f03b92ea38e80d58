"""
User CRUD operations.
Extends CRUDBase with user-specific queries.
"""
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.crud.base import CRUDBase
from kanban.models.user import User
from kanban.schemas.user import UserCreate


class CRUDUser(CRUDBase[User]):

    async def get_by_username(self, db: AsyncSession, username: str) -> User | None:
        result = await db.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    async def create_user(self, db: AsyncSession, *, obj_in: UserCreate) -> User:
        user = User(
            username=obj_in.username,
            email=obj_in.email,
            full_name=obj_in.full_name,
        )
        db.add(user)
        await db.flush()
        await db.refresh(user)
        return user


crud_user = CRUDUser(User)
