"""
Identity resolution for assignment events.
"""
from __future__ import annotations

import uuid
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from kanban.crud.user import crud_user
from kanban.schemas.user import UserRead

UNASSIGNED_LABEL = "Unassigned"


class IdentityResolver(Protocol):
    async def resolve(self, db: AsyncSession, user_id: uuid.UUID) -> UserRead | None: ...


class UserDirectory:
    """Resolves users from the local users table."""

    async def resolve(self, db: AsyncSession, user_id: uuid.UUID) -> UserRead | None:
        user = await crud_user.get(db, user_id)
        if user is None:
            return None
        return UserRead.model_validate(user)


def display_name(user: UserRead | None) -> str:
    return user.display_name if user is not None else UNASSIGNED_LABEL


user_directory = UserDirectory()
