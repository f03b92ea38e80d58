"""
Task ↔ user assignment CRUD operations.
Assignment rows have no identity beyond the (task_id, user_id) pair.
"""
from __future__ import annotations

import uuid
from collections.abc import Iterable

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.crud.base import CRUDTaskChild
from kanban.models.assignment import TaskUserAssignment


class CRUDAssignment(CRUDTaskChild[TaskUserAssignment]):
    order_by = "assigned_at"

    async def list_user_ids(self, db: AsyncSession, *, task_id: uuid.UUID) -> list[uuid.UUID]:
        result = await db.execute(
            select(TaskUserAssignment.user_id)
            .where(TaskUserAssignment.task_id == task_id)
            .order_by(TaskUserAssignment.assigned_at, TaskUserAssignment.user_id)
        )
        return list(result.scalars().all())

    async def add(self, db: AsyncSession, *, task_id: uuid.UUID, user_id: uuid.UUID) -> None:
        """
        Insert one pair with a plain INSERT.
        Raises IntegrityError when the pair already exists.
        """
        await db.execute(
            insert(TaskUserAssignment).values(task_id=task_id, user_id=user_id)
        )

    async def delete_except(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        keep: Iterable[uuid.UUID],
    ) -> int:
        """DELETE WHERE task_id = ? AND user_id NOT IN (keep)."""
        keep = list(keep)
        stmt = delete(TaskUserAssignment).where(TaskUserAssignment.task_id == task_id)
        if keep:
            stmt = stmt.where(TaskUserAssignment.user_id.not_in(keep))
        result = await db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount or 0

    async def delete_one(
        self, db: AsyncSession, *, task_id: uuid.UUID, user_id: uuid.UUID
    ) -> bool:
        result = await db.execute(
            delete(TaskUserAssignment)
            .where(
                TaskUserAssignment.task_id == task_id,
                TaskUserAssignment.user_id == user_id,
            )
            .execution_options(synchronize_session=False)
        )
        return (result.rowcount or 0) > 0


crud_assignment = CRUDAssignment(TaskUserAssignment)
