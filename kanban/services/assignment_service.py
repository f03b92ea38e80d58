"""
Task ↔ user assignment reconciliation.
Shared by the update flow, direct assign/expel and the copy flows.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from kanban.core.exceptions import ForbiddenException
from kanban.crud.assignment import crud_assignment
from kanban.models.task import Task
from kanban.models.user import User
from kanban.services.outcomes import OperationReport, isolated_write

logger = logging.getLogger(__name__)

# Awaited once per pair that was actually inserted / removed.
AssignmentHook = Callable[[AsyncSession, Task, uuid.UUID, OperationReport], Awaitable[None]]

COLLECTION = "assignments"


class AssignmentReconciler:

    def __init__(
        self,
        *,
        on_assigned: AssignmentHook | None = None,
        on_unassigned: AssignmentHook | None = None,
    ) -> None:
        self.on_assigned = on_assigned
        self.on_unassigned = on_unassigned

    async def reconcile(
        self,
        db: AsyncSession,
        *,
        task: Task,
        user_ids: Iterable[uuid.UUID],
        report: OperationReport,
    ) -> list[uuid.UUID]:
        """
        Make the task's assignees equal to user_ids.
        Removed pairs go with one predicate delete; added pairs are inserted one
        by one. Returns the user ids that were newly assigned.
        """
        target = list(dict.fromkeys(user_ids))
        current = set(await crud_assignment.list_user_ids(db, task_id=task.id))

        if current - set(target):
            async with isolated_write(
                db, report, collection=COLLECTION, action="delete", key=task.id
            ):
                removed = await crud_assignment.delete_except(db, task_id=task.id, keep=target)
                logger.debug("Removed %d assignments from task %s", removed, task.id)

        added: list[uuid.UUID] = []
        for user_id in target:
            if user_id in current:
                continue
            if await self.assign(db, task=task, user_id=user_id, report=report):
                added.append(user_id)
        return added

    async def assign(
        self,
        db: AsyncSession,
        *,
        task: Task,
        user_id: uuid.UUID,
        report: OperationReport,
    ) -> bool:
        """
        Insert one pair. A duplicate pair (or unknown user) is recorded as a
        failed outcome and returns False; it never raises.
        """
        async with isolated_write(
            db, report, collection=COLLECTION, action="insert", key=user_id
        ) as attempt:
            await crud_assignment.add(db, task_id=task.id, user_id=user_id)
        if attempt.failed:
            return False
        if self.on_assigned is not None:
            await self.on_assigned(db, task, user_id, report)
        return True

    async def expel(
        self,
        db: AsyncSession,
        *,
        task: Task,
        user_id: uuid.UUID,
        actor: User,
        report: OperationReport,
    ) -> bool:
        """Remove one pair. Only the task creator may expel."""
        if task.created_by != actor.id:
            raise ForbiddenException("Only the task creator may remove assignees")

        async with isolated_write(
            db, report, collection=COLLECTION, action="delete", key=user_id
        ) as attempt:
            removed = await crud_assignment.delete_one(db, task_id=task.id, user_id=user_id)
        if attempt.failed or not removed:
            return False
        if self.on_unassigned is not None:
            await self.on_unassigned(db, task, user_id, report)
        return True
