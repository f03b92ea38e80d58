"""
Task CRUD operations.
Extends CRUDBase with creation, cloning, cascading removal and the
completed and delegated listings.
"""
from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.crud.assignment import crud_assignment
from kanban.crud.attachment import crud_attachment
from kanban.crud.base import CRUDBase
from kanban.crud.checklist import crud_checklist
from kanban.crud.comment import crud_comment
from kanban.crud.link import crud_link
from kanban.models.assignment import TaskUserAssignment
from kanban.models.board import Bucket
from kanban.models.task import Task, TaskStatus
from kanban.schemas.task import AssigneeGrouping, BucketGrouping, DateGrouping, StatusGrouping

# Columns duplicated by a full clone. ticket_id stays with the source task.
CLONED_COLUMNS = ("bucket_id", "subject", "description", "status", "start_date", "end_date")

# Every child table keyed by task_id, in deletion order.
CHILD_COLLECTIONS = {
    "checklist": crud_checklist,
    "links": crud_link,
    "attachments": crud_attachment,
    "comments": crud_comment,
    "assignments": crud_assignment,
}


class CRUDTask(CRUDBase[Task]):

    async def create_task(
        self,
        db: AsyncSession,
        *,
        obj_in: dict[str, Any],
        created_by: uuid.UUID | None,
    ) -> Task:
        task = Task(
            subject=obj_in["subject"],
            bucket_id=obj_in["bucket_id"],
            description=obj_in.get("description"),
            status=obj_in.get("status") or TaskStatus.NOT_BEGUN,
            start_date=obj_in.get("start_date"),
            end_date=obj_in.get("end_date"),
            ticket_id=obj_in.get("ticket_id"),
            created_by=created_by,
            updated_by=created_by,
        )
        db.add(task)
        await db.flush()
        await db.refresh(task)
        return task

    async def clone(
        self,
        db: AsyncSession,
        *,
        source: Task,
        created_by: uuid.UUID | None,
    ) -> Task:
        """Insert a new task carrying the source's scalar columns under a new identity."""
        values = {column: getattr(source, column) for column in CLONED_COLUMNS}
        return await self.create_task(db, obj_in=values, created_by=created_by)

    async def remove_with_children(self, db: AsyncSession, *, task: Task) -> dict[str, int]:
        """
        Delete every child row of the task, then the task itself.
        Returns the number of rows removed per child collection.
        """
        removed = {
            name: await crud.delete_by_task(db, task_id=task.id)
            for name, crud in CHILD_COLLECTIONS.items()
        }
        await db.delete(task)
        await db.flush()
        return removed


    async def list_completed(
        self,
        db: AsyncSession,
        *,
        board_id: uuid.UUID,
        grouping: Any = None,
    ) -> list[Task]:
        """
        Done tasks of a board, optionally narrowed to one group: a bucket, an
        assignee or an end date (None selects tasks without one).
        """
        query = (
            select(Task)
            .join(Bucket, Task.bucket_id == Bucket.id)
            .where(Bucket.board_id == board_id, Task.status == TaskStatus.DONE)
        )
        if isinstance(grouping, BucketGrouping):
            query = query.where(Task.bucket_id == grouping.bucket_id)
        elif isinstance(grouping, AssigneeGrouping):
            query = query.where(
                exists().where(
                    TaskUserAssignment.task_id == Task.id,
                    TaskUserAssignment.user_id == grouping.user_id,
                )
            )
        elif isinstance(grouping, DateGrouping):
            if grouping.end_date is None:
                query = query.where(Task.end_date.is_(None))
            else:
                query = query.where(Task.end_date == grouping.end_date)
        elif isinstance(grouping, StatusGrouping):
            query = query.where(Task.status == grouping.status)
        result = await db.execute(query.order_by(Task.created_at, Task.id))
        return list(result.scalars().all())

    async def list_delegated(self, db: AsyncSession, *, created_by: uuid.UUID) -> list[Task]:
        """Tasks created by the user and assigned to at least one other user."""
        query = select(Task).where(
            Task.created_by == created_by,
            exists().where(
                TaskUserAssignment.task_id == Task.id,
                TaskUserAssignment.user_id != created_by,
            ),
        )
        result = await db.execute(query.order_by(Task.created_at, Task.id))
        return list(result.scalars().all())

crud_task = CRUDTask(Task)
