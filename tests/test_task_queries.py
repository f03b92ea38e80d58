"""
Task listing tests.
Covers: completed tasks of a board with group filters and the read-only flag,
and tasks delegated by their creator.
"""
from __future__ import annotations

import uuid
from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.core.exceptions import NotFoundException, UnauthorizedException
from kanban.crud.assignment import crud_assignment
from kanban.crud.board import crud_board, crud_bucket
from kanban.crud.task import crud_task
from kanban.schemas.task import resolve_grouping

pytestmark = pytest.mark.asyncio


class TestCompleted:
    async def test_only_done_tasks_of_the_board(
        self, db: AsyncSession, service, make_task, bucket, creator
    ) -> None:
        done = await make_task("Shipped", status="done")
        await make_task("Still open", status="in_progress")
        foreign_board = await crud_board.create_board(db, name="Elsewhere", created_by=creator.id)
        foreign_bucket = await crud_bucket.create_bucket(db, board_id=foreign_board.id, name="Done")
        await crud_task.create_task(
            db,
            obj_in={"subject": "Other board", "bucket_id": foreign_bucket.id, "status": "done"},
            created_by=creator.id,
        )

        result = await service.list_completed(db, board_id=bucket.board_id, current_user=creator)

        assert [t.id for t in result.tasks] == [done.id]
        assert result.board.id == bucket.board_id

    async def test_filter_by_bucket(
        self, db: AsyncSession, service, make_task, bucket, other_bucket, creator
    ) -> None:
        await make_task("Backlog item", status="done")
        doing = await make_task("Doing item", status="done", bucket_id=other_bucket.id)

        result = await service.list_completed(
            db,
            board_id=bucket.board_id,
            grouping=resolve_grouping(bucket_id=other_bucket.id),
            current_user=creator,
        )

        assert [t.id for t in result.tasks] == [doing.id]

    async def test_filter_by_assignee(
        self, db: AsyncSession, service, make_task, bucket, creator, member
    ) -> None:
        mine = await make_task("Assigned", status="done")
        await make_task("Unassigned", status="done")
        await crud_assignment.add(db, task_id=mine.id, user_id=member.id)

        result = await service.list_completed(
            db,
            board_id=bucket.board_id,
            grouping=resolve_grouping(user_id=member.id),
            current_user=creator,
        )

        assert [t.id for t in result.tasks] == [mine.id]

    async def test_filter_by_date_and_no_date(
        self, db: AsyncSession, service, make_task, bucket, creator
    ) -> None:
        dated = await make_task("Dated", status="done", end_date=date(2026, 9, 30))
        undated = await make_task("Undated", status="done")

        on_day = await service.list_completed(
            db,
            board_id=bucket.board_id,
            grouping=resolve_grouping(date="2026-09-30"),
            current_user=creator,
        )
        no_day = await service.list_completed(
            db,
            board_id=bucket.board_id,
            grouping=resolve_grouping(date=""),
            current_user=creator,
        )

        assert [t.id for t in on_day.tasks] == [dated.id]
        assert [t.id for t in no_day.tasks] == [undated.id]

    async def test_private_board_is_readonly_for_non_members(
        self, db: AsyncSession, service, bucket, creator, member
    ) -> None:
        await crud_board.add_member(db, board_id=bucket.board_id, user_id=member.id)

        outsider = await service.list_completed(db, board_id=bucket.board_id, current_user=creator)
        insider = await service.list_completed(db, board_id=bucket.board_id, current_user=member)

        assert outsider.readonly is True
        assert insider.readonly is False

    async def test_public_board_is_never_readonly(
        self, db: AsyncSession, service, bucket, creator, third_user
    ) -> None:
        board = await crud_board.get(db, bucket.board_id)
        await crud_board.update(db, db_obj=board, obj_in={"is_public": True})

        result = await service.list_completed(db, board_id=bucket.board_id, current_user=third_user)

        assert result.readonly is False

    async def test_unknown_board(self, db: AsyncSession, service, creator) -> None:
        with pytest.raises(NotFoundException):
            await service.list_completed(db, board_id=uuid.uuid4(), current_user=creator)


class TestDelegated:
    async def test_tasks_assigned_to_others(
        self, db: AsyncSession, service, make_task, bucket, creator, member
    ) -> None:
        delegated = await make_task("For member")
        await crud_assignment.add(db, task_id=delegated.id, user_id=member.id)
        own = await make_task("For me")
        await crud_assignment.add(db, task_id=own.id, user_id=creator.id)
        await make_task("Nobody")
        by_member = await crud_task.create_task(
            db, obj_in={"subject": "Member's", "bucket_id": bucket.id}, created_by=member.id
        )
        await crud_assignment.add(db, task_id=by_member.id, user_id=creator.id)

        tasks = await service.list_delegated(db, current_user=creator)

        assert [t.id for t in tasks] == [delegated.id]

    async def test_shared_with_self_and_others_is_listed_once(
        self, db: AsyncSession, service, make_task, creator, member, third_user
    ) -> None:
        task = await make_task()
        for user in (creator, member, third_user):
            await crud_assignment.add(db, task_id=task.id, user_id=user.id)

        tasks = await service.list_delegated(db, current_user=creator)

        assert [t.id for t in tasks] == [task.id]

    async def test_requires_an_actor(self, db: AsyncSession, service) -> None:
        with pytest.raises(UnauthorizedException):
            await service.list_delegated(db, current_user=None)
