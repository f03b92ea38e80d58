"""
Task copy tests.
Covers: selective copy toggles and copy-per-user duplication.
"""
from __future__ import annotations

import uuid
from datetime import date

import pytest
import pytest_asyncio
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.core.exceptions import NotFoundException
from kanban.crud.assignment import crud_assignment
from kanban.crud.attachment import crud_attachment
from kanban.crud.checklist import crud_checklist
from kanban.crud.link import crud_link
from kanban.crud.task import crud_task
from kanban.models import Task
from kanban.schemas.task import TaskCopy, TaskCopyPerUser

pytestmark = pytest.mark.asyncio

ALL_TOGGLES = {
    "copy_description": True,
    "copy_dates": True,
    "copy_status": True,
    "copy_assignment": True,
    "copy_checklist": True,
    "copy_attachments": True,
    "copy_links": True,
}


@pytest_asyncio.fixture
async def source(db: AsyncSession, make_task, member, third_user) -> Task:
    task = await make_task(
        "Quarterly report",
        description="Numbers for Q3",
        status="in_progress",
        start_date=date(2026, 9, 1),
        end_date=date(2026, 9, 30),
        ticket_id=42,
    )
    for position, name in enumerate(["Collect", "Analyse", "Write"]):
        await crud_checklist.create_from_dict(
            db, obj_in={"task_id": task.id, "name": name, "sort": position, "is_done": position == 0}
        )
    await crud_link.create_from_dict(
        db, obj_in={"task_id": task.id, "url": "https://wiki.example.com/q3", "name": "Wiki"}
    )
    await crud_attachment.create_from_dict(
        db,
        obj_in={
            "task_id": task.id,
            "name": "q3.xlsx",
            "mime_type": "application/vnd.ms-excel",
            "size": 2048,
            "path": "/uploads/q3.xlsx",
            "card_show": True,
        },
    )
    await crud_assignment.add(db, task_id=task.id, user_id=member.id)
    await crud_assignment.add(db, task_id=task.id, user_id=third_user.id)
    return task


class TestSelectiveCopy:
    async def test_all_toggles_off_copies_subject_and_bucket_only(
        self, db: AsyncSession, service, sink, source, creator, other_bucket
    ) -> None:
        result = await service.copy_task(
            db,
            task_id=source.id,
            copy_in=TaskCopy(subject="Q4 report", bucket_id=other_bucket.id),
            current_user=creator,
        )

        copy = result.task
        assert copy.id != source.id
        assert copy.subject == "Q4 report"
        assert copy.bucket_id == other_bucket.id
        assert copy.description is None
        assert copy.start_date is None
        assert copy.end_date is None
        assert copy.status == "not_begun"
        assert copy.ticket_id is None
        for crud in (crud_checklist, crud_link, crud_attachment, crud_assignment):
            assert await crud.count_by_task(db, task_id=copy.id) == 0
        assert sink.kinds == ["task_created"]

    async def test_defaults_to_source_subject_and_bucket(
        self, db: AsyncSession, service, source, creator
    ) -> None:
        result = await service.copy_task(
            db, task_id=source.id, copy_in=TaskCopy(), current_user=creator
        )

        assert result.task.subject == source.subject
        assert result.task.bucket_id == source.bucket_id

    async def test_all_toggles_on_matches_source(
        self, db: AsyncSession, service, sink, source, creator, member, third_user
    ) -> None:
        result = await service.copy_task(
            db,
            task_id=source.id,
            copy_in=TaskCopy(**ALL_TOGGLES),
            current_user=creator,
        )

        copy = result.task
        assert copy.description == source.description
        assert copy.start_date == source.start_date
        assert copy.end_date == source.end_date
        assert copy.status == source.status
        assert set(await crud_assignment.list_user_ids(db, task_id=copy.id)) == {
            member.id,
            third_user.id,
        }

        source_items = await crud_checklist.list_by_task(db, task_id=source.id)
        copied_items = await crud_checklist.list_by_task(db, task_id=copy.id)
        assert [i.name for i in copied_items] == [i.name for i in source_items]
        assert {i.id for i in copied_items}.isdisjoint({i.id for i in source_items})

        (link,) = await crud_link.list_by_task(db, task_id=copy.id)
        assert (link.url, link.name) == ("https://wiki.example.com/q3", "Wiki")

        (attachment,) = await crud_attachment.list_by_task(db, task_id=copy.id)
        assert attachment.path == "/uploads/q3.xlsx"
        assert attachment.card_show is True
        assert attachment.size == 2048

        assert result.report.ok
        assert sink.kinds == ["task_created", "task_assigned", "task_assigned"]

    async def test_unknown_target_bucket(self, db: AsyncSession, service, source, creator) -> None:
        with pytest.raises(NotFoundException):
            await service.copy_task(
                db,
                task_id=source.id,
                copy_in=TaskCopy(bucket_id=uuid.uuid4()),
                current_user=creator,
            )


class TestCopyPerUser:
    async def test_one_duplicate_per_user(
        self, db: AsyncSession, service, sink, source, creator, member, third_user
    ) -> None:
        users = [creator, member, third_user]

        result = await service.copy_task_per_user(
            db,
            task_id=source.id,
            copy_in=TaskCopyPerUser(assignees=[u.id for u in users]),
            current_user=creator,
        )

        assert len(result.tasks) == len(users)
        source_item_ids = {i.id for i in await crud_checklist.list_by_task(db, task_id=source.id)}
        for duplicate, user in zip(result.tasks, users):
            assert duplicate.id != source.id
            assert duplicate.subject == source.subject
            assert duplicate.description == source.description
            assert duplicate.status == source.status
            assert duplicate.end_date == source.end_date
            items = await crud_checklist.list_by_task(db, task_id=duplicate.id)
            assert len(items) == 3
            assert {i.id for i in items}.isdisjoint(source_item_ids)
            assert await crud_link.count_by_task(db, task_id=duplicate.id) == 1
            assert await crud_attachment.count_by_task(db, task_id=duplicate.id) == 1
            assert await crud_assignment.list_user_ids(db, task_id=duplicate.id) == [user.id]

        assert sink.kinds.count("task_created") == 3
        assert sink.kinds.count("task_assigned") == 3
        # The source keeps its own children.
        assert await crud_checklist.count_by_task(db, task_id=source.id) == 3

    async def test_unknown_user_gets_duplicate_without_assignment(
        self, db: AsyncSession, service, source, creator, member
    ) -> None:
        ghost = uuid.uuid4()

        result = await service.copy_task_per_user(
            db,
            task_id=source.id,
            copy_in=TaskCopyPerUser(assignees=[ghost, member.id]),
            current_user=creator,
        )

        assert len(result.tasks) == 2
        assert await crud_assignment.list_user_ids(db, task_id=result.tasks[0].id) == []
        assert await crud_assignment.list_user_ids(db, task_id=result.tasks[1].id) == [member.id]
        assert [o.key for o in result.report.failures] == [ghost]

    async def test_failed_duplicate_is_skipped(
        self, db: AsyncSession, service, source, creator, member, third_user, monkeypatch
    ) -> None:
        real_clone = crud_task.clone
        calls = 0

        async def flaky_clone(db, *, source, created_by):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("insert rejected")
            return await real_clone(db, source=source, created_by=created_by)

        monkeypatch.setattr(crud_task, "clone", flaky_clone)

        result = await service.copy_task_per_user(
            db,
            task_id=source.id,
            copy_in=TaskCopyPerUser(assignees=[member.id, third_user.id]),
            current_user=creator,
        )

        assert len(result.tasks) == 1
        assert await crud_assignment.list_user_ids(db, task_id=result.tasks[0].id) == [third_user.id]
        assert [(o.collection, o.key) for o in result.report.failures] == [("tasks", member.id)]

    async def test_requires_at_least_one_user(self) -> None:
        with pytest.raises(ValidationError):
            TaskCopyPerUser(assignees=[])
