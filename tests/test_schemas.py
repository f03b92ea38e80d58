"""
Schema tests.
Covers: grouping resolution, collection submissions, task payload validation.
"""
from __future__ import annotations

import uuid
from datetime import date

import pytest
from pydantic import ValidationError

from kanban.core.exceptions import BadRequestException, ValidationFailedException
from kanban.schemas.attachment import AttachmentUpdate
from kanban.schemas.checklist import ChecklistElementUpdate, ChecklistSubmission
from kanban.schemas.link import LinkUpdate
from kanban.schemas.task import (
    AssigneeGrouping,
    BucketGrouping,
    DateGrouping,
    StatusGrouping,
    TaskCreate,
    TaskUpdate,
    resolve_grouping,
)

pytestmark = pytest.mark.asyncio


class TestResolveGrouping:
    async def test_each_kind(self) -> None:
        bucket_id, user_id = uuid.uuid4(), uuid.uuid4()

        assert resolve_grouping(bucket_id=bucket_id) == BucketGrouping(bucket_id=bucket_id)
        assert resolve_grouping(user_id=str(user_id)) == AssigneeGrouping(user_id=user_id)
        assert resolve_grouping(status="done") == StatusGrouping(status="done")
        assert resolve_grouping(date="2026-12-24") == DateGrouping(end_date=date(2026, 12, 24))

    async def test_none_supplied(self) -> None:
        with pytest.raises(BadRequestException) as exc_info:
            resolve_grouping()
        assert exc_info.value.status_code == 400

    async def test_several_supplied(self) -> None:
        with pytest.raises(BadRequestException):
            resolve_grouping(status="done", date="2026-01-01")

    async def test_malformed_value_is_a_validation_error(self) -> None:
        with pytest.raises(ValidationFailedException):
            resolve_grouping(status="late")


class TestChecklistSubmission:
    async def test_flat_mapping_is_split(self) -> None:
        element_id = uuid.uuid4()

        submission = ChecklistSubmission.model_validate(
            {str(element_id): {"is_done": True}, "new": [{"name": "Another"}]}
        )

        assert list(submission.existing) == [element_id]
        assert submission.existing[element_id].model_dump(exclude_unset=True) == {"is_done": True}
        assert [n.name for n in submission.new] == ["Another"]

    async def test_empty_submission(self) -> None:
        submission = ChecklistSubmission.model_validate({})
        assert submission.existing == {}
        assert submission.new == []


class TestTaskPayloads:
    async def test_create_rejects_end_before_start(self) -> None:
        with pytest.raises(ValidationError):
            TaskCreate(
                subject="x",
                grouping={"kind": "status", "status": "done"},
                start_date=date(2026, 5, 2),
                end_date=date(2026, 5, 1),
            )

    async def test_create_rejects_late_status(self) -> None:
        with pytest.raises(ValidationError):
            TaskCreate(subject="x", status="late", grouping={"kind": "status", "status": "done"})

    async def test_update_rejects_explicit_null_subject(self) -> None:
        with pytest.raises(ValidationError):
            TaskUpdate(subject=None)

    async def test_update_allows_clearing_description(self) -> None:
        update = TaskUpdate(description=None)
        assert update.scalar_changes() == {"description": None}

    async def test_scalar_changes_excludes_collections(self) -> None:
        update = TaskUpdate(subject="New", comment="hi", assignees=[])
        assert update.scalar_changes() == {"subject": "New"}


class TestChildUpdatePayloads:
    @pytest.mark.parametrize(
        ("schema", "field"),
        [
            (ChecklistElementUpdate, "name"),
            (ChecklistElementUpdate, "is_done"),
            (ChecklistElementUpdate, "sort"),
            (LinkUpdate, "url"),
            (AttachmentUpdate, "name"),
            (AttachmentUpdate, "card_show"),
        ],
    )
    async def test_explicit_null_is_rejected(self, schema, field) -> None:
        with pytest.raises(ValidationError):
            schema.model_validate({field: None})

    async def test_link_name_may_be_cleared(self) -> None:
        update = LinkUpdate(name=None)
        assert update.model_dump(exclude_unset=True) == {"name": None}

    async def test_null_inside_a_submission_is_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ChecklistSubmission.model_validate({str(uuid.uuid4()): {"name": None}})
