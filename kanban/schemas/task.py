"""
Task Pydantic schemas.
Includes create/update/copy payloads, the grouping context union and the
read snapshot handed to event consumers.
"""
from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError, ValidationInfo, field_validator

from kanban.core.exceptions import BadRequestException, ValidationFailedException
from kanban.schemas.attachment import AttachmentUpdate, FileUpload
from kanban.schemas.checklist import ChecklistSubmission
from kanban.schemas.link import LinkSubmission

TaskStatusLiteral = Literal["not_begun", "in_progress", "done"]


def _end_not_before_start(end_date: date | None, info: ValidationInfo) -> date | None:
    start_date = info.data.get("start_date")
    if end_date is not None and start_date is not None and end_date < start_date:
        raise ValueError("end_date must not precede start_date")
    return end_date


# ── Grouping context ──────────────────────────────────────────────────────────

class BucketGrouping(BaseModel):
    kind: Literal["bucket"] = "bucket"
    bucket_id: uuid.UUID

    @property
    def key(self) -> Any:
        return self.bucket_id


class AssigneeGrouping(BaseModel):
    kind: Literal["assignee"] = "assignee"
    user_id: uuid.UUID

    @property
    def key(self) -> Any:
        return self.user_id


class StatusGrouping(BaseModel):
    kind: Literal["status"] = "status"
    status: TaskStatusLiteral

    @property
    def key(self) -> Any:
        return self.status


class DateGrouping(BaseModel):
    kind: Literal["date"] = "date"
    end_date: date | None = None

    @property
    def key(self) -> Any:
        return self.end_date


TaskGrouping = Annotated[
    Union[BucketGrouping, AssigneeGrouping, StatusGrouping, DateGrouping],
    Field(discriminator="kind"),
]

_grouping_adapter: TypeAdapter[Any] = TypeAdapter(TaskGrouping)


def resolve_grouping(
    *,
    bucket_id: Any = None,
    user_id: Any = None,
    status: Any = None,
    date: Any = None,
) -> BucketGrouping | AssigneeGrouping | StatusGrouping | DateGrouping:
    """
    Build the grouping context from loose parameters, exactly one of which
    must be supplied. An empty ``date`` string means the "no due date" group.
    """
    supplied = [
        name
        for name, value in (
            ("bucket_id", bucket_id),
            ("user_id", user_id),
            ("status", status),
            ("date", date),
        )
        if value is not None
    ]
    if len(supplied) != 1:
        raise BadRequestException(
            "Exactly one of bucket_id, user_id, status, date is required"
        )

    name = supplied[0]
    if name == "bucket_id":
        raw = {"kind": "bucket", "bucket_id": bucket_id}
    elif name == "user_id":
        raw = {"kind": "assignee", "user_id": user_id}
    elif name == "status":
        raw = {"kind": "status", "status": status}
    else:
        raw = {"kind": "date", "end_date": date or None}

    try:
        return _grouping_adapter.validate_python(raw)
    except ValidationError as exc:
        raise ValidationFailedException.from_pydantic(exc) from exc


# ── Create ────────────────────────────────────────────────────────────────────

class TaskCreate(BaseModel):
    subject: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=10000)
    status: TaskStatusLiteral | None = None
    start_date: date | None = None
    end_date: date | None = None
    bucket_id: uuid.UUID | None = None
    ticket_id: int | None = Field(default=None, ge=1)
    grouping: TaskGrouping
    assignees: list[uuid.UUID] = Field(default_factory=list)
    copy_per_user: bool = False

    @field_validator("end_date")
    @classmethod
    def end_not_before_start(cls, v: date | None, info: ValidationInfo) -> date | None:
        return _end_not_before_start(v, info)


# ── Update ────────────────────────────────────────────────────────────────────

class TaskUpdate(BaseModel):
    """
    Desired state for a task edit.
    Child collections left as None are not touched; an explicit empty
    submission removes every existing row of that collection.
    """

    subject: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=10000)
    status: TaskStatusLiteral | None = None
    start_date: date | None = None
    end_date: date | None = None
    bucket_id: uuid.UUID | None = None
    ticket_id: int | None = Field(default=None, ge=1)

    checklist: ChecklistSubmission | None = None
    links: LinkSubmission | None = None
    assignees: list[uuid.UUID] | None = None
    comment: str | None = None
    attachments: dict[uuid.UUID, AttachmentUpdate] | None = None
    uploads: list[FileUpload] = Field(default_factory=list)

    @field_validator("end_date")
    @classmethod
    def end_not_before_start(cls, v: date | None, info: ValidationInfo) -> date | None:
        return _end_not_before_start(v, info)

    @field_validator("subject", "status", "bucket_id")
    @classmethod
    def not_null_when_set(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    def scalar_changes(self) -> dict[str, Any]:
        return self.model_dump(include=TASK_SCALAR_FIELDS, exclude_unset=True)


TASK_SCALAR_FIELDS = {
    "subject",
    "description",
    "status",
    "start_date",
    "end_date",
    "bucket_id",
    "ticket_id",
}


# ── Copy ──────────────────────────────────────────────────────────────────────

class TaskCopy(BaseModel):
    """Selective copy; subject and bucket default to the source task's."""

    subject: str | None = Field(default=None, min_length=1, max_length=255)
    bucket_id: uuid.UUID | None = None
    copy_description: bool = False
    copy_dates: bool = False
    copy_status: bool = False
    copy_assignment: bool = False
    copy_checklist: bool = False
    copy_attachments: bool = False
    copy_links: bool = False


class TaskCopyPerUser(BaseModel):
    assignees: list[uuid.UUID] = Field(min_length=1)


# ── Read ──────────────────────────────────────────────────────────────────────

class TaskRead(BaseModel):
    id: uuid.UUID
    bucket_id: uuid.UUID
    subject: str
    description: str | None
    status: str
    start_date: date | None
    end_date: date | None
    ticket_id: int | None
    created_by: uuid.UUID | None
    updated_by: uuid.UUID | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
