"""
Domain event schemas.
Every event is a frozen model tagged by ``kind`` and carries a snapshot of
the task plus the typed data relevant to that kind.
"""
from __future__ import annotations

import uuid
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from kanban.schemas.attachment import AttachmentRead
from kanban.schemas.checklist import ChecklistElementRead
from kanban.schemas.comment import CommentRead
from kanban.schemas.task import TaskRead, TaskStatusLiteral
from kanban.schemas.user import UserRead


class _TaskEventBase(BaseModel):
    task: TaskRead

    model_config = {"frozen": True}


class TaskCreated(_TaskEventBase):
    kind: Literal["task_created"] = "task_created"


class TaskUpdated(_TaskEventBase):
    kind: Literal["task_updated"] = "task_updated"


class TaskAssigned(_TaskEventBase):
    kind: Literal["task_assigned"] = "task_assigned"
    user_id: uuid.UUID
    # None when the directory has no record for user_id.
    user: UserRead | None = None


class TaskUnassigned(_TaskEventBase):
    kind: Literal["task_unassigned"] = "task_unassigned"
    user_id: uuid.UUID
    user: UserRead | None = None


class TaskStatusChanged(_TaskEventBase):
    kind: Literal["task_status_changed"] = "task_status_changed"
    status: TaskStatusLiteral


class TaskCompleted(_TaskEventBase):
    kind: Literal["task_completed"] = "task_completed"


class CommentCreated(_TaskEventBase):
    kind: Literal["comment_created"] = "comment_created"
    comment: CommentRead


class ChecklistCreated(_TaskEventBase):
    kind: Literal["checklist_created"] = "checklist_created"
    element: ChecklistElementRead


class AttachmentAdded(_TaskEventBase):
    kind: Literal["attachment_added"] = "attachment_added"
    attachment: AttachmentRead


TaskEvent = Annotated[
    Union[
        TaskCreated,
        TaskUpdated,
        TaskAssigned,
        TaskUnassigned,
        TaskStatusChanged,
        TaskCompleted,
        CommentCreated,
        ChecklistCreated,
        AttachmentAdded,
    ],
    Field(discriminator="kind"),
]

TaskEventKind = Literal[
    "task_created",
    "task_updated",
    "task_assigned",
    "task_unassigned",
    "task_status_changed",
    "task_completed",
    "comment_created",
    "checklist_created",
    "attachment_added",
]
