"""
Attachment Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from kanban.schemas.collection import ChildCollectionSubmission


class FileUpload(BaseModel):
    """A file received from the caller, not yet stored."""

    filename: str = Field(min_length=1, max_length=255)
    content_type: str = "application/octet-stream"
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class AttachmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    card_show: bool | None = None

    @field_validator("name", "card_show")
    @classmethod
    def not_null_when_set(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class AttachmentRead(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    name: str
    mime_type: str
    size: int
    path: str
    card_show: bool
    created_by: uuid.UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


# Existing attachments can only be edited; new ones arrive as FileUpload.
AttachmentSubmission = ChildCollectionSubmission[AttachmentUpdate, AttachmentUpdate]
