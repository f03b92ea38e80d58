"""
Checklist element Pydantic schemas.
"""
from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from kanban.schemas.collection import ChildCollectionSubmission


class ChecklistElementCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    is_done: bool = False
    sort: int = 0


class ChecklistElementUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    is_done: bool | None = None
    sort: int | None = None

    @field_validator("name", "is_done", "sort")
    @classmethod
    def not_null_when_set(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v


class ChecklistElementRead(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    name: str
    is_done: bool
    sort: int

    model_config = {"from_attributes": True}


ChecklistSubmission = ChildCollectionSubmission[ChecklistElementUpdate, ChecklistElementCreate]
