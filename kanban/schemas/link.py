"""
Link Pydantic schemas.
"""
from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, Field, field_validator

from kanban.schemas.collection import ChildCollectionSubmission


class LinkCreate(BaseModel):
    url: str = Field(min_length=1, max_length=2000)
    name: str | None = Field(default=None, max_length=255)


class LinkUpdate(BaseModel):
    url: str | None = Field(default=None, min_length=1, max_length=2000)
    name: str | None = Field(default=None, max_length=255)

    @field_validator("url")
    @classmethod
    def url_not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("url cannot be null")
        return v


class LinkRead(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    url: str
    name: str | None

    model_config = {"from_attributes": True}


LinkSubmission = ChildCollectionSubmission[LinkUpdate, LinkCreate]
