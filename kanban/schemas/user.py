"""
User Pydantic schemas.
"""
from __future__ import annotations

import uuid

from pydantic import BaseModel, Field


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str | None = Field(default=None, max_length=255)
    full_name: str | None = Field(default=None, max_length=255)


class UserRead(BaseModel):
    """Display-capable user record handed to event consumers."""

    id: uuid.UUID
    username: str
    full_name: str | None = None
    email: str | None = None

    model_config = {"from_attributes": True}

    @property
    def display_name(self) -> str:
        return self.full_name or self.username
