"""
Comment Pydantic schemas.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel


class CommentRead(BaseModel):
    id: uuid.UUID
    task_id: uuid.UUID
    text: str
    created_by: uuid.UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}
