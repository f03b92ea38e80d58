"""
Comment CRUD operations.
"""
from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from kanban.crud.base import CRUDTaskChild
from kanban.models.comment import Comment


class CRUDComment(CRUDTaskChild[Comment]):
    order_by = "created_at"

    async def create_comment(
        self,
        db: AsyncSession,
        *,
        text: str,
        task_id: uuid.UUID,
        author_id: uuid.UUID | None,
    ) -> Comment:
        comment = Comment(text=text, task_id=task_id, created_by=author_id)
        db.add(comment)
        await db.flush()
        await db.refresh(comment)
        return comment


crud_comment = CRUDComment(Comment)
