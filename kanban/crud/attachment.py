"""
Attachment CRUD operations.
"""
from __future__ import annotations

import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from kanban.crud.base import CRUDTaskChild
from kanban.models.attachment import Attachment
from kanban.schemas.attachment import FileUpload


class CRUDAttachment(CRUDTaskChild[Attachment]):
    order_by = "created_at"

    async def create_attachment(
        self,
        db: AsyncSession,
        *,
        upload: FileUpload,
        path: str,
        task_id: uuid.UUID,
        uploaded_by: uuid.UUID | None,
    ) -> Attachment:
        attachment = Attachment(
            name=upload.filename,
            path=path,
            size=upload.size,
            mime_type=upload.content_type or "application/octet-stream",
            task_id=task_id,
            created_by=uploaded_by,
            updated_by=uploaded_by,
        )
        db.add(attachment)
        await db.flush()
        await db.refresh(attachment)
        return attachment


crud_attachment = CRUDAttachment(Attachment)
