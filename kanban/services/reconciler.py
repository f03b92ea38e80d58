"""
Desired-state reconciliation for keyed child collections of a task.

One parametric reconciler covers checklist elements, links and attachments.
Given the rows persisted for a task and a submission of
``{identity: changes}`` plus a list of new rows, it:

1. deletes persisted rows whose identity is missing from the submission
   (computed from a snapshot taken before any write),
2. updates referenced rows with the supplied fields only, skipping ids that
   no longer exist,
3. inserts the new rows with task_id injected and runs the optional
   per-insert hook.

Every row-level write is isolated in its own SAVEPOINT and reported through
an OperationReport.
"""
from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.crud.attachment import crud_attachment
from kanban.crud.base import CRUDTaskChild
from kanban.crud.checklist import crud_checklist
from kanban.crud.link import crud_link
from kanban.models.attachment import Attachment
from kanban.models.checklist import ChecklistElement
from kanban.models.link import Link
from kanban.models.task import Task
from kanban.schemas.collection import ChildCollectionSubmission
from kanban.services.outcomes import OperationReport, isolated_write

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT")

IdentityFn = Callable[[Any], Any]
ApplyUpdateFn = Callable[[Any, BaseModel, uuid.UUID | None], None]
InsertHook = Callable[[AsyncSession, Task, Any, OperationReport], Awaitable[None]]


def row_id(row: Any) -> Any:
    return row.id


def apply_supplied(row: Any, changes: BaseModel, actor_id: uuid.UUID | None) -> None:
    """Overwrite only the fields the caller explicitly set."""
    for field, value in changes.model_dump(exclude_unset=True).items():
        setattr(row, field, value)


def apply_audited(row: Any, changes: BaseModel, actor_id: uuid.UUID | None) -> None:
    apply_supplied(row, changes, actor_id)
    row.updated_by = actor_id


class ChildCollectionReconciler(Generic[RowT]):
    """
    Args:
        crud: CRUD object for the child table.
        collection: Name used in outcomes and log lines.
        identity: Extracts the identity of a persisted row.
        apply_update: Applies a submitted update schema to a persisted row.
        on_insert: Awaited after each successful insert.
        prune: Delete persisted rows absent from the submission.
        insertable: Accept rows from ``submission.new``.
        copy_fields: Columns duplicated when copying rows onto another task.
    """

    def __init__(
        self,
        crud: CRUDTaskChild[Any],
        *,
        collection: str,
        identity: IdentityFn = row_id,
        apply_update: ApplyUpdateFn = apply_supplied,
        on_insert: InsertHook | None = None,
        prune: bool = True,
        insertable: bool = True,
        copy_fields: Sequence[str] = (),
    ) -> None:
        self.crud = crud
        self.collection = collection
        self.identity = identity
        self.apply_update = apply_update
        self.on_insert = on_insert
        self.prune = prune
        self.insertable = insertable
        self.copy_fields = tuple(copy_fields)

    async def reconcile(
        self,
        db: AsyncSession,
        *,
        task: Task,
        submission: ChildCollectionSubmission[Any, Any],
        report: OperationReport,
        actor_id: uuid.UUID | None = None,
    ) -> list[RowT]:
        """Bring the task's rows in line with the submission. Returns the inserted rows."""
        persisted = {
            self.identity(row): row
            for row in await self.crud.list_by_task(db, task_id=task.id)
        }

        if self.prune:
            for key, row in persisted.items():
                if key in submission.existing:
                    continue
                async with isolated_write(
                    db, report, collection=self.collection, action="delete", key=key
                ):
                    await db.delete(row)

        for key, changes in submission.existing.items():
            row = persisted.get(key)
            if row is None:
                logger.debug("Skipping %s update for missing id %s", self.collection, key)
                report.record(self.collection, "skip", key)
                continue
            async with isolated_write(
                db, report, collection=self.collection, action="update", key=key
            ):
                self.apply_update(row, changes, actor_id)
                db.add(row)

        inserted: list[RowT] = []
        if not self.insertable:
            for position, _ in enumerate(submission.new):
                report.record(self.collection, "skip", f"new[{position}]")
            return inserted

        for position, new in enumerate(submission.new):
            async with isolated_write(
                db, report, collection=self.collection, action="insert", key=f"new[{position}]"
            ) as attempt:
                row = await self.crud.create_from_dict(
                    db, obj_in={**new.model_dump(), "task_id": task.id}
                )
            if attempt.failed:
                continue
            inserted.append(row)
            if self.on_insert is not None:
                await self.on_insert(db, task, row, report)
        return inserted

    async def copy(
        self,
        db: AsyncSession,
        *,
        source: Task,
        target: Task,
        report: OperationReport,
    ) -> list[RowT]:
        """Duplicate the source task's rows onto target under fresh identities."""
        copied: list[RowT] = []
        for row in await self.crud.list_by_task(db, task_id=source.id):
            values = {field: getattr(row, field) for field in self.copy_fields}
            async with isolated_write(
                db, report, collection=self.collection, action="copy", key=self.identity(row)
            ) as attempt:
                new_row = await self.crud.create_from_dict(
                    db, obj_in={**values, "task_id": target.id}
                )
            if not attempt.failed:
                copied.append(new_row)
        return copied


# ── Instances ─────────────────────────────────────────────────────────────────

def checklist_reconciler(
    on_insert: InsertHook | None = None,
) -> ChildCollectionReconciler[ChecklistElement]:
    # Copies start unchecked.
    return ChildCollectionReconciler(
        crud_checklist,
        collection="checklist",
        on_insert=on_insert,
        copy_fields=("name", "sort"),
    )


def link_reconciler() -> ChildCollectionReconciler[Link]:
    return ChildCollectionReconciler(
        crud_link,
        collection="links",
        copy_fields=("url", "name"),
    )


def attachment_reconciler() -> ChildCollectionReconciler[Attachment]:
    """Attachments are only created by uploads and never pruned."""
    return ChildCollectionReconciler(
        crud_attachment,
        collection="attachments",
        apply_update=apply_audited,
        prune=False,
        insertable=False,
        copy_fields=("name", "path", "mime_type", "size", "card_show"),
    )
