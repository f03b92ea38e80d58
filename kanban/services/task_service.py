"""
Task lifecycle service.
Orchestrates create, update, status/date changes, assignment, the copy
variants and deletion. Primary task writes raise on failure; every secondary
write is isolated and reported on the returned OperationReport.
"""
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from kanban.core.config import settings
from kanban.core.exceptions import (
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
    ValidationFailedException,
)
from kanban.crud.assignment import crud_assignment
from kanban.crud.attachment import crud_attachment
from kanban.crud.board import crud_board, crud_bucket
from kanban.crud.comment import crud_comment
from kanban.crud.task import crud_task
from kanban.models.checklist import ChecklistElement
from kanban.models.comment import Comment
from kanban.models.task import Task, TaskStatus
from kanban.models.user import User
from kanban.schemas.attachment import AttachmentRead, AttachmentSubmission, FileUpload
from kanban.schemas.checklist import ChecklistElementRead
from kanban.schemas.comment import CommentRead
from kanban.schemas.event import (
    AttachmentAdded,
    ChecklistCreated,
    CommentCreated,
    TaskAssigned,
    TaskCompleted,
    TaskCreated,
    TaskEvent,
    TaskStatusChanged,
    TaskUnassigned,
    TaskUpdated,
)
from kanban.schemas.task import (
    TASK_SCALAR_FIELDS,
    AssigneeGrouping,
    BucketGrouping,
    DateGrouping,
    StatusGrouping,
    TaskCopy,
    TaskCopyPerUser,
    TaskCreate,
    TaskGrouping,
    TaskRead,
    TaskUpdate,
)
from kanban.schemas.user import UserRead
from kanban.services.assignment_service import AssignmentReconciler
from kanban.services.events import EventSink, event_bus
from kanban.services.file_storage import FileStorage, LocalFileStorage
from kanban.services.identity import IdentityResolver, user_directory
from kanban.services.outcomes import (
    CompletedTasks,
    OperationReport,
    TaskBatchResult,
    TaskCreateResult,
    TaskOperationResult,
    best_effort,
    isolated_write,
)
from kanban.services.reconciler import (
    attachment_reconciler,
    checklist_reconciler,
    link_reconciler,
)
from kanban.services.ticket_sync import TicketSyncAdapter, build_ticket_adapter, ticket_status_for

logger = logging.getLogger(__name__)


def _check_dates(start_date: date | None, end_date: date | None) -> None:
    if start_date is not None and end_date is not None and end_date < start_date:
        raise ValidationFailedException(
            [{"field": "end_date", "message": "end_date must not precede start_date"}]
        )


def _grouping_defaults(grouping: Any) -> dict[str, Any]:
    """Attributes a new task inherits from the group it is created in."""
    if isinstance(grouping, BucketGrouping):
        return {"bucket_id": grouping.bucket_id}
    if isinstance(grouping, StatusGrouping):
        return {"status": grouping.status}
    if isinstance(grouping, DateGrouping):
        return {"end_date": grouping.end_date}
    return {}


class TaskService:

    def __init__(
        self,
        *,
        events: EventSink,
        tickets: TicketSyncAdapter,
        identities: IdentityResolver,
        files: FileStorage,
    ) -> None:
        self.events = events
        self.tickets = tickets
        self.identities = identities
        self.files = files

        self.checklist = checklist_reconciler(on_insert=self._checklist_created)
        self.links = link_reconciler()
        self.attachments = attachment_reconciler()
        self.assignments = AssignmentReconciler(
            on_assigned=self._task_assigned,
            on_unassigned=self._task_unassigned,
        )

    # ── Lookup ────────────────────────────────────────────────────────────────

    async def get_task(self, db: AsyncSession, task_id: uuid.UUID) -> Task:
        task = await crud_task.get(db, task_id)
        if task is None:
            raise NotFoundException("Task", str(task_id))
        return task

    def status_options(self) -> list[str]:
        """Statuses a user may pick when editing. The derived LATE status is never offered."""
        return list(TaskStatus.EDITABLE)

    async def list_completed(
        self,
        db: AsyncSession,
        *,
        board_id: uuid.UUID,
        grouping: TaskGrouping | None = None,
        current_user: User | None,
    ) -> CompletedTasks:
        """
        Done tasks of a board, optionally within one group. The listing is
        read-only for actors who are not members of a private board.
        """
        actor = self._require_actor(current_user)
        board = await crud_board.get(db, board_id)
        if board is None:
            raise NotFoundException("Board", str(board_id))

        readonly = not board.is_public and not await crud_board.is_member(
            db, board_id=board.id, user_id=actor.id
        )
        tasks = await crud_task.list_completed(db, board_id=board.id, grouping=grouping)
        return CompletedTasks(board=board, tasks=tasks, readonly=readonly)

    async def list_delegated(self, db: AsyncSession, *, current_user: User | None) -> list[Task]:
        """Tasks the actor created and handed to other users."""
        actor = self._require_actor(current_user)
        return await crud_task.list_delegated(db, created_by=actor.id)

    # ── Create ────────────────────────────────────────────────────────────────

    async def create_task(
        self,
        db: AsyncSession,
        *,
        task_in: TaskCreate,
        current_user: User | None,
    ) -> TaskCreateResult:
        """
        Create a task inside its grouping context.

        Values from the grouping pre-populate the task and are overridden by
        explicitly submitted fields. Grouping by assignee assigns that user.
        With ``copy_per_user`` every assignee after the first gets a clone of
        the task of their own; otherwise all assignees share the task.
        """
        actor = self._require_actor(current_user)
        grouping = task_in.grouping

        values = _grouping_defaults(grouping)
        values.update(
            task_in.model_dump(include=TASK_SCALAR_FIELDS, exclude_unset=True, exclude_none=True)
        )
        if values.get("bucket_id") is None:
            raise ValidationFailedException(
                [{"field": "bucket_id", "message": "A bucket is required"}]
            )
        _check_dates(values.get("start_date"), values.get("end_date"))
        await self._require_bucket(db, values["bucket_id"])

        task = await crud_task.create_task(db, obj_in=values, created_by=actor.id)
        logger.info("Task created: id=%s by user=%s group=%s", task.id, actor.id, grouping.kind)

        report = OperationReport()
        tasks = [task]
        await self._emit(TaskCreated(task=await self._snapshot(db, task)), report)

        if isinstance(grouping, AssigneeGrouping):
            await self.assignments.assign(db, task=task, user_id=grouping.user_id, report=report)

        target = task
        for position, user_id in enumerate(dict.fromkeys(task_in.assignees)):
            if task_in.copy_per_user and position > 0:
                async with isolated_write(
                    db, report, collection="tasks", action="copy", key=user_id
                ) as attempt:
                    target = await crud_task.clone(db, source=task, created_by=actor.id)
                if attempt.failed:
                    continue
                tasks.append(target)
            await self.assignments.assign(db, task=target, user_id=user_id, report=report)

        return TaskCreateResult(
            tasks=tasks,
            group=grouping.kind,
            group_key=grouping.key,
            report=report,
        )

    # ── Update ────────────────────────────────────────────────────────────────

    async def update_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        task_in: TaskUpdate,
        current_user: User | None,
    ) -> TaskOperationResult:
        """
        Apply a full edit of a task.

        Scalar fields are validated and saved first; a rejection aborts the
        whole edit. Checklist, assignees, comment, links, attachment edits and
        uploads are then reconciled independently, each item best-effort.
        Status side effects follow, and ``task_updated`` is always emitted.
        """
        actor = self._require_actor(current_user)
        task = await self.get_task(db, task_id)

        changes = task_in.scalar_changes()
        status_changed = "status" in changes and changes["status"] != task.status
        await self._save_scalars(db, task=task, changes=changes, actor=actor)

        report = OperationReport()

        if task_in.checklist is not None:
            await self.checklist.reconcile(
                db, task=task, submission=task_in.checklist, report=report, actor_id=actor.id
            )

        if task_in.assignees is not None:
            await self.assignments.reconcile(
                db, task=task, user_ids=task_in.assignees, report=report
            )

        if task_in.comment and task_in.comment.strip():
            await self._add_comment(db, task=task, text=task_in.comment, author=actor, report=report)

        if task_in.links is not None:
            await self.links.reconcile(
                db, task=task, submission=task_in.links, report=report, actor_id=actor.id
            )

        if task_in.attachments:
            await self.attachments.reconcile(
                db,
                task=task,
                submission=AttachmentSubmission(existing=task_in.attachments),
                report=report,
                actor_id=actor.id,
            )

        for upload in task_in.uploads:
            await self._store_upload(db, task=task, upload=upload, actor=actor, report=report)

        if status_changed:
            await self._status_side_effects(db, task=task, report=report)

        await self._emit(TaskUpdated(task=await self._snapshot(db, task)), report)

        if report.failures:
            logger.warning(
                "Task %s updated with %d failed secondary writes", task.id, len(report.failures)
            )
        return TaskOperationResult(task=task, report=report)

    # ── Direct single-field changes ───────────────────────────────────────────

    async def set_status(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        status: str,
        current_user: User | None,
    ) -> TaskOperationResult:
        """Set the status and always run the ticket push and status events."""
        actor = self._require_actor(current_user)
        if status not in TaskStatus.EDITABLE:
            raise ValidationFailedException(
                [{"field": "status", "message": f"Unsupported status: {status!r}"}]
            )
        task = await self.get_task(db, task_id)
        await self._save_scalars(db, task=task, changes={"status": status}, actor=actor)

        report = OperationReport()
        await self._status_side_effects(db, task=task, report=report)
        return TaskOperationResult(task=task, report=report)

    async def set_end_date(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        end_date: date | None,
        current_user: User | None,
    ) -> Task:
        actor = self._require_actor(current_user)
        task = await self.get_task(db, task_id)
        await self._save_scalars(db, task=task, changes={"end_date": end_date}, actor=actor)
        return task

    async def set_dates(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        start_date: date | None = None,
        end_date: date | None = None,
        current_user: User | None,
    ) -> Task:
        """Set whichever of the two dates is supplied; None leaves a date unchanged."""
        actor = self._require_actor(current_user)
        task = await self.get_task(db, task_id)
        changes: dict[str, Any] = {}
        if start_date is not None:
            changes["start_date"] = start_date
        if end_date is not None:
            changes["end_date"] = end_date
        await self._save_scalars(db, task=task, changes=changes, actor=actor)
        return task

    # ── Assignment ────────────────────────────────────────────────────────────

    async def assign_user(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        user_id: uuid.UUID,
        current_user: User | None,
    ) -> TaskOperationResult:
        self._require_actor(current_user)
        task = await self.get_task(db, task_id)
        report = OperationReport()
        await self.assignments.assign(db, task=task, user_id=user_id, report=report)
        return TaskOperationResult(task=task, report=report)

    async def expel_user(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        user_id: uuid.UUID,
        current_user: User | None,
    ) -> TaskOperationResult:
        actor = self._require_actor(current_user)
        task = await self.get_task(db, task_id)
        report = OperationReport()
        await self.assignments.expel(db, task=task, user_id=user_id, actor=actor, report=report)
        return TaskOperationResult(task=task, report=report)

    # ── Copy ──────────────────────────────────────────────────────────────────

    async def copy_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        copy_in: TaskCopy,
        current_user: User | None,
    ) -> TaskOperationResult:
        """
        Create one new task from a source task.
        Only subject and bucket are always set; each copy_* flag adds one
        slice of the source.
        """
        actor = self._require_actor(current_user)
        source = await self.get_task(db, task_id)

        values: dict[str, Any] = {
            "subject": copy_in.subject or source.subject,
            "bucket_id": copy_in.bucket_id or source.bucket_id,
        }
        if copy_in.copy_description:
            values["description"] = source.description
        if copy_in.copy_dates:
            values["start_date"] = source.start_date
            values["end_date"] = source.end_date
        if copy_in.copy_status:
            values["status"] = source.status
        if values["bucket_id"] != source.bucket_id:
            await self._require_bucket(db, values["bucket_id"])

        new_task = await crud_task.create_task(db, obj_in=values, created_by=actor.id)
        logger.info("Task %s copied to %s by user=%s", source.id, new_task.id, actor.id)

        report = OperationReport()
        await self._emit(TaskCreated(task=await self._snapshot(db, new_task)), report)

        if copy_in.copy_assignment:
            for user_id in await crud_assignment.list_user_ids(db, task_id=source.id):
                await self.assignments.assign(db, task=new_task, user_id=user_id, report=report)
        if copy_in.copy_checklist:
            await self.checklist.copy(db, source=source, target=new_task, report=report)
        if copy_in.copy_attachments:
            await self.attachments.copy(db, source=source, target=new_task, report=report)
        if copy_in.copy_links:
            await self.links.copy(db, source=source, target=new_task, report=report)

        return TaskOperationResult(task=new_task, report=report)

    async def copy_task_per_user(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        copy_in: TaskCopyPerUser,
        current_user: User | None,
    ) -> TaskBatchResult:
        """
        Create one full duplicate of the task per user, each assigned to that
        user alone. A duplicate that fails to persist is skipped.
        """
        actor = self._require_actor(current_user)
        source = await self.get_task(db, task_id)

        report = OperationReport()
        duplicates: list[Task] = []
        for user_id in dict.fromkeys(copy_in.assignees):
            async with isolated_write(
                db, report, collection="tasks", action="copy", key=user_id
            ) as attempt:
                duplicate = await crud_task.clone(db, source=source, created_by=actor.id)
            if attempt.failed:
                continue
            duplicates.append(duplicate)
            await self._emit(TaskCreated(task=await self._snapshot(db, duplicate)), report)

            await self.checklist.copy(db, source=source, target=duplicate, report=report)
            await self.attachments.copy(db, source=source, target=duplicate, report=report)
            await self.links.copy(db, source=source, target=duplicate, report=report)
            await self.assignments.assign(db, task=duplicate, user_id=user_id, report=report)

        logger.info(
            "Task %s duplicated for %d of %d users", source.id, len(duplicates), len(copy_in.assignees)
        )
        return TaskBatchResult(source=source, tasks=duplicates, report=report)

    # ── Delete ────────────────────────────────────────────────────────────────

    async def delete_task(
        self,
        db: AsyncSession,
        *,
        task_id: uuid.UUID,
        current_user: User | None,
    ) -> dict[str, int]:
        """Delete a task and all of its child rows. Only the creator may delete."""
        actor = self._require_actor(current_user)
        task = await self.get_task(db, task_id)
        if task.created_by != actor.id:
            raise ForbiddenException()

        removed = await crud_task.remove_with_children(db, task=task)
        logger.info("Task deleted: id=%s by user=%s removed=%s", task_id, actor.id, removed)
        return removed

    # ── Private helpers ───────────────────────────────────────────────────────

    @staticmethod
    def _require_actor(user: User | None) -> User:
        if user is None:
            raise UnauthorizedException()
        return user

    async def _require_bucket(self, db: AsyncSession, bucket_id: uuid.UUID) -> None:
        if not await crud_bucket.exists(db, id=bucket_id):
            raise NotFoundException("Bucket", str(bucket_id))

    async def _save_scalars(
        self,
        db: AsyncSession,
        *,
        task: Task,
        changes: dict[str, Any],
        actor: User,
    ) -> None:
        """Validate the merged task attributes, then write them."""
        _check_dates(
            changes.get("start_date", task.start_date),
            changes.get("end_date", task.end_date),
        )
        bucket_id = changes.get("bucket_id")
        if bucket_id is not None and bucket_id != task.bucket_id:
            await self._require_bucket(db, bucket_id)
        await crud_task.update(db, db_obj=task, obj_in={**changes, "updated_by": actor.id})

    async def _add_comment(
        self,
        db: AsyncSession,
        *,
        task: Task,
        text: str,
        author: User,
        report: OperationReport,
    ) -> Comment | None:
        async with isolated_write(
            db, report, collection="comments", action="insert", key=task.id
        ) as attempt:
            comment = await crud_comment.create_comment(
                db, text=text, task_id=task.id, author_id=author.id
            )
        if attempt.failed:
            return None

        if task.ticket_id is not None:
            async with best_effort(
                report, collection="ticket", action="mirror", key=task.ticket_id
            ):
                await self.tickets.mirror_comment(
                    task.ticket_id,
                    text=comment.text,
                    author_id=comment.created_by,
                    created_at=comment.created_at,
                )

        await self._emit(
            CommentCreated(
                task=await self._snapshot(db, task),
                comment=CommentRead.model_validate(comment),
            ),
            report,
        )
        return comment

    async def _store_upload(
        self,
        db: AsyncSession,
        *,
        task: Task,
        upload: FileUpload,
        actor: User,
        report: OperationReport,
    ) -> None:
        async with best_effort(
            report, collection="attachments", action="store", key=upload.filename
        ) as stored:
            path = await self.files.save(upload)
        if stored.failed:
            return

        async with isolated_write(
            db, report, collection="attachments", action="insert", key=upload.filename
        ) as attempt:
            attachment = await crud_attachment.create_attachment(
                db, upload=upload, path=path, task_id=task.id, uploaded_by=actor.id
            )
        if attempt.failed:
            return

        await self._emit(
            AttachmentAdded(
                task=await self._snapshot(db, task),
                attachment=AttachmentRead.model_validate(attachment),
            ),
            report,
        )

    async def _status_side_effects(
        self, db: AsyncSession, *, task: Task, report: OperationReport
    ) -> None:
        """Push the mapped status to a linked ticket, then emit status events."""
        if task.ticket_id is not None:
            async with best_effort(
                report, collection="ticket", action="sync", key=task.ticket_id
            ):
                await self.tickets.push_status(task.ticket_id, ticket_status_for(task.status))

        snapshot = await self._snapshot(db, task)
        await self._emit(TaskStatusChanged(task=snapshot, status=task.status), report)
        if task.status == TaskStatus.DONE:
            await self._emit(TaskCompleted(task=snapshot), report)

    # ── Event hooks ───────────────────────────────────────────────────────────

    async def _checklist_created(
        self, db: AsyncSession, task: Task, element: ChecklistElement, report: OperationReport
    ) -> None:
        await self._emit(
            ChecklistCreated(
                task=await self._snapshot(db, task),
                element=ChecklistElementRead.model_validate(element),
            ),
            report,
        )

    async def _task_assigned(
        self, db: AsyncSession, task: Task, user_id: uuid.UUID, report: OperationReport
    ) -> None:
        user = await self._resolve_user(db, user_id, report)
        await self._emit(
            TaskAssigned(task=await self._snapshot(db, task), user_id=user_id, user=user),
            report,
        )

    async def _task_unassigned(
        self, db: AsyncSession, task: Task, user_id: uuid.UUID, report: OperationReport
    ) -> None:
        user = await self._resolve_user(db, user_id, report)
        await self._emit(
            TaskUnassigned(task=await self._snapshot(db, task), user_id=user_id, user=user),
            report,
        )

    async def _resolve_user(
        self, db: AsyncSession, user_id: uuid.UUID, report: OperationReport
    ) -> UserRead | None:
        """Resolved user, or None when the directory lookup fails."""
        user: UserRead | None = None
        async with best_effort(report, collection="identity", action="resolve", key=user_id):
            user = await self.identities.resolve(db, user_id)
        return user

    async def _snapshot(self, db: AsyncSession, task: Task) -> TaskRead:
        await db.refresh(task)
        return TaskRead.model_validate(task)

    async def _emit(self, event: TaskEvent, report: OperationReport) -> None:
        async with best_effort(report, collection="events", action="emit", key=event.kind):
            await self.events.trigger(event)


# Default wiring from settings
task_service = TaskService(
    events=event_bus,
    tickets=build_ticket_adapter(settings),
    identities=user_directory,
    files=LocalFileStorage.from_settings(settings),
)
