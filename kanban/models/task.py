"""
Task ORM model.
Central entity of the board. Owns checklist elements, links, attachments,
comments and user assignments, all stored as rows keyed by task_id.
"""
from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kanban.db.base import Base


class TaskStatus:
    NOT_BEGUN = "not_begun"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    # Derived from end_date for display only; never stored or accepted as input.
    LATE = "late"

    EDITABLE = (NOT_BEGUN, IN_PROGRESS, DONE)


class Task(Base):
    __tablename__ = "tasks"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    bucket_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("buckets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        Enum(*TaskStatus.EDITABLE, name="task_status_enum"),
        nullable=False,
        default=TaskStatus.NOT_BEGUN,
        server_default=TaskStatus.NOT_BEGUN,
    )
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    ticket_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    updated_by: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # ── Relationships ─────────────────────────────────────────────────────────
    # Child rows are read and written through the CRUD layer; these exist for
    # ORM-level cascade and are never lazy-loaded by the engine.
    bucket: Mapped["Bucket"] = relationship("Bucket")  # type: ignore[name-defined]  # noqa: F821
    checklist_elements: Mapped[list["ChecklistElement"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "ChecklistElement",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    links: Mapped[list["Link"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Link",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    attachments: Mapped[list["Attachment"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Attachment",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    comments: Mapped[list["Comment"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Comment",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    assignments: Mapped[list["TaskUserAssignment"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "TaskUserAssignment",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        Index("ix_tasks_status", "status"),
        Index("ix_tasks_end_date", "end_date"),
        Index("ix_tasks_ticket_id", "ticket_id"),
    )
    __mapper_args__ = {"eager_defaults": True}

    def is_late(self, today: date | None = None) -> bool:
        if self.end_date is None or self.status == TaskStatus.DONE:
            return False
        return self.end_date < (today or date.today())

    def display_status(self, today: date | None = None) -> str:
        """Stored status, or LATE when the end date has passed on an open task."""
        return TaskStatus.LATE if self.is_late(today) else self.status

    def __repr__(self) -> str:
        return f"<Task id={self.id} subject={self.subject!r} status={self.status}>"
