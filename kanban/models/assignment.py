"""
TaskUserAssignment ORM model.
Join row between a task and a user; the composite primary key keeps at most
one row per pair.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kanban.db.base import Base


class TaskUserAssignment(Base):
    __tablename__ = "task_user_assignments"

    task_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("tasks.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    task: Mapped["Task"] = relationship(  # type: ignore[name-defined]  # noqa: F821
        "Task",
        back_populates="assignments",
    )

    __table_args__ = (
        Index("ix_task_user_assignments_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<TaskUserAssignment task_id={self.task_id} user_id={self.user_id}>"
