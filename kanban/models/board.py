"""
Board, Bucket and BoardUserAssignment ORM models.
A board holds buckets (columns); a bucket holds tasks. Users assigned to a
board are its members.
"""
from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Uuid, false, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from kanban.db.base import Base


class Board(Base):
    __tablename__ = "boards"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_public: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_by: Mapped[uuid.UUID | None] = mapped_column(
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
    buckets: Mapped[list["Bucket"]] = relationship(
        "Bucket",
        back_populates="board",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    members: Mapped[list["BoardUserAssignment"]] = relationship(
        "BoardUserAssignment",
        back_populates="board",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self) -> str:
        return f"<Board id={self.id} name={self.name!r}>"


class Bucket(Base):
    __tablename__ = "buckets"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sort: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
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
    board: Mapped["Board"] = relationship("Board", back_populates="buckets")

    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self) -> str:
        return f"<Bucket id={self.id} name={self.name!r}>"


class BoardUserAssignment(Base):
    __tablename__ = "board_user_assignments"

    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("boards.id", ondelete="CASCADE"),
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

    board: Mapped["Board"] = relationship("Board", back_populates="members")

    __table_args__ = (
        Index("ix_board_user_assignments_user_id", "user_id"),
    )

    def __repr__(self) -> str:
        return f"<BoardUserAssignment board_id={self.board_id} user_id={self.user_id}>"
