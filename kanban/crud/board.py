"""
Board and bucket CRUD operations.
"""
from __future__ import annotations

import uuid

from sqlalchemy import func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from kanban.crud.base import CRUDBase
from kanban.models.board import Board, BoardUserAssignment, Bucket


class CRUDBoard(CRUDBase[Board]):

    async def create_board(
        self,
        db: AsyncSession,
        *,
        name: str,
        created_by: uuid.UUID | None = None,
        is_public: bool = False,
    ) -> Board:
        board = Board(name=name, created_by=created_by, is_public=is_public)
        db.add(board)
        await db.flush()
        await db.refresh(board)
        return board

    async def add_member(
        self, db: AsyncSession, *, board_id: uuid.UUID, user_id: uuid.UUID
    ) -> None:
        await db.execute(
            insert(BoardUserAssignment).values(board_id=board_id, user_id=user_id)
        )

    async def is_member(
        self, db: AsyncSession, *, board_id: uuid.UUID, user_id: uuid.UUID
    ) -> bool:
        result = await db.execute(
            select(func.count())
            .select_from(BoardUserAssignment)
            .where(
                BoardUserAssignment.board_id == board_id,
                BoardUserAssignment.user_id == user_id,
            )
        )
        return result.scalar_one() > 0


class CRUDBucket(CRUDBase[Bucket]):

    async def create_bucket(
        self,
        db: AsyncSession,
        *,
        board_id: uuid.UUID,
        name: str,
        sort: int = 0,
    ) -> Bucket:
        bucket = Bucket(board_id=board_id, name=name, sort=sort)
        db.add(bucket)
        await db.flush()
        await db.refresh(bucket)
        return bucket


crud_board = CRUDBoard(Board)
crud_bucket = CRUDBucket(Bucket)
