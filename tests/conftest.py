"""
Test configuration and shared fixtures.
Uses an in-memory SQLite database per test, with SAVEPOINT support and
foreign keys enabled, plus in-memory stand-ins for the external collaborators.
"""
from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from kanban.crud.board import crud_board, crud_bucket
from kanban.crud.task import crud_task
from kanban.crud.user import crud_user
from kanban.db.base import Base
from kanban.models import Bucket, Task, User
from kanban.schemas.attachment import FileUpload
from kanban.schemas.event import TaskEvent
from kanban.schemas.user import UserCreate
from kanban.services.identity import user_directory
from kanban.services.task_service import TaskService
from kanban.services.ticket_sync import TicketApiError

# ── Test database ─────────────────────────────────────────────────────────────
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """A fresh in-memory database with every table created."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN.
    @event.listens_for(test_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(test_engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """Provide a test database session that rolls back after each test."""
    async with session_factory() as session:
        try:
            yield session
            await session.rollback()
        finally:
            await session.close()


# ── Collaborator doubles ──────────────────────────────────────────────────────

class RecordingSink:
    """Event sink that keeps every event in order."""

    def __init__(self) -> None:
        self.events: list[TaskEvent] = []

    async def trigger(self, event: TaskEvent) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> list[str]:
        return [e.kind for e in self.events]

    def of_kind(self, kind: str) -> list[TaskEvent]:
        return [e for e in self.events if e.kind == kind]

    def clear(self) -> None:
        self.events.clear()


class FakeTicketAdapter:
    def __init__(self) -> None:
        self.statuses: list[tuple[int, str]] = []
        self.comments: list[dict[str, Any]] = []
        self.fail = False

    async def push_status(self, ticket_id: int, status: str) -> None:
        if self.fail:
            raise TicketApiError(status_code=503, message="ticket service unavailable")
        self.statuses.append((ticket_id, status))

    async def mirror_comment(
        self,
        ticket_id: int,
        *,
        text: str,
        author_id: uuid.UUID | None,
        created_at: datetime,
    ) -> None:
        if self.fail:
            raise TicketApiError(status_code=503, message="ticket service unavailable")
        self.comments.append(
            {"ticket_id": ticket_id, "text": text, "author_id": author_id, "created_at": created_at}
        )


class MemoryFileStorage:
    """Keeps uploads in a dict; filenames listed in ``fail_on`` raise OSError."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}
        self.fail_on: set[str] = set()

    async def save(self, upload: FileUpload) -> str:
        if upload.filename in self.fail_on:
            raise OSError(f"disk full while writing {upload.filename}")
        path = f"/uploads/{uuid.uuid4()}_{upload.filename}"
        self.files[path] = upload.content
        return path


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def tickets() -> FakeTicketAdapter:
    return FakeTicketAdapter()


@pytest.fixture
def files() -> MemoryFileStorage:
    return MemoryFileStorage()


@pytest.fixture
def service(sink: RecordingSink, tickets: FakeTicketAdapter, files: MemoryFileStorage) -> TaskService:
    return TaskService(events=sink, tickets=tickets, identities=user_directory, files=files)


# ── Helper fixtures ───────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def creator(db: AsyncSession) -> User:
    return await crud_user.create_user(
        db, obj_in=UserCreate(username="creator", full_name="Casey Creator", email="creator@example.com")
    )


@pytest_asyncio.fixture
async def member(db: AsyncSession) -> User:
    return await crud_user.create_user(db, obj_in=UserCreate(username="member", full_name="Morgan Member"))


@pytest_asyncio.fixture
async def third_user(db: AsyncSession) -> User:
    return await crud_user.create_user(db, obj_in=UserCreate(username="third"))


@pytest_asyncio.fixture
async def bucket(db: AsyncSession, creator: User) -> Bucket:
    board = await crud_board.create_board(db, name="Release plan", created_by=creator.id)
    return await crud_bucket.create_bucket(db, board_id=board.id, name="Backlog", sort=0)


@pytest_asyncio.fixture
async def other_bucket(db: AsyncSession, bucket: Bucket) -> Bucket:
    return await crud_bucket.create_bucket(db, board_id=bucket.board_id, name="Doing", sort=1)


MakeTask = Callable[..., Awaitable[Task]]


@pytest_asyncio.fixture
async def make_task(db: AsyncSession, bucket: Bucket, creator: User) -> MakeTask:
    """Factory inserting a task directly through the CRUD layer."""

    async def _make(subject: str = "Write release notes", **values: Any) -> Task:
        obj_in = {"subject": subject, "bucket_id": bucket.id, **values}
        return await crud_task.create_task(db, obj_in=obj_in, created_by=creator.id)

    return _make
