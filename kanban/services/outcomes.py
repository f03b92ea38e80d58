"""
Per-item outcome collection.

Secondary writes (child rows, assignments, uploads, ticket calls) never abort
the surrounding operation. Each attempt is recorded as an ItemOutcome on an
OperationReport so callers can inspect exactly what succeeded.
"""
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, Literal

from sqlalchemy.ext.asyncio import AsyncSession

from kanban.models.board import Board
from kanban.models.task import Task

logger = logging.getLogger(__name__)

ItemAction = Literal[
    "insert", "update", "delete", "skip", "copy", "store", "sync", "mirror", "emit", "resolve"
]


@dataclass(frozen=True)
class ItemOutcome:
    collection: str
    action: ItemAction
    key: Any
    ok: bool = True
    error: str | None = None


@dataclass
class OperationReport:
    outcomes: list[ItemOutcome] = field(default_factory=list)

    def record(
        self,
        collection: str,
        action: ItemAction,
        key: Any,
        *,
        ok: bool = True,
        error: str | None = None,
    ) -> ItemOutcome:
        outcome = ItemOutcome(collection, action, key, ok, error)
        self.outcomes.append(outcome)
        return outcome

    @property
    def failures(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def ok(self) -> bool:
        return not self.failures

    def for_collection(
        self, collection: str, action: ItemAction | None = None
    ) -> list[ItemOutcome]:
        return [
            o
            for o in self.outcomes
            if o.collection == collection and (action is None or o.action == action)
        ]


class _Attempt:
    """Handle yielded by the isolation context managers; ``failed`` is set on error."""

    def __init__(self) -> None:
        self.failed = False


@asynccontextmanager
async def isolated_write(
    db: AsyncSession,
    report: OperationReport,
    *,
    collection: str,
    action: ItemAction,
    key: Any,
) -> AsyncIterator[_Attempt]:
    """
    Run one secondary write inside a SAVEPOINT.
    On failure only that SAVEPOINT is rolled back; the error is logged and
    recorded instead of propagating.
    """
    attempt = _Attempt()
    try:
        async with db.begin_nested():
            yield attempt
    except Exception as exc:
        attempt.failed = True
        logger.warning(
            "Secondary write failed: collection=%s action=%s key=%s: %s",
            collection,
            action,
            key,
            exc,
        )
        report.record(collection, action, key, ok=False, error=str(exc))
    else:
        report.record(collection, action, key)


@asynccontextmanager
async def best_effort(
    report: OperationReport,
    *,
    collection: str,
    action: ItemAction,
    key: Any,
) -> AsyncIterator[_Attempt]:
    """Same contract as isolated_write for calls that do not touch the database."""
    attempt = _Attempt()
    try:
        yield attempt
    except Exception as exc:
        attempt.failed = True
        logger.warning(
            "Best-effort call failed: collection=%s action=%s key=%s: %s",
            collection,
            action,
            key,
            exc,
        )
        report.record(collection, action, key, ok=False, error=str(exc))
    else:
        report.record(collection, action, key)


# ── Operation results ─────────────────────────────────────────────────────────

@dataclass
class TaskOperationResult:
    task: Task
    report: OperationReport


@dataclass
class TaskCreateResult:
    tasks: list[Task]
    group: str
    group_key: Any
    report: OperationReport

    @property
    def task(self) -> Task:
        """The task created from the request itself (clones follow it)."""
        return self.tasks[0]


@dataclass
class TaskBatchResult:
    source: Task
    tasks: list[Task]
    report: OperationReport


@dataclass
class CompletedTasks:
    board: Board
    tasks: list[Task]
    # Set when the actor may view but not edit the board's tasks.
    readonly: bool
