"""
ORM model package. Import all models here so Alembic autogenerate
can discover every table through the shared Base metadata.
"""
from kanban.models.user import User  # noqa: F401
from kanban.models.board import Board, BoardUserAssignment, Bucket  # noqa: F401
from kanban.models.task import Task, TaskStatus  # noqa: F401
from kanban.models.checklist import ChecklistElement  # noqa: F401
from kanban.models.link import Link  # noqa: F401
from kanban.models.attachment import Attachment  # noqa: F401
from kanban.models.comment import Comment  # noqa: F401
from kanban.models.assignment import TaskUserAssignment  # noqa: F401
