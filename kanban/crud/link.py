"""
Link CRUD operations.
"""
from __future__ import annotations

from kanban.crud.base import CRUDTaskChild
from kanban.models.link import Link

crud_link = CRUDTaskChild(Link)
