"""
Checklist element CRUD operations.
"""
from __future__ import annotations

from kanban.crud.base import CRUDTaskChild
from kanban.models.checklist import ChecklistElement


class CRUDChecklistElement(CRUDTaskChild[ChecklistElement]):
    order_by = "sort"


crud_checklist = CRUDChecklistElement(ChecklistElement)
