"""
Desired-state payload for a keyed child collection.

``existing`` maps the identity of every row that must survive to the
attributes to overwrite on it; ``new`` lists rows to insert. The flat form
used by board forms, ``{<id>: {...}, "new": [...]}``, is accepted as well.
"""
from __future__ import annotations

import uuid
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, model_validator

UpdateT = TypeVar("UpdateT", bound=BaseModel)
CreateT = TypeVar("CreateT", bound=BaseModel)


class ChildCollectionSubmission(BaseModel, Generic[UpdateT, CreateT]):
    existing: dict[uuid.UUID, UpdateT] = Field(default_factory=dict)
    new: list[CreateT] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def split_flat_mapping(cls, data: Any) -> Any:
        if isinstance(data, dict) and "existing" not in data and any(k != "new" for k in data):
            flat = dict(data)
            new = flat.pop("new", [])
            return {"existing": flat, "new": new}
        return data
