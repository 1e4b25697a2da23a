"""Annotated field types shared by the memory, vector and embedding models."""

from typing import Annotated, Any, Literal

from pydantic import BeforeValidator, Field


def _split_terms(value: Any) -> list[str]:
    # Keywords and tags arrive from the memory store either as a list or as
    # one comma-joined column; blanks are dropped in both cases
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        return value
    return [term for term in (str(item).strip() for item in value if item is not None) if term]


StrList = Annotated[list[str], BeforeValidator(_split_terms)]

UnitFloat = Annotated[float, Field(ge=0.0, le=1.0)]

PositiveInt = Annotated[int, Field(ge=1)]

Vector = list[float]

# Memory, owner entity and profile ids are opaque but never empty
EntityId = Annotated[str, Field(min_length=1)]

MemorySource = Literal["AUTO", "MANUAL"]
