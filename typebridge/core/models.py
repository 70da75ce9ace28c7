"""Pydantic models for the neutral (core-types) document and conversion results."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, field_validator

T = TypeVar("T")

# A named type is a core-types node (plain JSON-compatible dict) with a "name" key.
NamedType = dict[str, Any]

ANNOTATION_KEYS: tuple[str, ...] = ("title", "description", "examples", "default", "comment", "see")


class NodeDocument(BaseModel):
    """The neutral document every reader produces and every writer consumes."""

    version: int = 1
    types: list[NamedType] = Field(default_factory=list)

    @field_validator("types")
    @classmethod
    def validate_types(cls, v: list[NamedType]) -> list[NamedType]:
        for index, named in enumerate(v):
            if not isinstance(named.get("name"), str):
                raise ValueError(f"type #{index} must have a string 'name'")
            if "type" not in named:
                raise ValueError(f"type {named['name']!r} has no 'type'")
        return v

    def type_names(self) -> list[str]:
        return [t["name"] for t in self.types]


class ConversionResult(BaseModel, Generic[T]):
    """Output of one read, write or shortcut hop."""

    data: T
    converted_types: list[str] = Field(default_factory=list)
    not_converted_types: list[str] = Field(default_factory=list)


def uniq(*groups: Iterable[str]) -> list[str]:
    """Concatenate name lists, keeping first occurrences only."""
    seen: dict[str, None] = {}
    for group in groups:
        for name in group:
            seen.setdefault(name, None)
    return list(seen)


def annotations_of(node: dict[str, Any]) -> dict[str, Any]:
    return {k: node[k] for k in ANNOTATION_KEYS if k in node}
