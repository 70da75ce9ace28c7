"""Pydantic models for the conversion subsystem."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from typebridge.core.models import NamedType, NodeDocument
from typebridge.interfaces.reader import WarnFunction

ConvertMapFunction = Callable[[NamedType, int, list[NamedType]], NamedType]
ConvertFilterFunction = Callable[[NamedType, int, list[NamedType]], bool]
ConvertTransformFunction = Callable[[NodeDocument], NodeDocument]


class SourceString(BaseModel):
    """In-memory source text."""

    data: str


class SourceFile(BaseModel):
    """Source file on disk; relative filenames resolve against cwd."""

    filename: str
    cwd: str | None = None


Source = SourceString | SourceFile


class Target(BaseModel):
    """Where to persist the converted output."""

    filename: str
    rel_filename: str | None = None


class ConvertOptions(BaseModel):
    """Options for a Converter.

    The neutral-route pipeline applies, in order: simplify, map, filter,
    transform. None of these apply to shortcut routes.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    cwd: str | None = None
    simplify: bool = True
    merge_objects: bool = False
    map: ConvertMapFunction | None = None
    filter: ConvertFilterFunction | None = None
    transform: ConvertTransformFunction | None = None
    shortcut: bool = True
    warn: WarnFunction | None = None


class ConversionInfo(BaseModel):
    """Type names handled vs. rejected on one side of a conversion."""

    converted_types: list[str] = Field(default_factory=list)
    not_converted_types: list[str] = Field(default_factory=list)


class ConversionOutcome(BaseModel):
    """Result of Converter.convert. ``data`` is None when a target was written."""

    model_config = ConfigDict(populate_by_name=True)

    in_: ConversionInfo = Field(alias="in")
    out: ConversionInfo
    data: str | None = None

    def summary(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)
