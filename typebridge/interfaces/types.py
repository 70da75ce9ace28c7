"""Format identifiers for the supported type systems."""

from __future__ import annotations

from enum import Enum


class FormatId(str, Enum):
    """Tag identifying a type system. ``ct`` is the neutral core-types format."""

    ts = "ts"
    jsc = "jsc"
    gql = "gql"
    oapi = "oapi"
    st = "st"
    ct = "ct"


NEUTRAL_FORMAT = FormatId.ct

FORMAT_NAMES: dict[FormatId, str] = {
    FormatId.ts: "TypeScript",
    FormatId.jsc: "JSON Schema",
    FormatId.gql: "GraphQL",
    FormatId.oapi: "Open API",
    FormatId.st: "SureType",
    FormatId.ct: "core-types",
}


def parse_format(value: str | FormatId) -> FormatId:
    """Resolve a format identifier, raising ValueError listing the valid ones."""
    if isinstance(value, FormatId):
        return value
    try:
        return FormatId(value.lower())
    except ValueError:
        valid = ", ".join(f.value for f in FormatId)
        raise ValueError(f"Invalid type system identifier {value!r}: expected one of {valid}") from None
