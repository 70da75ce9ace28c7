"""Reader/writer contracts and format identifiers."""

from typebridge.interfaces.reader import (
    Reader,
    ReaderOptions,
    ShortcutReadFunction,
    WarnFunction,
)
from typebridge.interfaces.types import FORMAT_NAMES, NEUTRAL_FORMAT, FormatId, parse_format
from typebridge.interfaces.writer import ShortcutWriteFunction, Writer, WriterOptions

__all__ = [
    "FORMAT_NAMES",
    "FormatId",
    "NEUTRAL_FORMAT",
    "Reader",
    "ReaderOptions",
    "ShortcutReadFunction",
    "ShortcutWriteFunction",
    "WarnFunction",
    "Writer",
    "WriterOptions",
    "parse_format",
]
