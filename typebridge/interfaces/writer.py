"""Writer interface: neutral document -> serialized output."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping

from pydantic import BaseModel

from typebridge.core.models import ConversionResult, NodeDocument
from typebridge.interfaces.reader import ReaderOptions, WarnFunction, log_warning
from typebridge.interfaces.types import FormatId


class WriterOptions(BaseModel):
    """Options passed to every write (and writer shortcut) call."""

    warn: WarnFunction = log_warning
    filename: str | None = None
    source_filename: str | None = None
    raw_input: str | None = None


ShortcutWriteFunction = Callable[[str, ReaderOptions, WriterOptions], ConversionResult[str]]


class Writer(ABC):
    """Converts a NodeDocument into serialized output text.

    ``shortcuts`` maps a format F to a function turning F's serialized text
    directly into this writer's output, bypassing the neutral document.
    """

    kind: FormatId

    @property
    def shortcuts(self) -> Mapping[FormatId, ShortcutWriteFunction]:
        return {}

    @abstractmethod
    def write(self, doc: NodeDocument, opts: WriterOptions) -> ConversionResult[str]:
        """Serialize the neutral document."""
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.kind.value}>"
