"""Reader interface: serialized source -> neutral document."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel

from typebridge.core.models import ConversionResult, NodeDocument
from typebridge.interfaces.types import FormatId

logger = logging.getLogger(__name__)

WarnFunction = Callable[..., None]


def log_warning(message: str, meta: dict[str, Any] | None = None) -> None:
    logger.warning(message)


class ReaderOptions(BaseModel):
    """Options passed to every read (and reader shortcut) call."""

    warn: WarnFunction = log_warning
    filename: str | None = None


ShortcutReadFunction = Callable[[str, ReaderOptions], ConversionResult[str]]


class Reader(ABC):
    """Converts serialized source text into a NodeDocument.

    A managed reader (``managed_read = True``) receives a file path instead of
    the file's content, and can only start a conversion path, never continue
    one. ``shortcuts`` maps a format F to a function turning this reader's
    source text directly into F's serialized text.
    """

    kind: FormatId
    managed_read: bool = False

    @property
    def shortcuts(self) -> Mapping[FormatId, ShortcutReadFunction]:
        return {}

    @abstractmethod
    def read(self, data: str, opts: ReaderOptions) -> ConversionResult[NodeDocument]:
        """Read data (or a file path, for managed readers) into the neutral document."""
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} kind={self.kind.value}>"
