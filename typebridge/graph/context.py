"""Per-conversion view of a format graph."""

from __future__ import annotations

from typebridge.graph.format_graph import FormatGraph, GraphPath
from typebridge.interfaces.reader import Reader
from typebridge.interfaces.writer import Writer


class ConversionContext:
    """Clones a graph and registers the reader/writer of one conversion.

    The caller's instances may carry options the globally registered
    defaults don't have, so they replace the defaults of their kind in the
    clone only; the shared graph is left untouched.
    """

    def __init__(
        self,
        reader: Reader,
        writer: Writer,
        graph: FormatGraph,
        *,
        shortcut: bool | None = True,
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.shortcut = shortcut
        self.graph = graph.clone()
        self.graph.register_reader(reader)
        self.graph.register_writer(writer)

    def get_path(self) -> GraphPath:
        return self.graph.find_best_path(self.reader, self.writer, self.shortcut)
