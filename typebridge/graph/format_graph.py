"""FormatGraph routes a reader to a writer through shortcuts or core-types.

Two adjacency maps are kept:

* reader graph: reader kind -> (format -> reader). A reader is registered
  under "ct" and under every format it has a shortcut to. Re-registering a
  reader of the same kind replaces the previous one.
* writer graph: from-format -> (writer kind -> writer). A writer is inserted
  under "ct" and under every format it has a shortcut from. Writers of
  different kinds accumulate under the same from-format; a writer of an
  already present kind replaces that entry in place.

A path is a sequence of hops (reader, intermediate format, writer). The
first hop starts at the requested reader and the last hop ends at a writer of
the requested writer's kind; every hop in between is a registered
reader/writer pair whose output feeds the next hop's reader.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from typebridge.interfaces.reader import Reader
from typebridge.interfaces.types import NEUTRAL_FORMAT, FormatId
from typebridge.interfaces.writer import Writer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphPathSegment:
    """One hop: read with ``reader`` into ``format``, hand off to ``writer``."""

    format: FormatId
    reader: Reader
    writer: Writer


GraphPath = tuple[GraphPathSegment, ...]


def make_path_key(path: GraphPath) -> str:
    """Deterministic identity of a path, e.g. ``st->{jsc}->jsc  jsc->{jsc}->oapi``."""
    return "  ".join(
        f"{seg.reader.kind.value}->{{{seg.format.value}}}->{seg.writer.kind.value}"
        for seg in path
    )


@dataclass(frozen=True)
class _Frame:
    reader: Reader
    path: GraphPath
    visited: frozenset[Reader]
    allow_managed: bool


class FormatGraph:
    """Registry of readers and writers, and the path search between them."""

    def __init__(self) -> None:
        self._reader_graph: dict[FormatId, dict[FormatId, Reader]] = {}
        self._writer_graph: dict[FormatId, dict[FormatId, Writer]] = {}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_reader(self, reader: Reader) -> None:
        entries: dict[FormatId, Reader] = {NEUTRAL_FORMAT: reader}
        for fmt in reader.shortcuts:
            entries[fmt] = reader
        self._reader_graph[reader.kind] = entries
        logger.debug("registered reader %s (formats: %s)", reader.kind.value, _fmt_list(entries))

    def register_writer(self, writer: Writer) -> None:
        from_formats = [NEUTRAL_FORMAT, *(f for f in writer.shortcuts if f != NEUTRAL_FORMAT)]
        for fmt in from_formats:
            self._writer_graph.setdefault(fmt, {})[writer.kind] = writer
        logger.debug("registered writer %s (from: %s)", writer.kind.value, _fmt_list(from_formats))

    @property
    def readers(self) -> list[Reader]:
        """Registered readers, one per kind, in registration order."""
        return _unique(r for entries in self._reader_graph.values() for r in entries.values())

    @property
    def writers(self) -> list[Writer]:
        """Registered writers, one per kind."""
        return _unique(w for entries in self._writer_graph.values() for w in entries.values())

    def get_reader(self, kind: FormatId) -> Reader | None:
        entries = self._reader_graph.get(kind)
        return entries[NEUTRAL_FORMAT] if entries else None

    def get_writer(self, kind: FormatId) -> Writer | None:
        return self._writer_graph.get(NEUTRAL_FORMAT, {}).get(kind)

    # ------------------------------------------------------------------
    # Path search
    # ------------------------------------------------------------------

    def find_all_paths(
        self,
        reader: Reader,
        writer: Writer,
        shortcuts: bool | None,
    ) -> list[GraphPath]:
        """Every distinct path from reader to writer, shortest first.

        ``shortcuts`` selects the connecting formats tried at each step:
        False -> only "ct", True -> only declared shortcuts, None -> both.
        """
        paths: dict[str, GraphPath] = {}
        stack = [_Frame(reader, (), frozenset({reader}), allow_managed=True)]

        while stack:
            frame = stack.pop()
            current = frame.reader
            children: list[_Frame] = []

            for fmt in self._candidate_formats(current, shortcuts):
                for candidate in self._writer_graph.get(fmt, {}).values():
                    if candidate.kind == writer.kind:
                        if current.managed_read and not frame.allow_managed:
                            continue
                        path = (*frame.path, GraphPathSegment(fmt, current, writer))
                        paths[make_path_key(path)] = path
                    elif candidate.kind == current.kind:
                        continue
                    else:
                        hop = GraphPathSegment(fmt, current, candidate)
                        for next_reader in self._readers_for(candidate.kind):
                            if next_reader.managed_read or next_reader in frame.visited:
                                continue
                            children.append(
                                _Frame(
                                    next_reader,
                                    (*frame.path, hop),
                                    frame.visited | {next_reader},
                                    allow_managed=False,
                                )
                            )

            # Reversed so frames pop in the order they were discovered.
            stack.extend(reversed(children))

        return sorted(paths.values(), key=len)

    def find_best_path(
        self,
        reader: Reader,
        writer: Writer,
        shortcut: bool | None,
    ) -> GraphPath:
        """Shortest path under the given shortcut preference.

        Falls back to an unconstrained search when the preference yields
        nothing. Returns an empty path when the formats are unreachable.
        """
        paths = self.find_all_paths(reader, writer, shortcut)
        if not paths and shortcut is not None:
            logger.debug(
                "no path %s -> %s with shortcut=%s, retrying unconstrained",
                reader.kind.value,
                writer.kind.value,
                shortcut,
            )
            paths = self.find_all_paths(reader, writer, None)
        if not paths:
            return ()
        logger.debug("best path: %s", make_path_key(paths[0]))
        return paths[0]

    def clone(self) -> FormatGraph:
        """Independent copy sharing the reader/writer objects."""
        graph = FormatGraph()
        graph._reader_graph = {k: dict(v) for k, v in self._reader_graph.items()}
        graph._writer_graph = {k: dict(v) for k, v in self._writer_graph.items()}
        return graph

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _candidate_formats(reader: Reader, shortcuts: bool | None) -> list[FormatId]:
        # Shortcut formats come first so they win ties against "ct".
        formats: list[FormatId] = []
        if shortcuts is not False:
            formats.extend(f for f in reader.shortcuts if f != NEUTRAL_FORMAT)
        if shortcuts is not True:
            formats.append(NEUTRAL_FORMAT)
        return formats

    def _readers_for(self, kind: FormatId) -> list[Reader]:
        return _unique(self._reader_graph.get(kind, {}).values())


def _unique(items) -> list:
    seen: dict[int, object] = {}
    for item in items:
        seen.setdefault(id(item), item)
    return list(seen.values())


def _fmt_list(formats) -> str:
    return ", ".join(f.value for f in formats)
