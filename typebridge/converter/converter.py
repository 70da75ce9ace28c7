"""Converter: executes a resolved conversion path on one source."""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any

from typebridge.converter.files import get_source, rel_file, write_file
from typebridge.converter.models import (
    ConversionInfo,
    ConversionOutcome,
    ConvertOptions,
    Source,
    SourceFile,
    Target,
)
from typebridge.core.errors import (
    NoConversionPathError,
    TypeBridgeError,
    decorate_error,
    decorate_meta,
)
from typebridge.core.models import NodeDocument, uniq
from typebridge.core.simplify import simplify
from typebridge.errors import format_error
from typebridge.graph.context import ConversionContext
from typebridge.graph.format_graph import FormatGraph, GraphPath, GraphPathSegment, make_path_key
from typebridge.interfaces.reader import Reader, ReaderOptions
from typebridge.interfaces.types import NEUTRAL_FORMAT, FormatId
from typebridge.interfaces.writer import Writer, WriterOptions

logger = logging.getLogger(__name__)


@dataclass
class _HopResult:
    output: str
    converted_types: list[str] = field(default_factory=list)
    not_converted_types: list[str] = field(default_factory=list)
    out_converted_types: list[str] = field(default_factory=list)
    out_not_converted_types: list[str] = field(default_factory=list)


class Converter:
    """Converts sources from the reader's format to the writer's format.

    The conversion path is resolved once, at construction, so a missing
    route fails before any file is touched.
    """

    def __init__(
        self,
        reader: Reader,
        writer: Writer,
        options: ConvertOptions | None = None,
        *,
        graph: FormatGraph | None = None,
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.options = options or ConvertOptions()
        self.cwd = self.options.cwd or os.getcwd()

        if graph is None:
            from typebridge.formats import create_default_graph

            graph = create_default_graph()

        context = ConversionContext(reader, writer, graph, shortcut=self.options.shortcut)
        self.path: GraphPath = context.get_path()
        if not self.path:
            raise NoConversionPathError(reader.kind.value, writer.kind.value)
        logger.debug("conversion path: %s", make_path_key(self.path))

    @property
    def from_format(self) -> FormatId:
        return self.reader.kind

    @property
    def is_simple(self) -> bool:
        """Single hop through core-types: the map/filter/transform pipeline applies."""
        return len(self.path) == 1 and self.path[0].format == NEUTRAL_FORMAT

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def convert(self, source: Source, target: Target | None = None) -> ConversionOutcome:
        """Convert source; write to target if given, else return the output as ``data``."""
        data, filename = await self._read_source(source)
        data_or_filename = filename if self.reader.managed_read else data

        warn = self._make_warn(data, filename)
        read_opts = ReaderOptions(
            warn=warn,
            filename=self._rel(filename) if filename else None,
        )
        write_opts = WriterOptions(
            warn=warn,
            filename=(target.rel_filename or self._rel(target.filename)) if target else None,
            source_filename=self._rel(filename) if filename else None,
            raw_input=data,
        )

        run = self._convert_default if self.is_simple else self._convert_by_path
        try:
            if self.reader.managed_read:
                # Managed readers open the file themselves; keep that off the event loop.
                result = await asyncio.to_thread(run, data_or_filename, read_opts, write_opts)
            else:
                result = run(data_or_filename, read_opts, write_opts)
        except TypeBridgeError as err:
            decorate_error(err, source=data, filename=filename)
            raise

        info_in = ConversionInfo(
            converted_types=result.converted_types,
            not_converted_types=result.not_converted_types,
        )
        info_out = ConversionInfo(
            converted_types=result.out_converted_types,
            not_converted_types=result.out_not_converted_types,
        )

        if target is None:
            return ConversionOutcome(in_=info_in, out=info_out, data=result.output)

        if result.out_converted_types:
            await asyncio.to_thread(write_file, target.filename, result.output)
        else:
            logger.info("no types converted, not writing %s", target.filename)

        return ConversionOutcome(in_=info_in, out=info_out)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _convert_default(
        self, data: str, read_opts: ReaderOptions, write_opts: WriterOptions
    ) -> _HopResult:
        read = self.reader.read(data, read_opts)
        doc = read.data
        if self.options.simplify:
            doc = simplify(doc, merge_objects=self.options.merge_objects)
        doc = self._apply_user_functions(doc)
        written = self.writer.write(doc, write_opts)

        return _HopResult(
            output=written.data,
            converted_types=uniq(read.converted_types),
            not_converted_types=uniq(read.not_converted_types),
            out_converted_types=uniq(written.converted_types),
            out_not_converted_types=uniq(written.not_converted_types),
        )

    def _apply_user_functions(self, doc: NodeDocument) -> NodeDocument:
        opts = self.options
        if opts.map is not None:
            types = doc.types
            doc = doc.model_copy(
                update={"types": [opts.map(t, i, types) for i, t in enumerate(types)]}
            )
        if opts.filter is not None:
            types = doc.types
            doc = doc.model_copy(
                update={"types": [t for i, t in enumerate(types) if opts.filter(t, i, types)]}
            )
        if opts.transform is not None:
            doc = opts.transform(doc)
        return doc

    def _convert_by_path(
        self, data: str, read_opts: ReaderOptions, write_opts: WriterOptions
    ) -> _HopResult:
        """Run every hop in order, feeding each hop's output into the next."""
        hops: list[_HopResult] = []
        current = data
        total = len(self.path)

        for index, segment in enumerate(self.path):
            logger.debug(
                "hop %d/%d: %s", index + 1, total, make_path_key((segment,))
            )
            hop = self._run_hop(segment, current, read_opts, write_opts)
            hops.append(hop)
            current = hop.output

        first, last = hops[0], hops[-1]
        return _HopResult(
            output=last.output,
            converted_types=uniq(first.converted_types),
            not_converted_types=uniq(*(h.not_converted_types for h in hops)),
            out_converted_types=uniq(last.out_converted_types),
            out_not_converted_types=uniq(*(h.out_not_converted_types for h in hops)),
        )

    @staticmethod
    def _run_hop(
        segment: GraphPathSegment,
        data: str,
        read_opts: ReaderOptions,
        write_opts: WriterOptions,
    ) -> _HopResult:
        reader, writer, fmt = segment.reader, segment.writer, segment.format

        if fmt == NEUTRAL_FORMAT:
            read = reader.read(data, read_opts)
            written = writer.write(read.data, write_opts)
        else:
            read = reader.shortcuts[fmt](data, read_opts)
            written = writer.shortcuts[fmt](read.data, read_opts, write_opts)

        return _HopResult(
            output=written.data,
            converted_types=read.converted_types,
            not_converted_types=read.not_converted_types,
            out_converted_types=written.converted_types,
            out_not_converted_types=written.not_converted_types,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _read_source(self, source: Source) -> tuple[str | None, str | None]:
        if self.reader.managed_read:
            if not isinstance(source, SourceFile):
                raise ValueError(
                    f"{self.reader.kind.value} reader needs a file source: expected filename, not data"
                )
            cwd = source.cwd or self.cwd
            filename = source.filename if os.path.isabs(source.filename) else os.path.join(cwd, source.filename)
            return None, os.path.normpath(filename)

        src = await get_source(source, self.cwd)
        return src.data, src.filename

    def _rel(self, filename: str) -> str:
        return rel_file(self.options.cwd, filename)

    def _make_warn(self, source: str | None, filename: str | None):
        user_warn = self.options.warn

        def warn(message: str, meta: dict[str, Any] | None = None) -> None:
            full_meta = decorate_meta(meta, source=source, filename=filename)
            if user_warn is not None:
                user_warn(message, full_meta)
            else:
                logger.warning(format_error(message, full_meta))

        return warn


def make_converter(
    reader: Reader,
    writer: Writer,
    options: ConvertOptions | None = None,
    *,
    graph: FormatGraph | None = None,
) -> Converter:
    return Converter(reader, writer, options, graph=graph)
