"""Open API 3 (oapi) reader and writer.

Only ``components.schemas`` is considered; paths and operations are ignored.
Documents are YAML or JSON; the reader picks by file extension and the
writer by its ``format`` option.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from typing import Any, Literal

import yaml

from typebridge.core.errors import MalformedTypeError
from typebridge.core.models import ConversionResult, NodeDocument
from typebridge.formats.json_schema import (
    core_types_to_json_schema,
    json_schema_to_core_types,
    parse_json,
    stringify,
)
from typebridge.formats.openapi_schema import (
    DEFAULT_OPENAPI_VERSION,
    definition_names,
    json_schema_to_open_api,
    open_api_to_json_schema,
)
from typebridge.interfaces.reader import Reader, ReaderOptions, ShortcutReadFunction
from typebridge.interfaces.types import FormatId
from typebridge.interfaces.writer import ShortcutWriteFunction, Writer, WriterOptions

OpenApiFormat = Literal["json", "yaml", "yml"]


def load_open_api(data: str, opts: ReaderOptions) -> dict[str, Any]:
    """Parse an Open API document, as YAML for .yml/.yaml files, else JSON then YAML."""
    filename = (opts.filename or "").lower()
    if filename.endswith((".yml", ".yaml")):
        document = _load_yaml(data)
    else:
        try:
            document = json.loads(data)
        except json.JSONDecodeError:
            document = _load_yaml(data)

    if not isinstance(document, dict):
        raise MalformedTypeError("Open API document must be an object")
    return document


def _load_yaml(data: str) -> Any:
    try:
        return yaml.safe_load(data)
    except yaml.YAMLError as e:
        loc = None
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            loc = {"start": {"line": mark.line + 1, "column": mark.column + 1}}
        raise MalformedTypeError(f"Invalid Open API YAML: {e}", loc=loc) from e


class OpenApiReader(Reader):
    kind = FormatId.oapi

    @property
    def shortcuts(self) -> Mapping[FormatId, ShortcutReadFunction]:
        return {FormatId.oapi: self._passthrough, FormatId.jsc: self._to_json_schema}

    def read(self, data: str, opts: ReaderOptions) -> ConversionResult[NodeDocument]:
        schema = open_api_to_json_schema(load_open_api(data, opts))
        return json_schema_to_core_types(schema, opts.warn)

    def _passthrough(self, data: str, opts: ReaderOptions) -> ConversionResult[str]:
        schema = open_api_to_json_schema(load_open_api(data, opts))
        return ConversionResult(data=data, converted_types=definition_names(schema))

    def _to_json_schema(self, data: str, opts: ReaderOptions) -> ConversionResult[str]:
        schema = open_api_to_json_schema(load_open_api(data, opts))
        return ConversionResult(data=stringify(schema), converted_types=definition_names(schema))


class OpenApiWriter(Writer):
    kind = FormatId.oapi

    def __init__(
        self,
        format: OpenApiFormat = "yaml",
        title: str | None = None,
        version: str = "1",
        schema_version: str = DEFAULT_OPENAPI_VERSION,
    ) -> None:
        self.format = format
        self.title = title
        self.version = version
        self.schema_version = schema_version

    @property
    def shortcuts(self) -> Mapping[FormatId, ShortcutWriteFunction]:
        return {FormatId.jsc: self._from_json_schema}

    def write(self, doc: NodeDocument, opts: WriterOptions) -> ConversionResult[str]:
        result = core_types_to_json_schema(doc)
        return ConversionResult(
            data=self._render(result.data, opts),
            converted_types=result.converted_types,
            not_converted_types=result.not_converted_types,
        )

    def _from_json_schema(
        self, data: str, read_opts: ReaderOptions, write_opts: WriterOptions
    ) -> ConversionResult[str]:
        schema = parse_json(data, "JSON Schema")
        return ConversionResult(
            data=self._render(schema, write_opts),
            converted_types=definition_names(schema),
        )

    def _render(self, schema: dict[str, Any], opts: WriterOptions) -> str:
        document = json_schema_to_open_api(
            schema,
            title=self._title_for(opts),
            version=self.version,
            schema_version=self.schema_version,
        )
        if self.format == "json":
            return stringify(document)
        return yaml.safe_dump(document, sort_keys=False, allow_unicode=True)

    def _title_for(self, opts: WriterOptions) -> str:
        if self.title:
            return self.title
        if opts.source_filename:
            return f"Converted from {os.path.basename(opts.source_filename)} with typebridge"
        return "Converted with typebridge"
