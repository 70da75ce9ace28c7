"""Concrete readers and writers, and the default format graph."""

from typebridge.config.models import TypeBridgeConfig
from typebridge.formats.core_types import CoreTypesReader, CoreTypesWriter
from typebridge.formats.graphql import GraphQLReader, GraphQLWriter
from typebridge.formats.json_schema import JsonSchemaReader, JsonSchemaWriter
from typebridge.formats.open_api import OpenApiReader, OpenApiWriter
from typebridge.formats.suretype import SureTypeReader, SureTypeWriter
from typebridge.formats.typescript import TypeScriptReader, TypeScriptWriter
from typebridge.graph.format_graph import FormatGraph
from typebridge.interfaces.reader import Reader
from typebridge.interfaces.types import FormatId, parse_format
from typebridge.interfaces.writer import Writer


def _ts_reader(config: TypeBridgeConfig) -> Reader:
    return TypeScriptReader()


def _ts_writer(config: TypeBridgeConfig) -> Writer:
    ts = config.typescript
    return TypeScriptWriter(
        declaration=ts.declaration,
        use_unknown=ts.use_unknown,
        disable_lint_header=ts.disable_lint_header,
        descriptive_header=ts.descriptive_header,
    )


def _gql_reader(config: TypeBridgeConfig) -> Reader:
    return GraphQLReader(unsupported=config.graphql.unsupported)


def _gql_writer(config: TypeBridgeConfig) -> Writer:
    return GraphQLWriter(
        unsupported=config.graphql.unsupported,
        null_type_name=config.graphql.null_type_name,
    )


def _oapi_writer(config: TypeBridgeConfig) -> Writer:
    oapi = config.open_api
    return OpenApiWriter(format=oapi.format, title=oapi.title, version=oapi.version)


def _st_writer(config: TypeBridgeConfig) -> Writer:
    st = config.suretype
    return SureTypeWriter(
        ref_method=st.ref_method,
        export_type=st.export_type,
        export_validator=st.export_validator,
        export_ensurer=st.export_ensurer,
        export_type_guard=st.export_type_guard,
        use_unknown=st.use_unknown,
        inline_types=st.inline_types,
    )


_READER_MAP = {
    FormatId.ts: _ts_reader,
    FormatId.jsc: lambda config: JsonSchemaReader(),
    FormatId.gql: _gql_reader,
    FormatId.oapi: lambda config: OpenApiReader(),
    FormatId.st: lambda config: SureTypeReader(),
    FormatId.ct: lambda config: CoreTypesReader(),
}

_WRITER_MAP = {
    FormatId.ts: _ts_writer,
    FormatId.jsc: lambda config: JsonSchemaWriter(),
    FormatId.gql: _gql_writer,
    FormatId.oapi: _oapi_writer,
    FormatId.st: _st_writer,
    FormatId.ct: lambda config: CoreTypesWriter(),
}


def create_reader(format: FormatId | str, config: TypeBridgeConfig | None = None) -> Reader:
    """Create the reader for format, configured from the app-level config."""
    return _READER_MAP[parse_format(format)](config or TypeBridgeConfig())


def create_writer(format: FormatId | str, config: TypeBridgeConfig | None = None) -> Writer:
    """Create the writer for format, configured from the app-level config."""
    return _WRITER_MAP[parse_format(format)](config or TypeBridgeConfig())


def create_default_graph(config: TypeBridgeConfig | None = None) -> FormatGraph:
    """A graph with one reader and one writer registered for every format."""
    config = config or TypeBridgeConfig()
    graph = FormatGraph()
    for fmt in FormatId:
        graph.register_reader(create_reader(fmt, config))
        graph.register_writer(create_writer(fmt, config))
    return graph


__all__ = [
    "CoreTypesReader",
    "CoreTypesWriter",
    "GraphQLReader",
    "GraphQLWriter",
    "JsonSchemaReader",
    "JsonSchemaWriter",
    "OpenApiReader",
    "OpenApiWriter",
    "SureTypeReader",
    "SureTypeWriter",
    "TypeScriptReader",
    "TypeScriptWriter",
    "create_default_graph",
    "create_reader",
    "create_writer",
]
