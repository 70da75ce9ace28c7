"""Format routing: graph of readers/writers and path search."""

from typebridge.graph.context import ConversionContext
from typebridge.graph.format_graph import FormatGraph, GraphPath, GraphPathSegment, make_path_key

__all__ = [
    "ConversionContext",
    "FormatGraph",
    "GraphPath",
    "GraphPathSegment",
    "make_path_key",
]
