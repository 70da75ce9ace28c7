"""typebridge - convert type definitions between type systems."""

from typebridge.config import TypeBridgeConfig, load_config
from typebridge.converter import (
    BatchConvertGlobOptions,
    BatchConvertOptions,
    ConvertOptions,
    Converter,
    SourceFile,
    SourceString,
    Target,
    batch_convert,
    batch_convert_glob,
    make_converter,
)
from typebridge.core import ConversionResult, NodeDocument, TypeBridgeError
from typebridge.formats import create_default_graph, create_reader, create_writer
from typebridge.graph import ConversionContext, FormatGraph
from typebridge.interfaces import FormatId, Reader, Writer

__version__ = "0.1.0"

__all__ = [
    "BatchConvertGlobOptions",
    "BatchConvertOptions",
    "ConversionContext",
    "ConversionResult",
    "ConvertOptions",
    "Converter",
    "FormatGraph",
    "FormatId",
    "NodeDocument",
    "Reader",
    "SourceFile",
    "SourceString",
    "Target",
    "TypeBridgeConfig",
    "TypeBridgeError",
    "Writer",
    "batch_convert",
    "batch_convert_glob",
    "create_default_graph",
    "create_reader",
    "create_writer",
    "load_config",
    "make_converter",
]
