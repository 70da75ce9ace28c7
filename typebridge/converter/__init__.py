"""Conversion subsystem: path execution, file handling and batching."""

from typebridge.converter.batch import (
    BatchConvertGlobOptions,
    BatchConvertOptions,
    BatchConvertResult,
    batch_convert,
    batch_convert_glob,
)
from typebridge.converter.converter import Converter, make_converter
from typebridge.converter.models import (
    ConversionInfo,
    ConversionOutcome,
    ConvertOptions,
    Source,
    SourceFile,
    SourceString,
    Target,
)

__all__ = [
    "BatchConvertGlobOptions",
    "BatchConvertOptions",
    "BatchConvertResult",
    "ConversionInfo",
    "ConversionOutcome",
    "ConvertOptions",
    "Converter",
    "Source",
    "SourceFile",
    "SourceString",
    "Target",
    "batch_convert",
    "batch_convert_glob",
    "make_converter",
]
