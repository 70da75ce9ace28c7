"""Neutral document model, errors and simplification."""

from typebridge.core.errors import (
    MalformedTypeError,
    MissingReferenceError,
    NoConversionPathError,
    TypeBridgeError,
    UnsupportedError,
    decorate_error,
)
from typebridge.core.models import ConversionResult, NamedType, NodeDocument, uniq
from typebridge.core.simplify import simplify, strip_annotations

__all__ = [
    "ConversionResult",
    "MalformedTypeError",
    "MissingReferenceError",
    "NamedType",
    "NoConversionPathError",
    "NodeDocument",
    "TypeBridgeError",
    "UnsupportedError",
    "decorate_error",
    "simplify",
    "strip_annotations",
    "uniq",
]
