"""Exception hierarchy for conversions.

Errors raised by readers and writers carry optional location metadata so the
CLI can render a code frame. The converter fills in ``source`` and
``filename`` before re-raising; it never replaces the original exception.
"""

from __future__ import annotations

from typing import Any


class TypeBridgeError(Exception):
    """Base class for conversion errors with optional source metadata."""

    def __init__(
        self,
        message: str,
        *,
        source: str | None = None,
        filename: str | None = None,
        loc: dict[str, Any] | None = None,
        blob: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.source = source
        self.filename = filename
        self.loc = loc
        self.blob = blob

    @property
    def meta(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "filename": self.filename,
            "loc": self.loc,
            "blob": self.blob,
        }


class MalformedTypeError(TypeBridgeError):
    """Input could not be parsed into types."""


class UnsupportedError(TypeBridgeError):
    """A construct is not supported by the target and the policy is to fail."""


class MissingReferenceError(TypeBridgeError):
    """A type references a name that is not defined."""


class NoConversionPathError(TypeBridgeError):
    """No reader/writer route connects the requested formats."""

    def __init__(self, from_format: str, to_format: str) -> None:
        self.from_format = from_format
        self.to_format = to_format
        super().__init__(f"No conversion path found from {from_format!r} to {to_format!r}")


def decorate_error(
    err: TypeBridgeError,
    *,
    source: str | None = None,
    filename: str | None = None,
) -> TypeBridgeError:
    """Fill in missing source metadata on err in place and return it."""
    if err.source is None and source is not None:
        err.source = source
    if err.filename is None and filename is not None:
        err.filename = filename
    return err


def decorate_meta(meta: dict[str, Any] | None, **defaults: Any) -> dict[str, Any]:
    """Merge defaults into a warn() metadata dict without overriding given keys."""
    merged = dict(meta or {})
    for key, value in defaults.items():
        if merged.get(key) is None and value is not None:
            merged[key] = value
    return merged
