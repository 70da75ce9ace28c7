"""core-types (ct) reader and writer: the neutral document as JSON."""

from __future__ import annotations

import json

from pydantic import ValidationError

from typebridge.core.errors import MalformedTypeError
from typebridge.core.models import ConversionResult, NodeDocument
from typebridge.interfaces.reader import Reader, ReaderOptions
from typebridge.interfaces.types import FormatId
from typebridge.interfaces.writer import Writer, WriterOptions


class CoreTypesReader(Reader):
    kind = FormatId.ct

    def read(self, data: str, opts: ReaderOptions) -> ConversionResult[NodeDocument]:
        try:
            doc = NodeDocument.model_validate(json.loads(data))
        except json.JSONDecodeError as e:
            raise MalformedTypeError(f"Invalid core-types JSON: {e.msg}", loc={"start": e.pos}) from e
        except ValidationError as e:
            raise MalformedTypeError(f"Invalid core-types document: {e}") from e
        return ConversionResult(data=doc, converted_types=doc.type_names())


class CoreTypesWriter(Writer):
    kind = FormatId.ct

    def write(self, doc: NodeDocument, opts: WriterOptions) -> ConversionResult[str]:
        return ConversionResult(
            data=stringify(doc.model_dump()),
            converted_types=doc.type_names(),
        )


def stringify(value: object) -> str:
    return json.dumps(value, indent=2)
