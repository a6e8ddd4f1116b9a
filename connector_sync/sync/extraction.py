"""Content extraction for declared fields, generic records and binary blobs.

Two extractors live here:

- :class:`TextExtractor` handles a record field whose type is declared on the
  connector definition (plain text, markdown, HTML, PDF bytes or raw binary).
- :class:`BlobExtractor` handles an opaque byte buffer. The MIME type is
  sniffed from the leading bytes with libmagic, never from a file name, and
  selects the text-extraction strategy.

Records without a declared field are stringified as indented JSON by
:func:`stringify_record`.
"""

from __future__ import annotations

import json
import logging
import zipfile
from collections.abc import Callable, Mapping
from datetime import date, datetime
from decimal import Decimal
from io import BytesIO
from typing import Any

import magic

from .errors import ExtractionError, UnsupportedContentError
from .models import ExtractedContent
from .parsers import (
    decode_text,
    extract_html_text,
    extract_markdown_text,
    read_csv_bytes,
    read_docx_bytes,
    read_image_bytes,
    read_pdf_bytes,
    read_xlsx_bytes,
)

SNIFF_BYTES = 2048

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
ZIP_MIMES = {"application/zip", "application/x-zip-compressed", "application/octet-stream"}
TEXTUAL_APPLICATION_MIMES = {
    "application/json",
    "application/xml",
    "application/x-ndjson",
    "application/javascript",
}

TEXT_HINTS = {"text", "plain", "string"}
MARKDOWN_HINTS = {"markdown", "md"}
HTML_HINTS = {"html"}
PDF_HINTS = {"pdf"}
BINARY_HINTS = {"binary", "blob", "file"}


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"<binary {len(value)} bytes>"
    return str(value)


def stringify_value(value: Any) -> str:
    """Human-readable rendering of an arbitrary field value."""

    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, ensure_ascii=False, default=_json_safe)


def stringify_record(record: Mapping[str, Any]) -> str:
    """Render a whole record, minus its own ``_id``, as indented JSON."""

    body = {key: value for key, value in record.items() if key != "_id"}
    if not body:
        return ""
    return stringify_value(body)


class BlobExtractor:
    """Sniff a byte buffer's MIME type and pull text out of it."""

    def __init__(
        self,
        *,
        use_ocr: bool = False,
        ocr_lang: str | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.use_ocr = use_ocr
        self.ocr_lang = ocr_lang
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    @staticmethod
    def _refine_zip(data: bytes) -> str | None:
        try:
            with zipfile.ZipFile(BytesIO(data)) as archive:
                names = set(archive.namelist())
        except zipfile.BadZipFile:
            return None
        if "word/document.xml" in names:
            return DOCX_MIME
        if "xl/workbook.xml" in names:
            return XLSX_MIME
        return "application/zip"

    def sniff(self, data: bytes) -> str:
        """Return the MIME type implied by the payload's signature."""

        mime_type = magic.from_buffer(bytes(data[:SNIFF_BYTES]), mime=True)
        if mime_type in ZIP_MIMES and data[:4] == b"PK\x03\x04":
            mime_type = self._refine_zip(data) or mime_type
        return mime_type

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def _strategy(self, mime_type: str) -> Callable[[bytes], str]:
        if mime_type == PDF_MIME:
            return lambda data: read_pdf_bytes(
                data, use_ocr=self.use_ocr, ocr_lang=self.ocr_lang
            )
        if mime_type.startswith("image/"):
            return lambda data: read_image_bytes(data, ocr_lang=self.ocr_lang)
        if mime_type == DOCX_MIME:
            return read_docx_bytes
        if mime_type == XLSX_MIME:
            return read_xlsx_bytes
        if mime_type == "text/csv":
            return read_csv_bytes
        if mime_type == "text/html":
            return lambda data: extract_html_text(decode_text(data))
        if mime_type == "text/markdown":
            return lambda data: extract_markdown_text(decode_text(data))
        if mime_type.startswith("text/") or mime_type in TEXTUAL_APPLICATION_MIMES:
            return decode_text
        raise UnsupportedContentError(mime_type)

    def extract(self, data: bytes) -> ExtractedContent:
        """Sniff ``data`` and return its text together with the MIME type."""

        if not data:
            return ExtractedContent(text="", mime_type=None)
        mime_type = self.sniff(data)
        strategy = self._strategy(mime_type)
        try:
            text = strategy(bytes(data))
        except ExtractionError:
            raise
        except Exception as exc:
            raise ExtractionError(f"failed to extract {mime_type}: {exc}") from exc
        self.logger.debug("extracted %d chars from %s payload", len(text), mime_type)
        return ExtractedContent(text=text.strip(), mime_type=mime_type)


class TextExtractor:
    """Extract text from a record field according to its declared type."""

    def __init__(self, blob_extractor: BlobExtractor | None = None) -> None:
        self.blob_extractor = blob_extractor or BlobExtractor()

    @staticmethod
    def _require_bytes(value: Any, hint: str) -> bytes:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        raise ExtractionError(
            f"field type '{hint}' expects binary data, got {type(value).__name__}"
        )

    @staticmethod
    def _require_str(value: Any, hint: str) -> str:
        if isinstance(value, str):
            return value
        raise ExtractionError(
            f"field type '{hint}' expects a string, got {type(value).__name__}"
        )

    def extract(self, value: Any, field_type: str | None) -> ExtractedContent:
        """Return the text carried by ``value`` interpreted as ``field_type``."""

        if value is None:
            return ExtractedContent(text="")
        hint = (field_type or "").strip().lower()

        if hint in TEXT_HINTS:
            return ExtractedContent(
                text=stringify_value(value).strip(), mime_type="text/plain"
            )
        if hint in MARKDOWN_HINTS:
            source = self._require_str(value, hint)
            return ExtractedContent(
                text=extract_markdown_text(source), mime_type="text/markdown"
            )
        if hint in HTML_HINTS:
            source = self._require_str(value, hint)
            return ExtractedContent(text=extract_html_text(source), mime_type="text/html")
        if hint in PDF_HINTS:
            data = self._require_bytes(value, hint)
            try:
                text = read_pdf_bytes(
                    data,
                    use_ocr=self.blob_extractor.use_ocr,
                    ocr_lang=self.blob_extractor.ocr_lang,
                )
            except Exception as exc:
                raise ExtractionError(f"failed to read PDF field: {exc}") from exc
            return ExtractedContent(text=text.strip(), mime_type=PDF_MIME)
        if hint in BINARY_HINTS:
            return self.blob_extractor.extract(self._require_bytes(value, hint))
        return ExtractedContent(text=stringify_value(value).strip())


__all__ = [
    "BlobExtractor",
    "TextExtractor",
    "stringify_record",
    "stringify_value",
]
