"""Byte-oriented readers for the document formats found in binary buckets.

Every reader takes the raw payload and returns plain text. Spreadsheet-like
formats flatten to one line per non-empty row.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable
from io import BytesIO

import pytesseract
from docx import Document
from openpyxl import load_workbook
from pdf2image import convert_from_bytes
from PIL import Image
from pypdf import PdfReader

logger = logging.getLogger(__name__)

TEXT_ENCODINGS = ("utf-8", "utf-8-sig", "latin-1")
DEFAULT_OCR_LANG = "eng"


def _non_blank(values: Iterable[object]) -> list[str]:
    cleaned = (str(value).strip() for value in values if value is not None)
    return [value for value in cleaned if value]


def decode_text(data: bytes, encodings: Iterable[str] = TEXT_ENCODINGS) -> str:
    """Decode bytes trying each encoding in turn."""

    for enc in encodings:
        try:
            return data.decode(enc)
        except UnicodeDecodeError as exc:
            logger.debug("payload is not %s: %s", enc, exc)
    return data.decode("utf-8", errors="ignore")


def ocr_image(image: Image.Image, *, ocr_lang: str | None = None) -> str:
    return pytesseract.image_to_string(image, lang=ocr_lang or DEFAULT_OCR_LANG)


def _pdf_page_texts(data: bytes) -> list[str]:
    texts = []
    for number, page in enumerate(PdfReader(BytesIO(data)).pages, start=1):
        try:
            texts.append(page.extract_text() or "")
        except Exception as exc:
            logger.debug("pdf page %d has no extractable text: %s", number, exc)
            texts.append("")
    return texts


def read_pdf_bytes(
    data: bytes, *, use_ocr: bool = False, ocr_lang: str | None = None
) -> str:
    """Extract embedded PDF text, falling back to OCR for scanned documents."""

    texts = _pdf_page_texts(data)
    if use_ocr and not any(text.strip() for text in texts):
        logger.info("no embedded text in %d page(s); running OCR", len(texts))
        texts = [ocr_image(page, ocr_lang=ocr_lang) for page in convert_from_bytes(data)]
    return "\n".join(texts)


def read_image_bytes(data: bytes, *, ocr_lang: str | None = None) -> str:
    with Image.open(BytesIO(data)) as image:
        return ocr_image(image, ocr_lang=ocr_lang)


def read_docx_bytes(data: bytes) -> str:
    """Paragraphs first, then table rows as ``a | b`` lines."""

    document = Document(BytesIO(data))
    blocks = _non_blank(paragraph.text for paragraph in document.paragraphs)
    for table in document.tables:
        for row in table.rows:
            cells = _non_blank(cell.text for cell in row.cells)
            if cells:
                blocks.append(" | ".join(cells))
    return "\n\n".join(blocks)


def read_xlsx_bytes(data: bytes) -> str:
    workbook = load_workbook(filename=BytesIO(data), data_only=True, read_only=True)
    lines: list[str] = []
    try:
        for sheet in workbook.worksheets:
            for row in sheet.iter_rows(values_only=True):
                cells = _non_blank(row)
                if cells:
                    lines.append(f"{sheet.title}: {' | '.join(cells)}")
    finally:
        workbook.close()
    return "\n".join(lines)


def read_csv_bytes(data: bytes) -> str:
    """Render CSV rows as comma-joined lines; the dialect is sniffed from the header."""

    raw = decode_text(data)
    rows = raw.splitlines()
    dialect: type[csv.Dialect] | str = "excel"
    if rows:
        try:
            dialect = csv.Sniffer().sniff(rows[0])
        except csv.Error:
            logger.debug("could not sniff csv dialect; using excel")

    lines = [", ".join(_non_blank(row)) for row in csv.reader(rows, dialect)]
    lines = [line for line in lines if line]
    return "\n".join(lines) if lines else raw
