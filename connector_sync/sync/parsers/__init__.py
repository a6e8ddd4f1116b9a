"""Helpers for turning markup and document payloads into plain text."""

from __future__ import annotations

from .documents import (
    decode_text,
    read_csv_bytes,
    read_docx_bytes,
    read_image_bytes,
    read_pdf_bytes,
    read_xlsx_bytes,
)
from .html import extract_html_text, extract_markdown_text

__all__ = [
    "decode_text",
    "read_csv_bytes",
    "read_docx_bytes",
    "read_image_bytes",
    "read_pdf_bytes",
    "read_xlsx_bytes",
    "extract_html_text",
    "extract_markdown_text",
]
