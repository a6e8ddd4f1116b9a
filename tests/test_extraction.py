from __future__ import annotations

import io
import struct
import zipfile
import zlib
from datetime import datetime

import pytest

from connector_sync.sync import extraction
from connector_sync.sync.errors import ExtractionError, UnsupportedContentError
from connector_sync.sync.extraction import (
    DOCX_MIME,
    XLSX_MIME,
    BlobExtractor,
    TextExtractor,
    stringify_record,
    stringify_value,
)


def _zip_with(name: str) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        archive.writestr(name, "<xml/>")
    return buf.getvalue()


@pytest.fixture
def fake_magic(monkeypatch):
    """Make libmagic return a fixed MIME type and record what it was given."""

    seen: dict[str, object] = {}

    def _install(mime: str):
        def from_buffer(data, mime=False):
            seen["data"] = data
            seen["mime"] = mime
            return mime_type

        mime_type = mime
        monkeypatch.setattr(extraction.magic, "from_buffer", from_buffer)
        return seen

    return _install


def test_sniff_only_reads_leading_bytes(fake_magic):
    seen = fake_magic("text/plain")

    BlobExtractor().sniff(b"a" * 5000)

    assert len(seen["data"]) == extraction.SNIFF_BYTES
    assert seen["mime"] is True


@pytest.mark.parametrize(
    ("member", "expected"),
    [("word/document.xml", DOCX_MIME), ("xl/workbook.xml", XLSX_MIME)],
)
def test_sniff_refines_office_zip(fake_magic, member, expected):
    fake_magic("application/zip")

    assert BlobExtractor().sniff(_zip_with(member)) == expected


def test_sniff_plain_zip_stays_zip(fake_magic):
    fake_magic("application/octet-stream")

    assert BlobExtractor().sniff(_zip_with("readme.txt")) == "application/zip"


def test_blob_extract_pdf_routes_to_reader(fake_magic, monkeypatch):
    fake_magic("application/pdf")
    calls = {}

    def fake_pdf(data, *, use_ocr, ocr_lang):
        calls.update(use_ocr=use_ocr, ocr_lang=ocr_lang)
        return "  pdf text \n"

    monkeypatch.setattr(extraction, "read_pdf_bytes", fake_pdf)

    content = BlobExtractor(use_ocr=True, ocr_lang="deu").extract(b"%PDF-1.7 ...")

    assert content.text == "pdf text"
    assert content.mime_type == "application/pdf"
    assert calls == {"use_ocr": True, "ocr_lang": "deu"}


def test_blob_extract_plain_text(fake_magic):
    fake_magic("text/plain")

    content = BlobExtractor().extract("hello\nworld".encode("utf-8"))

    assert content.text == "hello\nworld"
    assert content.mime_type == "text/plain"


def test_blob_extract_html(fake_magic):
    fake_magic("text/html")

    content = BlobExtractor().extract(b"<p>Hello</p><p>there</p>")

    assert content.text == "Hello\nthere"


def test_blob_extract_unsupported_type(fake_magic):
    fake_magic("application/x-executable")

    with pytest.raises(UnsupportedContentError) as excinfo:
        BlobExtractor().extract(b"\x7fELF....")

    assert excinfo.value.mime_type == "application/x-executable"
    assert isinstance(excinfo.value, ExtractionError)


def test_blob_extract_wraps_parser_failures(fake_magic, monkeypatch):
    fake_magic(DOCX_MIME)

    def boom(_data):
        raise ValueError("corrupt archive")

    monkeypatch.setattr(extraction, "read_docx_bytes", boom)

    with pytest.raises(ExtractionError, match="corrupt archive"):
        BlobExtractor().extract(b"not really a docx")


def test_blob_extract_empty_payload_skips_sniffing(monkeypatch):
    def fail(*_args, **_kwargs):
        raise AssertionError("libmagic should not be called")

    monkeypatch.setattr(extraction.magic, "from_buffer", fail)

    content = BlobExtractor().extract(b"")

    assert content.text == ""


def test_text_extractor_plain_hint():
    content = TextExtractor().extract("some text", "text")

    assert content.text == "some text"
    assert content.mime_type == "text/plain"


def test_text_extractor_markdown_hint():
    content = TextExtractor().extract("# Title\n\nBody", "Markdown")

    assert content.text == "Title\nBody"
    assert content.mime_type == "text/markdown"


def test_text_extractor_html_requires_string():
    with pytest.raises(ExtractionError):
        TextExtractor().extract(b"<p>x</p>", "html")


def test_text_extractor_pdf_requires_bytes():
    with pytest.raises(ExtractionError):
        TextExtractor().extract("not bytes", "pdf")


def test_text_extractor_binary_hint_uses_blob_extractor():
    class _Blob:
        use_ocr = False
        ocr_lang = None

        def __init__(self):
            self.seen = None

        def extract(self, data):
            self.seen = data
            return extraction.ExtractedContent(text="from blob", mime_type="image/png")

    blob = _Blob()
    content = TextExtractor(blob).extract(b"\x89PNG", "binary")

    assert blob.seen == b"\x89PNG"
    assert content.text == "from blob"


def test_text_extractor_unknown_hint_stringifies():
    content = TextExtractor().extract({"a": 1, "b": [1, 2]}, "json-ish")

    assert content.text == '{\n  "a": 1,\n  "b": [\n    1,\n    2\n  ]\n}'
    assert content.mime_type is None


def test_text_extractor_missing_value_is_empty():
    assert TextExtractor().extract(None, "text").text == ""


def test_stringify_value_handles_non_json_types():
    rendered = stringify_value({"when": datetime(2024, 1, 2, 3, 4, 5), "raw": b"abc"})

    assert '"when": "2024-01-02T03:04:05"' in rendered
    assert '"raw": "<binary 3 bytes>"' in rendered


def test_stringify_record_drops_identifier():
    assert stringify_record({"_id": "x", "name": "Widget"}) == '{\n  "name": "Widget"\n}'
    assert stringify_record({"_id": "x"}) == ""


@pytest.mark.parametrize("hint", ["text", "json-ish"])
def test_text_extractor_whitespace_only_value_is_empty(hint):
    assert TextExtractor().extract("  \n\t ", hint).text == ""


def test_text_extractor_plain_hint_strips_surrounding_whitespace():
    assert TextExtractor().extract("\n  hello world  \n", "text").text == "hello world"


def _png_header() -> bytes:
    ihdr = struct.pack(">IIBBBBB", 1, 1, 8, 2, 0, 0, 0)
    crc = struct.pack(">I", zlib.crc32(b"IHDR" + ihdr) & 0xFFFFFFFF)
    return b"\x89PNG\r\n\x1a\n" + struct.pack(">I", len(ihdr)) + b"IHDR" + ihdr + crc


def _minimal_docx() -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as archive:
        archive.writestr(
            "[Content_Types].xml",
            '<?xml version="1.0"?><Types xmlns="http://schemas.openxmlformats.org/'
            'package/2006/content-types"/>',
        )
        archive.writestr("word/document.xml", "<w:document/>")
    return buf.getvalue()


def test_sniff_pdf_signature_with_libmagic():
    data = b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\n%%EOF\n"

    assert BlobExtractor().sniff(data) == "application/pdf"


def test_sniff_png_signature_with_libmagic():
    assert BlobExtractor().sniff(_png_header()) == "image/png"


def test_sniff_docx_zip_with_libmagic():
    assert BlobExtractor().sniff(_minimal_docx()) == DOCX_MIME
