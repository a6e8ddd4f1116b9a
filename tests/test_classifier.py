from __future__ import annotations

import pytest

from conftest import FakeSource, make_connector
from connector_sync.sync.classifier import RecordClassifier
from connector_sync.sync.errors import ArchiveError
from connector_sync.sync.models import ExtractedContent, ItemKind, SourceItem


class _FakeBlobExtractor:
    use_ocr = False
    ocr_lang = None

    def __init__(self, text="blob text", mime="application/pdf"):
        self.text = text
        self.mime = mime
        self.calls: list[bytes] = []

    def extract(self, data):
        self.calls.append(data)
        return ExtractedContent(text=self.text, mime_type=self.mime)


class _FakeArchive:
    def __init__(self, fail: bool = False):
        self.uploads: list[tuple[bytes, str, str]] = []
        self.fail = fail

    def upload(self, data, name, mime_type):
        if self.fail:
            raise ArchiveError("container unreachable")
        self.uploads.append((data, name, mime_type))
        return f"https://blobs.example/c/{name}"


def _binary_item(**overrides) -> SourceItem:
    values = {"item_id": "f1", "data": b"%PDF-1.4", "name": "manual.pdf", "size": 8}
    values.update(overrides)
    return SourceItem(**values)


def test_binary_bucket_wins_over_declared_field(caplog):
    connector = make_connector(content_field="body", field_type="text")
    source = FakeSource(binaries=[_binary_item()])

    with caplog.at_level("INFO"):
        kind = RecordClassifier().classify(connector, source)

    assert kind == ItemKind.BINARY_BUCKET
    assert "ignoring declared field 'body'" in caplog.text


def test_declared_field_when_no_binary_objects():
    connector = make_connector(content_field="body", field_type="text")

    assert RecordClassifier().classify(connector, FakeSource()) == ItemKind.DECLARED_FIELD


def test_generic_without_declared_field():
    assert RecordClassifier().classify(make_connector(), FakeSource()) == ItemKind.GENERIC


def test_iter_items_follows_kind():
    records = [SourceItem(item_id="r1", record={"a": 1})]
    binaries = [_binary_item()]
    source = FakeSource(records=records, binaries=binaries)

    assert list(RecordClassifier.iter_items(ItemKind.BINARY_BUCKET, source)) == binaries
    assert list(RecordClassifier.iter_items(ItemKind.GENERIC, source)) == records
    assert list(RecordClassifier.iter_items(ItemKind.DECLARED_FIELD, source)) == records


def test_binary_item_is_archived_under_tenant_path():
    archive = _FakeArchive()
    blob = _FakeBlobExtractor()
    classifier = RecordClassifier(blob_extractor=blob, archive=archive)

    content = classifier.extract(ItemKind.BINARY_BUCKET, make_connector(), _binary_item())

    assert content.text == "blob text"
    assert content.file_url == "https://blobs.example/c/acmeco/shop/articles/f1/manual.pdf"
    assert archive.uploads == [
        (b"%PDF-1.4", "acmeco/shop/articles/f1/manual.pdf", "application/pdf")
    ]


def test_binary_item_without_text_is_not_archived():
    archive = _FakeArchive()
    classifier = RecordClassifier(blob_extractor=_FakeBlobExtractor(text=""), archive=archive)

    content = classifier.extract(ItemKind.BINARY_BUCKET, make_connector(), _binary_item())

    assert content.text == ""
    assert archive.uploads == []


def test_archive_failure_propagates_for_the_item():
    classifier = RecordClassifier(
        blob_extractor=_FakeBlobExtractor(), archive=_FakeArchive(fail=True)
    )

    with pytest.raises(ArchiveError):
        classifier.extract(ItemKind.BINARY_BUCKET, make_connector(), _binary_item())


def test_declared_field_reads_named_field():
    connector = make_connector(content_field="body", field_type="text")
    item = SourceItem(item_id="r1", record={"_id": "r1", "body": "hello", "other": "x"})

    content = RecordClassifier().extract(ItemKind.DECLARED_FIELD, connector, item)

    assert content.text == "hello"
    assert content.file_url is None


def test_declared_field_missing_value_yields_empty_text():
    connector = make_connector(content_field="body", field_type="text")
    item = SourceItem(item_id="r1", record={"_id": "r1"})

    assert RecordClassifier().extract(ItemKind.DECLARED_FIELD, connector, item).text == ""


def test_generic_record_is_stringified_and_archived():
    archive = _FakeArchive()
    classifier = RecordClassifier(archive=archive)
    item = SourceItem(item_id="r9", record={"_id": "r9", "name": "Widget"})

    content = classifier.extract(ItemKind.GENERIC, make_connector(), item)

    assert content.text == '{\n  "name": "Widget"\n}'
    assert content.mime_type == "text/plain"
    data, name, mime = archive.uploads[0]
    assert data == content.text.encode("utf-8")
    assert name == "acmeco/shop/articles/r9/record.txt"
    assert mime == "text/plain"
