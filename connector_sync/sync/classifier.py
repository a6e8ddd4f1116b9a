"""Decide how a connector's items are read, then extract each one.

The item kind is resolved once per connector, before the item loop:

1. ``binary_bucket`` if the target bucket holds at least one stored file.
   This wins over any declared content field.
2. ``declared_field`` if the definition names a content field.
3. ``generic`` otherwise: whole records are stringified.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

from .archive import BlobArchive
from .connectors import SourceConnection
from .extraction import BlobExtractor, TextExtractor, stringify_record
from .models import ConnectorDefinition, ExtractedContent, ItemKind, SourceItem


class RecordClassifier:
    """Resolve the :class:`ItemKind` of a connector and extract its items."""

    def __init__(
        self,
        *,
        text_extractor: TextExtractor | None = None,
        blob_extractor: BlobExtractor | None = None,
        archive: BlobArchive | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.blob_extractor = blob_extractor or BlobExtractor()
        self.text_extractor = text_extractor or TextExtractor(self.blob_extractor)
        self.archive = archive
        self.logger = logger or logging.getLogger(__name__)

    def classify(
        self, connector: ConnectorDefinition, source: SourceConnection
    ) -> ItemKind:
        if source.has_binary_objects():
            if connector.has_declared_field:
                self.logger.info(
                    "bucket '%s' holds binary objects; ignoring declared field '%s'",
                    connector.collection_name,
                    connector.content_field,
                )
            return ItemKind.BINARY_BUCKET
        if connector.has_declared_field:
            return ItemKind.DECLARED_FIELD
        return ItemKind.GENERIC

    @staticmethod
    def iter_items(kind: ItemKind, source: SourceConnection) -> Iterator[SourceItem]:
        if kind == ItemKind.BINARY_BUCKET:
            return source.iter_binary_objects()
        return source.iter_records()

    # ------------------------------------------------------------------
    # Extraction per kind
    # ------------------------------------------------------------------

    def _archive_name(
        self, connector: ConnectorDefinition, item: SourceItem, default: str
    ) -> str:
        return "/".join(
            [
                connector.coid.lower(),
                connector.database,
                connector.collection_name,
                item.item_id,
                item.name or default,
            ]
        )

    def _extract_binary(
        self, connector: ConnectorDefinition, item: SourceItem
    ) -> ExtractedContent:
        data = item.data or b""
        content = self.blob_extractor.extract(data)
        if content.text and self.archive is not None:
            content.file_url = self.archive.upload(
                data,
                self._archive_name(connector, item, "blob"),
                content.mime_type or "application/octet-stream",
            )
        return content

    def _extract_declared(
        self, connector: ConnectorDefinition, item: SourceItem
    ) -> ExtractedContent:
        record = item.record or {}
        value = record.get(connector.content_field or "")
        return self.text_extractor.extract(value, connector.field_type)

    def _extract_generic(
        self, connector: ConnectorDefinition, item: SourceItem
    ) -> ExtractedContent:
        text = stringify_record(item.record or {})
        content = ExtractedContent(text=text, mime_type="text/plain")
        if text and self.archive is not None:
            content.file_url = self.archive.upload(
                text.encode("utf-8"),
                self._archive_name(connector, item, "record.txt"),
                "text/plain",
            )
        return content

    def extract(
        self, kind: ItemKind, connector: ConnectorDefinition, item: SourceItem
    ) -> ExtractedContent:
        """Extract one item according to the connector's resolved kind.

        Raises :class:`~connector_sync.sync.errors.ExtractionError` or
        :class:`~connector_sync.sync.errors.ArchiveError` for the item alone.
        """

        if kind == ItemKind.BINARY_BUCKET:
            return self._extract_binary(connector, item)
        if kind == ItemKind.DECLARED_FIELD:
            return self._extract_declared(connector, item)
        return self._extract_generic(connector, item)


__all__ = ["RecordClassifier"]
