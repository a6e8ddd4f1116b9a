"""Synchronisation pass over every registered connector.

Responsibilities
----------------
- Open the source store for each connector definition and always release it.
- Resolve the item kind once, then extract, chunk and assemble every item.
- Flush search documents to the sink in bounded batches.
- Advance the connector's watermark only after all of its batches landed.

Failures are contained where they happen: a broken item is skipped, a broken
connector is reported and the pass moves on to the next one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from datetime import datetime, timezone
from threading import Event
from typing import Protocol

from .assembler import assemble_document
from .chunking import DEFAULT_MAX_CHUNK_SIZE, chunk_text
from .classifier import RecordClassifier
from .connectors import SourceConnection, mask_uri
from .connectors.mongo import MongoSource
from .errors import (
    ArchiveError,
    ConnectorUnavailableError,
    ExtractionError,
    SubmissionError,
)
from .models import (
    DEFAULT_INDEX_PREFIX,
    ConnectorDefinition,
    ConnectorSyncResult,
    ItemKind,
    SearchDocument,
    SourceItem,
    SyncRunReport,
    SyncStatus,
)

DEFAULT_MAX_BATCH_SIZE = 1000

SourceFactory = Callable[[ConnectorDefinition], SourceConnection]


class WatermarkStore(Protocol):
    def update_watermark(self, definition_id, synced_at: datetime | None = None) -> datetime: ...


class DocumentSink(Protocol):
    def upsert(self, index_name: str, documents: Sequence[SearchDocument]) -> object: ...


class _Canceled(Exception):
    """Raised inside a connector worker once its deadline has passed."""


class BatchBuilder:
    """Collect one connector's documents and flush them in bounded batches."""

    def __init__(
        self,
        sink: DocumentSink,
        index_name: str,
        *,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        cancel_event: Event | None = None,
    ) -> None:
        if max_batch_size <= 0:
            raise ValueError("max_batch_size must be positive")
        self.sink = sink
        self.index_name = index_name
        self.max_batch_size = max_batch_size
        self.cancel_event = cancel_event
        self._pending: list[SearchDocument] = []
        self.submitted = 0
        self.batches = 0

    def add(self, documents: Iterable[SearchDocument]) -> None:
        for document in documents:
            self._pending.append(document)
            if len(self._pending) >= self.max_batch_size:
                self.flush()

    def flush(self) -> None:
        if not self._pending:
            return
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise _Canceled()
        batch, self._pending = self._pending, []
        self.sink.upsert(self.index_name, batch)
        self.submitted += len(batch)
        self.batches += 1


class SyncOrchestrator:
    """Run extraction, chunking and submission for each connector in turn."""

    def __init__(
        self,
        *,
        sink: DocumentSink,
        watermarks: WatermarkStore,
        classifier: RecordClassifier | None = None,
        source_factory: SourceFactory | None = None,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        max_batch_size: int = DEFAULT_MAX_BATCH_SIZE,
        index_prefix: str = DEFAULT_INDEX_PREFIX,
        connector_timeout: float | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.sink = sink
        self.watermarks = watermarks
        self.classifier = classifier or RecordClassifier()
        self.source_factory: SourceFactory = source_factory or MongoSource
        self.max_chunk_size = max_chunk_size
        self.max_batch_size = max_batch_size
        self.index_prefix = index_prefix
        self.connector_timeout = connector_timeout
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Per-item pipeline
    # ------------------------------------------------------------------

    def build_documents(
        self,
        kind: ItemKind,
        connector: ConnectorDefinition,
        item: SourceItem,
    ) -> list[SearchDocument]:
        """Extract, chunk and assemble one item. Empty text yields no documents."""

        content = self.classifier.extract(kind, connector, item)
        if not content.text:
            return []
        chunks = chunk_text(
            content.text,
            namespace=connector.database,
            collection=connector.collection_name,
            item_id=item.item_id,
            max_chunk_size=self.max_chunk_size,
        )
        return [
            assemble_document(
                chunk, item, connector, content, index_prefix=self.index_prefix
            )
            for chunk in chunks
        ]

    # ------------------------------------------------------------------
    # Per-connector pipeline
    # ------------------------------------------------------------------

    def _sync_connector(
        self,
        connector: ConnectorDefinition,
        result: ConnectorSyncResult,
        cancel_event: Event,
    ) -> None:
        source = self.source_factory(connector)
        try:
            source.open()
            kind = self.classifier.classify(connector, source)
            result.kind = kind
            self.logger.info(
                "connector %s: %s.%s classified as %s",
                connector.id,
                connector.database,
                connector.collection_name,
                kind.value,
            )

            builder = BatchBuilder(
                self.sink,
                result.index_name or "",
                max_batch_size=self.max_batch_size,
                cancel_event=cancel_event,
            )
            for item in self.classifier.iter_items(kind, source):
                if cancel_event.is_set():
                    self.logger.info("connector %s: stopping after deadline", connector.id)
                    raise _Canceled()
                result.items += 1
                try:
                    documents = self.build_documents(kind, connector, item)
                except (ExtractionError, ArchiveError) as exc:
                    result.skipped_items += 1
                    self.logger.warning(
                        "connector %s: skipping item %s: %s", connector.id, item.item_id, exc
                    )
                    continue
                except Exception:
                    result.skipped_items += 1
                    self.logger.exception(
                        "connector %s: unexpected error on item %s", connector.id, item.item_id
                    )
                    continue
                if not documents:
                    self.logger.debug(
                        "connector %s: item %s produced no text", connector.id, item.item_id
                    )
                    continue
                result.documents += len(documents)
                builder.add(documents)

            builder.flush()
            result.batches = builder.batches
            if cancel_event.is_set():
                raise _Canceled()

            if builder.submitted == 0:
                result.status = SyncStatus.EMPTY
                self.logger.info(
                    "connector %s: no documents for %s", connector.id, connector.collection_name
                )
                return

            synced_at = self.watermarks.update_watermark(connector.id)
            result.status = SyncStatus.SUCCEEDED
            self.logger.info(
                "connector %s: pushed %d document(s) in %d batch(es) to %s; watermark=%s",
                connector.id,
                builder.submitted,
                builder.batches,
                result.index_name,
                synced_at.isoformat(),
            )
        finally:
            try:
                source.close()
            except Exception:
                self.logger.exception("connector %s: failed to close source", connector.id)

    def sync_connector(self, connector: ConnectorDefinition) -> ConnectorSyncResult:
        """Synchronise one connector, containing every failure in the result."""

        result = ConnectorSyncResult(
            connector_id=str(connector.id),
            index_name=connector.index_name(self.index_prefix),
        )
        cancel_event = Event()
        try:
            if self.connector_timeout is None:
                self._sync_connector(connector, result, cancel_event)
            else:
                self._run_with_deadline(connector, result, cancel_event)
        except FutureTimeoutError:
            cancel_event.set()
            # the abandoned worker keeps the original object
            result = replace(
                result,
                status=SyncStatus.TIMED_OUT,
                error=f"timed out after {self.connector_timeout}s",
            )
            self.logger.error("connector %s: %s", connector.id, result.error)
        except ConnectorUnavailableError as exc:
            result.status = SyncStatus.SKIPPED
            result.error = str(exc)
            self.logger.error(
                "connector %s: source %s unavailable: %s",
                connector.id,
                mask_uri(connector.mongo_uri),
                exc,
            )
        except SubmissionError as exc:
            result.status = SyncStatus.FAILED
            result.error = str(exc)
            self.logger.error("connector %s: submission failed: %s", connector.id, exc)
        except Exception as exc:
            result.status = SyncStatus.FAILED
            result.error = str(exc)
            self.logger.exception("connector %s: sync failed", connector.id)
        return result

    def _run_with_deadline(
        self,
        connector: ConnectorDefinition,
        result: ConnectorSyncResult,
        cancel_event: Event,
    ) -> None:
        executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"sync-{connector.id}"
        )
        try:
            future = executor.submit(self._sync_connector, connector, result, cancel_event)
            future.result(timeout=self.connector_timeout)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self, connectors: Iterable[ConnectorDefinition]) -> SyncRunReport:
        """Synchronise every connector sequentially and report the outcome."""

        report = SyncRunReport(started_at=datetime.now(timezone.utc))
        for connector in connectors:
            self.logger.info(
                "processing collection %s in database %s (connector %s)",
                connector.collection_name,
                connector.database,
                connector.id,
            )
            report.results.append(self.sync_connector(connector))
        report.finished_at = datetime.now(timezone.utc)
        self.logger.info(
            "sync pass finished connectors=%d succeeded=%d empty=%d skipped=%d failed=%d",
            len(report.results),
            report.count(SyncStatus.SUCCEEDED),
            report.count(SyncStatus.EMPTY),
            report.count(SyncStatus.SKIPPED),
            report.failed,
        )
        return report


__all__ = ["BatchBuilder", "DEFAULT_MAX_BATCH_SIZE", "SyncOrchestrator"]
