"""MongoDB source connector: documents from collections, blobs from GridFS."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from gridfs import GridFSBucket
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from ..errors import ConnectorUnavailableError
from ..models import ConnectorDefinition, SourceItem
from . import mask_uri


class MongoSource:
    """Connection to the collection or bucket named by one connector definition.

    The client is created lazily by :meth:`open` so construction never touches
    the network; :meth:`close` is safe to call whether or not ``open`` ran.
    """

    def __init__(
        self,
        connector: ConnectorDefinition,
        *,
        timeout_ms: int = 10000,
        client_factory: Any = MongoClient,
        logger: logging.Logger | None = None,
    ) -> None:
        self.connector = connector
        self.logger = logger or logging.getLogger(__name__)
        self._timeout_ms = timeout_ms
        self._client_factory = client_factory
        self._client: Any | None = None
        self._db: Any | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> None:
        """Connect, ping the server and resolve the configured target."""

        name = self.connector.collection_name
        try:
            self._client = self._client_factory(
                self.connector.mongo_uri,
                serverSelectionTimeoutMS=self._timeout_ms,
                socketTimeoutMS=self._timeout_ms,
                connectTimeoutMS=self._timeout_ms,
            )
            self._client.admin.command("ping")
            self._db = self._client[self.connector.database]
            collections = set(self._db.list_collection_names())
        except PyMongoError as exc:
            raise ConnectorUnavailableError(
                f"cannot reach {mask_uri(self.connector.mongo_uri)}: {exc}"
            ) from exc

        if name not in collections and f"{name}.files" not in collections:
            raise ConnectorUnavailableError(
                f"collection or bucket '{name}' not found in '{self.connector.database}'"
            )

    def close(self) -> None:
        client, self._client, self._db = self._client, None, None
        if client is not None:
            client.close()

    def __enter__(self) -> "MongoSource":
        self.open()
        return self

    def __exit__(self, *exc: object) -> bool:
        self.close()
        return False

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def _database(self) -> Any:
        if self._db is None:
            raise RuntimeError("MongoSource.open() must be called first")
        return self._db

    def _bucket(self) -> GridFSBucket:
        return GridFSBucket(self._database(), bucket_name=self.connector.collection_name)

    def has_binary_objects(self) -> bool:
        """Probe the bucket for at least one stored file."""

        for _ in self._bucket().find({}, limit=1):
            return True
        return False

    def iter_records(self) -> Iterator[SourceItem]:
        """Yield every document of the collection (full scan, no filter)."""

        collection = self._database()[self.connector.collection_name]
        for document in collection.find({}):
            yield SourceItem(item_id=str(document.get("_id")), record=document)

    def iter_binary_objects(self) -> Iterator[SourceItem]:
        """Yield every file in the bucket with its payload read into memory."""

        bucket = self._bucket()
        for grid_out in bucket.find({}):
            with bucket.open_download_stream(grid_out._id) as stream:
                data = stream.read()
            metadata = grid_out.metadata or {}
            yield SourceItem(
                item_id=str(grid_out._id),
                data=data,
                name=grid_out.filename,
                content_type=metadata.get("contentType"),
                size=grid_out.length,
                uploaded_at=grid_out.upload_date,
            )


__all__ = ["MongoSource"]
