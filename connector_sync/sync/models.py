"""Pydantic models, enums and pass-scoped value types for synchronisation."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Mapping
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_INDEX_PREFIX = "tenant_"


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ItemKind(str, Enum):
    """How the items of one connector's collection are interpreted."""

    DECLARED_FIELD = "declared_field"
    BINARY_BUCKET = "binary_bucket"
    GENERIC = "generic"


class SyncStatus(str, Enum):
    """Outcome of synchronising a single connector."""

    SUCCEEDED = "succeeded"
    EMPTY = "empty"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    SKIPPED = "skipped"


# ---------------------------------------------------------------------------
# Configuration store records
# ---------------------------------------------------------------------------


class ConnectorDefinition(BaseModel):
    """One monitored collection as stored in the configuration store."""

    id: UUID | str
    name: str | None = None
    mongo_uri: str
    database: str
    collection_name: str
    category: str | None = None
    coid: str
    content_field: str | None = None
    field_type: str | None = None
    title_field: str | None = None
    description_field: str | None = "description"
    image_field: str | None = "image"
    updated_at: datetime | None = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("coid")
    @classmethod
    def _require_tenant(cls, value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise ValueError("connector definition requires a tenant id (coid)")
        return value

    @property
    def has_declared_field(self) -> bool:
        return bool(self.content_field)

    def index_name(self, prefix: str = DEFAULT_INDEX_PREFIX) -> str:
        """Destination index for this connector's tenant."""

        return f"{prefix}{self.coid.lower()}"


# ---------------------------------------------------------------------------
# Pass-scoped values
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class SourceItem:
    """A structured record or a binary object fetched from the source store."""

    item_id: str
    record: Mapping[str, Any] | None = None
    data: bytes | None = None
    name: str | None = None
    content_type: str | None = None
    size: int | None = None
    uploaded_at: datetime | None = None

    @property
    def is_binary(self) -> bool:
        return self.data is not None


@dataclass(slots=True)
class ExtractedContent:
    """Plain text pulled out of a source item."""

    text: str
    mime_type: str | None = None
    file_url: str | None = None


@dataclass(slots=True, frozen=True)
class ContentChunk:
    """A bounded slice of extracted text and its stable identifier."""

    ordinal: int
    text: str
    chunk_id: str


class SearchDocument(BaseModel):
    """Canonical document submitted to the search sink."""

    id: str
    title: str
    content: str
    description: str
    image: str | None = None
    category: str | None = None
    file_url: str | None = None
    mime_type: str | None = None
    size: int | None = None
    uploaded_at: datetime | None = None
    index_name: str = Field(exclude=True)

    _OPTIONAL_METADATA: ClassVar[tuple[str, ...]] = (
        "file_url",
        "mime_type",
        "size",
        "uploaded_at",
    )

    def to_action(self) -> Dict[str, Any]:
        """Return the merge-or-upload entry for a batch index request."""

        payload = self.model_dump(mode="json")
        for key in self._OPTIONAL_METADATA:
            if payload.get(key) is None:
                payload.pop(key, None)
        return {"@search.action": "mergeOrUpload", **payload}


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


@dataclass
class ConnectorSyncResult:
    """What happened to one connector during a pass."""

    connector_id: str
    index_name: str | None = None
    status: SyncStatus = SyncStatus.SKIPPED
    kind: ItemKind | None = None
    items: int = 0
    skipped_items: int = 0
    documents: int = 0
    batches: int = 0
    error: str | None = None

    def to_json(self) -> Dict[str, Any]:
        return {
            "connector_id": self.connector_id,
            "index_name": self.index_name,
            "status": self.status.value,
            "kind": self.kind.value if self.kind else None,
            "items": self.items,
            "skipped_items": self.skipped_items,
            "documents": self.documents,
            "batches": self.batches,
            "error": self.error,
        }


@dataclass
class SyncRunReport:
    """Aggregate outcome of one scheduled pass."""

    started_at: datetime
    finished_at: datetime | None = None
    results: List[ConnectorSyncResult] = field(default_factory=list)

    def count(self, status: SyncStatus) -> int:
        return sum(1 for result in self.results if result.status == status)

    @property
    def failed(self) -> int:
        return self.count(SyncStatus.FAILED) + self.count(SyncStatus.TIMED_OUT)

    def to_json(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "connectors": len(self.results),
            "succeeded": self.count(SyncStatus.SUCCEEDED),
            "empty": self.count(SyncStatus.EMPTY),
            "skipped": self.count(SyncStatus.SKIPPED),
            "failed": self.failed,
            "results": [result.to_json() for result in self.results],
        }


__all__ = [
    "DEFAULT_INDEX_PREFIX",
    "ItemKind",
    "SyncStatus",
    "ConnectorDefinition",
    "SourceItem",
    "ExtractedContent",
    "ContentChunk",
    "SearchDocument",
    "ConnectorSyncResult",
    "SyncRunReport",
]
