"""Exception hierarchy for the synchronisation pipeline.

The classes map onto how far a failure is allowed to travel:

- :class:`ConnectorUnavailableError` aborts a single connector for the pass.
- :class:`ExtractionError` (and :class:`ArchiveError`) skip a single item.
- :class:`SubmissionError` fails a connector's batch; its watermark stays put.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all synchronisation failures."""


class ConnectorUnavailableError(SyncError):
    """The source store could not be reached or the target could not be resolved."""


class ExtractionError(SyncError):
    """Text could not be extracted from a single source item."""


class UnsupportedContentError(ExtractionError):
    """The sniffed content type has no extraction strategy."""

    def __init__(self, mime_type: str):
        super().__init__(f"unsupported content type: {mime_type}")
        self.mime_type = mime_type


class ArchiveError(SyncError):
    """Uploading a payload to the blob archive failed."""


class SubmissionError(SyncError):
    """The search sink rejected or failed a batch upsert."""


__all__ = [
    "SyncError",
    "ConnectorUnavailableError",
    "ExtractionError",
    "UnsupportedContentError",
    "ArchiveError",
    "SubmissionError",
]
