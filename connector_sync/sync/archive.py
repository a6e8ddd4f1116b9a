"""Blob-archival client backed by the Azure Blob Storage REST API."""

from __future__ import annotations

import logging
from urllib.parse import quote

import requests

from .errors import ArchiveError


class BlobArchive:
    """Upload payloads as block blobs into one container.

    ``container_url`` is the container endpoint (``https://<account>.blob.core.
    windows.net/<container>``) and ``sas_token`` a SAS query string with write
    permission. Returned URLs never carry the SAS token.
    """

    def __init__(
        self,
        container_url: str,
        sas_token: str | None = None,
        *,
        session: requests.Session | None = None,
        timeout: float = 30,
        logger: logging.Logger | None = None,
    ) -> None:
        if not container_url:
            raise ValueError("blob archive requires a container URL")
        self.container_url = container_url.rstrip("/")
        self.sas_token = (sas_token or "").lstrip("?")
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def blob_url(self, name: str) -> str:
        return f"{self.container_url}/{quote(name, safe='/')}"

    def upload(self, data: bytes, name: str, mime_type: str) -> str:
        """Store ``data`` under ``name`` and return its public URL."""

        url = self.blob_url(name)
        target = f"{url}?{self.sas_token}" if self.sas_token else url
        headers = {
            "x-ms-blob-type": "BlockBlob",
            "x-ms-blob-content-type": mime_type,
            "Content-Type": mime_type,
        }
        try:
            response = self.session.put(
                target, data=data, headers=headers, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ArchiveError(f"upload of '{name}' failed: {exc}") from exc
        self.logger.debug("archived %s (%d bytes, %s)", name, len(data), mime_type)
        return url


__all__ = ["BlobArchive"]
