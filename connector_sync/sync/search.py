"""Search-sink client for the Azure Cognitive Search batch index API."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import requests

from .errors import SubmissionError
from .models import SearchDocument

DEFAULT_API_VERSION = "2021-04-30-Preview"


class SearchSink:
    """Submit merge-or-upload batches to tenant indexes."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        *,
        api_version: str = DEFAULT_API_VERSION,
        session: requests.Session | None = None,
        timeout: float = 30,
        logger: logging.Logger | None = None,
    ) -> None:
        if not endpoint:
            raise ValueError("search sink requires an endpoint")
        self.endpoint = endpoint.rstrip("/")
        self.api_key = api_key
        self.api_version = api_version
        self.session = session or requests.Session()
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def index_url(self, index_name: str) -> str:
        return (
            f"{self.endpoint}/indexes/{index_name}/docs/index"
            f"?api-version={self.api_version}"
        )

    @staticmethod
    def build_payload(documents: Sequence[SearchDocument]) -> dict[str, Any]:
        return {"value": [document.to_action() for document in documents]}

    def upsert(self, index_name: str, documents: Sequence[SearchDocument]) -> Any:
        """Send one batch; raise :class:`SubmissionError` on any failure."""

        if not documents:
            return None
        try:
            response = self.session.post(
                self.index_url(index_name),
                json=self.build_payload(documents),
                headers={"Content-Type": "application/json", "api-key": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise SubmissionError(
                f"upsert of {len(documents)} document(s) into '{index_name}' failed: {exc}"
            ) from exc

        try:
            body = response.json()
        except ValueError:
            body = response.text
        self.logger.info(
            "search sink accepted %d document(s) into %s status=%s",
            len(documents),
            index_name,
            response.status_code,
        )
        self.logger.debug("search sink response: %s", body)
        return body


__all__ = ["DEFAULT_API_VERSION", "SearchSink"]
