"""Environment-driven settings for the sync service.

A ``.env`` file in the working directory is loaded first (python-dotenv) so
local runs and containers share the same variable names.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import find_dotenv, load_dotenv

from .sync.chunking import DEFAULT_MAX_CHUNK_SIZE
from .sync.models import DEFAULT_INDEX_PREFIX
from .sync.search import DEFAULT_API_VERSION
from .sync.service import DEFAULT_MAX_BATCH_SIZE
from .sync.storage import DEFAULT_NAME_PREFIX

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 300.0
MIN_INTERVAL_SECONDS = 5.0


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, *, min_value: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r (expected integer)", name, raw)
        return default
    if value < min_value:
        logger.warning("Ignoring %s=%r because it is below minimum %d", name, raw, min_value)
        return default
    return value


def _env_optional_float(name: str, *, min_value: float) -> float | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r (expected float)", name, raw)
        return None
    if value < min_value:
        logger.warning("Ignoring %s=%r because it is below minimum %.3f", name, raw, min_value)
        return None
    return value


@dataclass(frozen=True)
class SyncSettings:
    """Everything needed to wire the scheduler, stores and sinks."""

    config_database_url: str = ""
    connector_name_prefix: str = DEFAULT_NAME_PREFIX
    search_endpoint: str = ""
    search_api_key: str = ""
    search_api_version: str = DEFAULT_API_VERSION
    index_prefix: str = DEFAULT_INDEX_PREFIX
    blob_container_url: str | None = None
    blob_sas_token: str | None = None
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    run_on_start: bool = False
    connector_timeout_seconds: float | None = None
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE
    max_batch_size: int = DEFAULT_MAX_BATCH_SIZE
    mongo_timeout_ms: int = 10000
    http_timeout_seconds: float = 30.0
    enable_ocr: bool = False
    ocr_lang: str = "eng"

    @classmethod
    def from_env(cls, *, load_env_file: bool = True) -> "SyncSettings":
        if load_env_file:
            load_dotenv(find_dotenv(usecwd=True))

        interval = _env_optional_float("SYNC_INTERVAL_SECONDS", min_value=0.0)
        if interval is None:
            interval = DEFAULT_INTERVAL_SECONDS
        elif interval < MIN_INTERVAL_SECONDS:
            logger.warning(
                "SYNC_INTERVAL_SECONDS=%s is too low; clamping to %.1f",
                interval,
                MIN_INTERVAL_SECONDS,
            )
            interval = MIN_INTERVAL_SECONDS

        return cls(
            config_database_url=os.getenv("CONFIG_DATABASE_URL", ""),
            connector_name_prefix=os.getenv("CONNECTOR_NAME_PREFIX", DEFAULT_NAME_PREFIX),
            search_endpoint=os.getenv("AZURE_SEARCH_ENDPOINT", ""),
            search_api_key=os.getenv("AZURE_SEARCH_API_KEY", ""),
            search_api_version=os.getenv("AZURE_SEARCH_API_VERSION", DEFAULT_API_VERSION),
            index_prefix=os.getenv("SEARCH_INDEX_PREFIX", DEFAULT_INDEX_PREFIX),
            blob_container_url=os.getenv("BLOB_CONTAINER_URL") or None,
            blob_sas_token=os.getenv("BLOB_SAS_TOKEN") or None,
            interval_seconds=interval,
            run_on_start=_env_flag("SYNC_RUN_ON_START", False),
            connector_timeout_seconds=_env_optional_float(
                "SYNC_CONNECTOR_TIMEOUT_SECONDS", min_value=1.0
            ),
            max_chunk_size=_env_int("SYNC_MAX_CHUNK_SIZE", DEFAULT_MAX_CHUNK_SIZE),
            max_batch_size=_env_int("SYNC_MAX_BATCH_SIZE", DEFAULT_MAX_BATCH_SIZE),
            mongo_timeout_ms=_env_int("MONGO_TIMEOUT_MS", 10000),
            http_timeout_seconds=_env_optional_float("HTTP_TIMEOUT_SECONDS", min_value=1.0)
            or 30.0,
            enable_ocr=_env_flag("ENABLE_OCR", False),
            ocr_lang=os.getenv("OCR_LANG") or "eng",
        )

    def missing(self) -> list[str]:
        """Names of required variables that are unset."""

        required = {
            "CONFIG_DATABASE_URL": self.config_database_url,
            "AZURE_SEARCH_ENDPOINT": self.search_endpoint,
            "AZURE_SEARCH_API_KEY": self.search_api_key,
        }
        return [name for name, value in required.items() if not value]


__all__ = ["SyncSettings"]
