"""Source-store connectors."""

from __future__ import annotations

import re
from collections.abc import Iterator
from typing import Protocol

from ..models import SourceItem

_CREDENTIALS = re.compile(r"(?<=://)([^:/@]+):([^@]+)@")


def mask_uri(uri: str) -> str:
    """Hide the password embedded in a connection string before logging it."""

    return _CREDENTIALS.sub(r"\1:***@", uri)


class SourceConnection(Protocol):
    """What the orchestrator needs from an opened source store handle."""

    def open(self) -> None: ...

    def close(self) -> None: ...

    def has_binary_objects(self) -> bool: ...

    def iter_records(self) -> Iterator[SourceItem]: ...

    def iter_binary_objects(self) -> Iterator[SourceItem]: ...


__all__ = ["SourceConnection", "mask_uri"]
