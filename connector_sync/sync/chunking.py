"""Split extracted text into bounded chunks with stable identifiers."""

from __future__ import annotations

import re
from typing import List

from .models import ContentChunk

DEFAULT_MAX_CHUNK_SIZE = 30000

_KEY_UNSAFE = re.compile(r"[^A-Za-z0-9-]+")


def split_text(text: str, max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE) -> List[str]:
    """Slice ``text`` into contiguous, non-overlapping pieces.

    Boundaries fall on plain character counts, so joining the result gives
    back ``text`` exactly. Empty input yields an empty list.
    """

    if max_chunk_size <= 0:
        raise ValueError("max_chunk_size must be positive")
    if not text:
        return []
    return [text[i : i + max_chunk_size] for i in range(0, len(text), max_chunk_size)]


def _escape_key_part(part: str) -> str:
    # "_" separates parts and "=" introduces escapes, so both are escaped too.
    return _KEY_UNSAFE.sub(
        lambda m: "".join(f"={b:02X}" for b in m.group().encode("utf-8")), part
    )


def chunk_id(namespace: str, collection: str, item_id: str, ordinal: int) -> str:
    """Deterministic document key for one chunk of one source item.

    Characters outside ``[A-Za-z0-9-]`` become ``=XX`` per UTF-8 byte, which
    keeps the key inside the search key alphabet and makes distinct
    ``(namespace, collection, item_id, ordinal)`` tuples map to distinct keys.
    """

    parts = (namespace, collection, item_id, str(ordinal))
    return "_".join(_escape_key_part(part) for part in parts)


def chunk_text(
    text: str,
    *,
    namespace: str,
    collection: str,
    item_id: str,
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
) -> List[ContentChunk]:
    """Split text and tag each slice with its ordinal and key."""

    return [
        ContentChunk(
            ordinal=ordinal,
            text=piece,
            chunk_id=chunk_id(namespace, collection, item_id, ordinal),
        )
        for ordinal, piece in enumerate(split_text(text, max_chunk_size))
    ]


__all__ = ["DEFAULT_MAX_CHUNK_SIZE", "split_text", "chunk_id", "chunk_text"]
