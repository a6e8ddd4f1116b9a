"""Build :class:`SearchDocument` payloads from chunks and connector metadata."""

from __future__ import annotations

from .models import (
    DEFAULT_INDEX_PREFIX,
    ConnectorDefinition,
    ContentChunk,
    ExtractedContent,
    SearchDocument,
    SourceItem,
)

DEFAULT_DESCRIPTION = "No description available"


def _field_text(item: SourceItem, field: str | None) -> str | None:
    if not field or item.record is None:
        return None
    value = item.record.get(field)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def default_title(item: SourceItem) -> str:
    return f"Document {item.item_id}"


def assemble_document(
    chunk: ContentChunk,
    item: SourceItem,
    connector: ConnectorDefinition,
    content: ExtractedContent | None = None,
    *,
    index_prefix: str = DEFAULT_INDEX_PREFIX,
) -> SearchDocument:
    """Combine one chunk with its item and connector into a search document.

    Never raises for well-formed inputs: the title falls back to the item's
    file name and then to a label built from its id; the description falls
    back to :data:`DEFAULT_DESCRIPTION`.
    """

    title = _field_text(item, connector.title_field) or item.name or default_title(item)
    description = _field_text(item, connector.description_field) or DEFAULT_DESCRIPTION
    image = _field_text(item, connector.image_field)

    content = content or ExtractedContent(text=chunk.text)

    return SearchDocument(
        id=chunk.chunk_id,
        title=title,
        content=chunk.text,
        description=description,
        image=image,
        category=connector.category,
        size=item.size,
        uploaded_at=item.uploaded_at,
        file_url=content.file_url,
        mime_type=content.mime_type,
        index_name=connector.index_name(index_prefix),
    )


__all__ = ["DEFAULT_DESCRIPTION", "assemble_document", "default_title"]
