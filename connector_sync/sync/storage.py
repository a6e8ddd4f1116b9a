"""Configuration-store helpers for connector definitions and watermarks.

Connector definitions live in the ``datasource_connections`` table. A pass
reads every active row whose ``name`` starts with the configured prefix and,
after a successful push, writes the connector's ``updated_at`` watermark.
Nothing else in the table is modified by this service.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

import psycopg
from psycopg.rows import dict_row
from pydantic import ValidationError

from .models import ConnectorDefinition

logger = logging.getLogger(__name__)

DEFAULT_NAME_PREFIX = "datasource_mongodb_connection_"

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS datasource_connections (
    id uuid PRIMARY KEY DEFAULT gen_random_uuid(),
    name text NOT NULL,
    mongo_uri text NOT NULL,
    database text NOT NULL,
    collection_name text NOT NULL,
    category text,
    coid text NOT NULL,
    content_field text,
    field_type text,
    title_field text,
    description_field text DEFAULT 'description',
    image_field text DEFAULT 'image',
    active boolean NOT NULL DEFAULT true,
    created_at timestamptz NOT NULL DEFAULT now(),
    updated_at timestamptz
);
CREATE INDEX IF NOT EXISTS datasource_connections_name_idx
    ON datasource_connections (name text_pattern_ops);
"""

_COLUMNS = (
    "id, name, mongo_uri, database, collection_name, category, coid, "
    "content_field, field_type, title_field, description_field, image_field, updated_at"
)


def ensure_schema(conn: psycopg.Connection) -> None:
    """Create the definitions table if it does not exist (idempotent)."""

    with conn.transaction():
        with conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)


def _escape_like(prefix: str) -> str:
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _build_definition(row: dict[str, Any]) -> ConnectorDefinition | None:
    try:
        return ConnectorDefinition(**row)
    except ValidationError as exc:
        logger.warning("Ignoring invalid connector definition %s: %s", row.get("id"), exc)
        return None


def list_connector_definitions(
    conn: psycopg.Connection, *, prefix: str = DEFAULT_NAME_PREFIX
) -> Iterable[ConnectorDefinition]:
    """Yield every active definition whose name starts with ``prefix``."""

    query = (
        f"SELECT {_COLUMNS} FROM datasource_connections "
        "WHERE active AND name LIKE %s ESCAPE '\\' ORDER BY name, id"
    )
    with conn.cursor(row_factory=dict_row) as cur:
        cur.execute(query, (_escape_like(prefix) + "%",))
        rows = cur.fetchall()

    for row in rows:
        definition = _build_definition(row)
        if definition is not None:
            yield definition


def update_watermark(
    conn: psycopg.Connection,
    definition_id: Any,
    *,
    synced_at: datetime | None = None,
) -> datetime:
    """Record the last successful sync time for one definition."""

    synced_at = synced_at or datetime.now(timezone.utc)
    with conn.transaction():
        with conn.cursor() as cur:
            cur.execute(
                "UPDATE datasource_connections SET updated_at = %s WHERE id = %s",
                (synced_at, definition_id),
            )
            if cur.rowcount == 0:
                logger.warning(
                    "Attempt to update watermark for connector %s matched no rows",
                    definition_id,
                )
    return synced_at


class ConnectorRegistry:
    """Connection-per-call facade over the configuration store."""

    def __init__(self, conninfo: str, *, prefix: str = DEFAULT_NAME_PREFIX) -> None:
        if not conninfo:
            raise ValueError("configuration store requires a connection string")
        self.conninfo = conninfo
        self.prefix = prefix

    def _connect(self) -> psycopg.Connection:
        return psycopg.connect(self.conninfo)

    def ensure_schema(self) -> None:
        with self._connect() as conn:
            ensure_schema(conn)

    def list_definitions(self) -> list[ConnectorDefinition]:
        with self._connect() as conn:
            return list(list_connector_definitions(conn, prefix=self.prefix))

    def update_watermark(
        self, definition_id: Any, synced_at: datetime | None = None
    ) -> datetime:
        with self._connect() as conn:
            return update_watermark(conn, definition_id, synced_at=synced_at)


__all__ = [
    "DEFAULT_NAME_PREFIX",
    "SCHEMA_SQL",
    "ConnectorRegistry",
    "ensure_schema",
    "list_connector_definitions",
    "update_watermark",
]
