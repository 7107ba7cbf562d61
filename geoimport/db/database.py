"""Repositories for the catalog of imported layers."""

from __future__ import annotations

import datetime
import functools
from typing import TYPE_CHECKING, Protocol, cast

import psycopg2
import psycopg2.extensions
import psycopg2.extras

from geoimport.db import models as db_models

if TYPE_CHECKING:
    from collections.abc import Iterable

    from geoimport.core import config


def _cast[T](value: object, dtype: type[T]) -> T | None:  # type: ignore[misc]
    """Cast a value to a specific type, returning None if value is None."""
    if value is None:
        return None

    return cast(T, value)


class LayerRepositoryProtocol(Protocol):
    """Protocol interface for storing and retrieving layer metadata.

    Implementations provide persistence for LayerMetadata objects,
    supporting both in-memory (testing) and PostgreSQL (production) backends.
    """

    def add(
        self,
        layer: db_models.LayerMetadata,
    ) -> db_models.LayerMetadata: ...

    def get(self, layer_id: str) -> db_models.LayerMetadata | None: ...

    def all(self) -> Iterable[db_models.LayerMetadata]: ...


class InMemoryLayerRepository(LayerRepositoryProtocol):
    """Simple in-memory store for tests and local development.

    Stores layer metadata in a dictionary. Data is lost when the process exits.
    """

    def __init__(self) -> None:
        self._store: dict[str, db_models.LayerMetadata] = {}

    def add(self, layer: db_models.LayerMetadata) -> db_models.LayerMetadata:
        """Add or update a layer in the repository.

        Args:
            layer: Layer metadata to store.

        Returns:
            The stored layer metadata.
        """
        self._store[layer.id] = layer
        return layer

    def get(self, layer_id: str) -> db_models.LayerMetadata | None:
        return self._store.get(layer_id)

    def all(self) -> Iterable[db_models.LayerMetadata]:
        return self._store.values()


class PostgresLayerRepository(LayerRepositoryProtocol):
    """PostgreSQL-backed repository for layer metadata.

    Creates the import_layers table on initialization if it does not
    exist yet.
    """

    CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS import_layers (
      id TEXT PRIMARY KEY,
      name TEXT NOT NULL,
      source TEXT NOT NULL,
      kind TEXT NOT NULL,
      handler TEXT,
      feature_count INTEGER,
      width INTEGER,
      height INTEGER,
      bbox_minx DOUBLE PRECISION,
      bbox_miny DOUBLE PRECISION,
      bbox_maxx DOUBLE PRECISION,
      bbox_maxy DOUBLE PRECISION,
      table_rows INTEGER,
      created_at TIMESTAMPTZ DEFAULT now()
    );
    """

    def __init__(self, settings: config.Settings) -> None:
        """Initialize repository with database settings.

        Args:
            settings: Application settings containing database connection URL.
        """
        self.settings = settings
        self._ensure_schema()

    def _connection(self) -> psycopg2.extensions.connection:
        return psycopg2.connect(
            self.settings.database_url,
            cursor_factory=psycopg2.extras.RealDictCursor,
        )

    def _ensure_schema(self) -> None:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(self.CREATE_TABLE_SQL)
            conn.commit()

    def add(self, layer: db_models.LayerMetadata) -> db_models.LayerMetadata:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO import_layers (
                    id, name, source, kind, handler, feature_count, width,
                    height, bbox_minx, bbox_miny, bbox_maxx, bbox_maxy,
                    table_rows, created_at
                ) VALUES (%(id)s, %(name)s, %(source)s, %(kind)s,
                    %(handler)s, %(feature_count)s, %(width)s, %(height)s,
                    %(bbox_minx)s, %(bbox_miny)s, %(bbox_maxx)s,
                    %(bbox_maxy)s, %(table_rows)s, %(created_at)s)
                ON CONFLICT (id) DO UPDATE SET
                    name = EXCLUDED.name,
                    source = EXCLUDED.source,
                    kind = EXCLUDED.kind,
                    handler = EXCLUDED.handler,
                    feature_count = EXCLUDED.feature_count,
                    width = EXCLUDED.width,
                    height = EXCLUDED.height,
                    bbox_minx = EXCLUDED.bbox_minx,
                    bbox_miny = EXCLUDED.bbox_miny,
                    bbox_maxx = EXCLUDED.bbox_maxx,
                    bbox_maxy = EXCLUDED.bbox_maxy,
                    table_rows = EXCLUDED.table_rows;
                """,
                self._to_row(layer),
            )
            conn.commit()
        return layer

    def get(self, layer_id: str) -> db_models.LayerMetadata | None:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM import_layers WHERE id = %s", (layer_id,))
            row = cur.fetchone()
            if row is None:
                return None
            else:
                return self._from_row(cast(dict[str, object], row))

    def all(self) -> Iterable[db_models.LayerMetadata]:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute("SELECT * FROM import_layers ORDER BY created_at DESC")
            for row in cur.fetchall():
                yield self._from_row(cast(dict[str, object], row))

    @staticmethod
    def _to_row(layer: db_models.LayerMetadata) -> dict[str, object]:
        """Convert LayerMetadata to a parameter dictionary for SQL."""
        bbox = layer.bbox or (None, None, None, None)
        return {
            "id": layer.id,
            "name": layer.name,
            "source": layer.source,
            "kind": layer.kind,
            "handler": layer.handler,
            "feature_count": layer.feature_count,
            "width": layer.width,
            "height": layer.height,
            "bbox_minx": bbox[0],
            "bbox_miny": bbox[1],
            "bbox_maxx": bbox[2],
            "bbox_maxy": bbox[3],
            "table_rows": layer.table_rows,
            "created_at": layer.created_at,
        }

    @staticmethod
    def _from_row(row: dict[str, object]) -> db_models.LayerMetadata:
        """Convert a database row dictionary to LayerMetadata.

        Args:
            row: Dictionary from database query result.

        Returns:
            LayerMetadata object with all fields populated.
        """
        bbox = (
            row.get("bbox_minx"),
            row.get("bbox_miny"),
            row.get("bbox_maxx"),
            row.get("bbox_maxy"),
        )
        if any(v is None for v in bbox):
            bbox_tuple = None
        else:
            bbox_tuple = tuple(float(cast(float, v)) for v in bbox)
        created_at = _cast(
            row.get("created_at"), datetime.datetime
        ) or datetime.datetime.now(datetime.UTC)

        return db_models.LayerMetadata(
            id=str(row["id"]),
            name=str(row["name"]),
            source=str(row["source"]),
            kind=cast(db_models.LayerKind, str(row["kind"])),
            handler=_cast(row.get("handler"), str),
            feature_count=_optional_int(row.get("feature_count")),
            width=_optional_int(row.get("width")),
            height=_optional_int(row.get("height")),
            bbox=bbox_tuple,  # type: ignore[arg-type]
            table_rows=_optional_int(row.get("table_rows")),
            created_at=created_at,
        )


def _optional_int(value: object) -> int | None:
    return int(cast(int, value)) if value is not None else None


@functools.lru_cache
def _memory_repository() -> InMemoryLayerRepository:
    return InMemoryLayerRepository()


def get_layer_repository(settings: config.Settings) -> LayerRepositoryProtocol:
    """Factory function to create the configured layer repository.

    The in-memory repository is shared by all callers of the process so
    that layers registered by one request are visible to the next.

    Args:
        settings: Application settings selecting the catalog backend.

    Returns:
        PostgresLayerRepository if ``catalog_backend`` is "postgres",
        otherwise the process-wide InMemoryLayerRepository.
    """
    if settings.catalog_backend == "postgres":
        return PostgresLayerRepository(settings)
    return _memory_repository()
