"""Result sinks: where decoded data and import errors are delivered.

The registry hands every decoded payload to a ResultSink. A sink receives
either the result of an import (``on_geometry`` or ``on_raster``, plus
``on_table_link`` when attributes were linked) or exactly one
``on_error``, never both.

Example:
    Collect the result of a synchronous import:
        >>> from geoimport.services import registry, sinks
        >>> from geoimport.utils import resources
        >>> sink = sinks.CollectingSink()
        >>> registry.FormatRegistry.from_settings(settings).import_resource(
        ...     resources.as_resource("roads.shp"), sink
        ... )
        >>> roads = sink.imported()
"""

from __future__ import annotations

import dataclasses
import uuid
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from geoimport.db import models as db_models
from geoimport.model import geometry, raster

if TYPE_CHECKING:
    from geoimport.core import errors
    from geoimport.db import database
    from geoimport.model import table


class ResultSink(Protocol):
    """Receives the outcome of decoding one resource."""

    def on_geometry(self, collection: geometry.GeometryCollection) -> None: ...

    def on_raster(self, image: raster.Raster) -> None: ...

    def on_table_link(self, link: table.TableLink) -> None: ...

    def on_error(
        self, kind: errors.ErrorKind, message: str, resource_id: str
    ) -> None: ...


@dataclasses.dataclass(frozen=True)
class ReceivedError:
    kind: errors.ErrorKind
    message: str
    resource_id: str


class CollectingSink:
    """Stores everything it receives for inspection after the import.

    Non-empty collections are added to ``root``; rasters are kept in
    ``rasters``.
    """

    def __init__(self, root: geometry.GeometryCollection | None = None) -> None:
        self.root = root if root is not None else geometry.GeometryCollection()
        self.rasters: list[raster.Raster] = []
        self.table_links: list[table.TableLink] = []
        self.errors: list[ReceivedError] = []

    def on_geometry(self, collection: geometry.GeometryCollection) -> None:
        if collection.child_count > 0:
            self.root.add(collection)

    def on_raster(self, image: raster.Raster) -> None:
        self.rasters.append(image)

    def on_table_link(self, link: table.TableLink) -> None:
        self.table_links.append(link)

    def on_error(
        self, kind: errors.ErrorKind, message: str, resource_id: str
    ) -> None:
        self.errors.append(ReceivedError(kind, message, resource_id))

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def imported(
        self,
    ) -> geometry.Geometry | geometry.GeometryCollection | raster.Raster | None:
        """The received data with single-child nesting removed.

        A collection wrapping exactly one collection is replaced by that
        inner collection, repeatedly; a collection with exactly one child
        geometry is replaced by the geometry. Without geometry, the only
        received raster is returned.

        Returns:
            The unwrapped data, or None if nothing was received.
        """
        if self.root.child_count == 0:
            return self.rasters[0] if len(self.rasters) == 1 else None
        result = self.root
        while result.child_count == 1 and isinstance(
            result[0], geometry.GeometryCollection
        ):
            result = result[0]
        return result[0] if result.child_count == 1 else result


class CatalogSink:
    """Registers every imported layer in a layer repository.

    Attributes:
        layers: Metadata recorded during this import.
        error: Message of the error received, if any.
    """

    def __init__(
        self,
        repository: database.LayerRepositoryProtocol,
        source: str,
        handler: str | None = None,
    ) -> None:
        self.repository = repository
        self.source = source
        self.handler = handler
        self.layers: list[db_models.LayerMetadata] = []
        self.error: str | None = None
        self._by_collection: dict[int, db_models.LayerMetadata] = {}

    def on_geometry(self, collection: geometry.GeometryCollection) -> None:
        layer = db_models.LayerMetadata(
            id=str(uuid.uuid4()),
            name=collection.name or self.source,
            source=self.source,
            kind="vector",
            handler=self.handler,
            feature_count=collection.child_count,
            bbox=collection.bounds(),
        )
        self._by_collection[id(collection)] = layer
        self._register(layer)

    def on_raster(self, image: raster.Raster) -> None:
        if isinstance(image, raster.Grid):
            kind, width, height = "grid", image.cols, image.rows
        else:
            kind, width, height = "image", image.width, image.height
        self._register(
            db_models.LayerMetadata(
                id=str(uuid.uuid4()),
                name=image.name or self.source,
                source=self.source,
                kind=kind,
                handler=self.handler,
                width=width,
                height=height,
                bbox=image.bounds(),
            )
        )

    def on_table_link(self, link: table.TableLink) -> None:
        layer = self._by_collection.get(id(link.collection))
        if layer is None:
            return
        layer.table_rows = link.table.row_count()
        self.repository.add(layer)

    def on_error(
        self, kind: errors.ErrorKind, message: str, resource_id: str
    ) -> None:
        self.error = message
        logger.error(f"Import of {resource_id} failed ({kind}): {message}")

    def _register(self, layer: db_models.LayerMetadata) -> None:
        self.repository.add(layer)
        self.layers.append(layer)
        logger.info(f"Registered {layer.kind} layer {layer.name} as {layer.id}")
