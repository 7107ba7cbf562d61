"""Data models for the catalog of imported layers.

Every successful import is summarised as a LayerMetadata record: what was
imported, by which handler, how large it is and where it lies. The
decoded geometry and pixels themselves are not persisted.

Example:
    Creating a LayerMetadata instance for an imported shapefile:
        >>> from geoimport.db.models import LayerMetadata
        >>> layer = LayerMetadata(
        ...     id="layer_123",
        ...     name="cities",
        ...     source="/uploads/abc/cities.shp",
        ...     kind="vector",
        ...     handler="shapefile",
        ...     feature_count=312,
        ...     bbox=(5.9, 45.8, 10.5, 47.8),
        ...     table_rows=312,
        ... )

    Creating metadata for a grid:
        >>> dem = LayerMetadata(
        ...     id="raster_456",
        ...     name="dem",
        ...     source="/uploads/def/dem.asc",
        ...     kind="grid",
        ...     handler="esri_ascii_grid",
        ...     width=400,
        ...     height=300,
        ...     bbox=(600000.0, 200000.0, 609975.0, 207475.0),
        ... )
"""

from __future__ import annotations

import dataclasses
import datetime
from typing import Literal

BBox = tuple[float, float, float, float]
LayerKind = Literal["vector", "grid", "image"]


@dataclasses.dataclass
class LayerMetadata:
    """Summary of one imported layer.

    Attributes:
        id: Unique identifier for the layer (UUID string).
        name: Human-readable layer name, usually the file stem.
        source: Identifier of the resource the layer was decoded from.
        kind: "vector" for geometry collections, "grid" or "image" for
            rasters.
        handler: Name of the format handler that decoded the layer.
        feature_count: Number of top-level geometries of a vector layer.
        width: Columns of a grid or pixel width of an image.
        height: Rows of a grid or pixel height of an image.
        bbox: Bounding box as (minx, miny, maxx, maxy) in source
            coordinates, None for empty layers.
        table_rows: Rows of the linked attribute table, if any.
        created_at: Timestamp when the layer was registered.
    """

    id: str
    name: str
    source: str
    kind: LayerKind
    handler: str | None = None
    feature_count: int | None = None
    width: int | None = None
    height: int | None = None
    bbox: BBox | None = None
    table_rows: int | None = None
    created_at: datetime.datetime = dataclasses.field(
        default_factory=lambda: datetime.datetime.now(tz=datetime.UTC)
    )
