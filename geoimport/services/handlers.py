"""Format handlers: probe and decode one kind of geodata file each.

A handler answers two questions. ``probe`` cheaply decides whether it can
decode a resource and, for multi-file formats, which file of the set is
the one to decode; it returns a ``returns`` Result instead of raising.
``decode`` reads the canonical resource into the geometry or raster model.

Handlers are looked up by name so that their priority can be configured
through ``Settings.handler_order``.

Example:
    Probe a file with the shapefile handler:
        >>> from geoimport.services import handlers
        >>> from geoimport.utils import resources
        >>> handler = handlers.ShapefileHandler()
        >>> result = handler.probe(resources.as_resource("roads.dbf"))
        >>> result.unwrap().name
        'roads.shp'
"""

from __future__ import annotations

import contextlib
import gzip
import io
from typing import TYPE_CHECKING, Protocol

import numpy as np
from PIL import Image
from returns.result import Failure, Result, Success

from geoimport.core import errors
from geoimport.model import outcome, raster
from geoimport.model import table as table_model
from geoimport.services import ascii_grid, dbf, grid_header, shapefile, world_file
from geoimport.utils import resources

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator
    from typing import BinaryIO

    from geoimport.core import config
    from geoimport.model import geometry
    from geoimport.services import progress

ProbeResult = Result[resources.Resource, errors.ProbeError]

MIN_PATH_LENGTH = 5
SHAPEFILE_SIBLINGS = frozenset({"dbf", "prj", "sbn", "sbx", "shx"})


class FormatHandler(Protocol):
    """Capability shared by all format handlers."""

    name: str

    def probe(self, resource: resources.Resource) -> ProbeResult: ...

    def decode(
        self,
        resource: resources.Resource,
        tracker: progress.ProgressTracker,
        factory: geometry.GeometryFactory,
    ) -> outcome.Decoded: ...


class ShapefileHandler:
    """ESRI shapefile sets: geometry from .shp, attributes from .dbf.

    Any member of the set (.shp, .shx, .dbf, .prj, .sbn, .sbx) is accepted
    and resolved to the geometry file.
    """

    name = "shapefile"
    data_extension = "shp"

    def probe(self, resource: resources.Resource) -> ProbeResult:
        if len(resource.id) < MIN_PATH_LENGTH:
            return Failure(errors.ProbeError(f"Path too short: {resource.id!r}"))

        ext = resources.extension(resource).lower()
        if ext == self.data_extension:
            return Success(resource)
        if ext not in SHAPEFILE_SIBLINGS:
            return Failure(
                errors.ProbeError(f"Not a shapefile member: .{ext or '(none)'}")
            )

        data = resources.find_sibling(
            resource, (self.data_extension, self.data_extension.upper())
        )
        if data is None:
            return Failure(
                errors.ProbeError(
                    f"No .{self.data_extension} file next to {resource.id}"
                )
            )
        return Success(data)

    def decode(
        self,
        resource: resources.Resource,
        tracker: progress.ProgressTracker,
        factory: geometry.GeometryFactory,
    ) -> outcome.Decoded:
        index = shapefile.load_index(resource)
        with self.open_data(resource) as stream:
            collection = shapefile.decode_shapefile(
                stream,
                name=resources.stem(resource),
                index=index,
                tracker=tracker,
                factory=factory,
            )

        table_link = None
        dbf_resource = dbf.find_dbf(resource)
        if dbf_resource is not None:
            table = dbf.load_dbf(dbf_resource)
            table_link = table_model.link_table(table, collection)
        return outcome.Decoded(collection, table_link, handler=self.name)

    @contextlib.contextmanager
    def open_data(self, resource: resources.Resource) -> Iterator[BinaryIO]:
        with resource.open() as stream:
            yield stream


class GzipShapefileHandler(ShapefileHandler):
    """Shapefile sets whose .shp member is gzip compressed and named .gz."""

    name = "gzip_shapefile"
    data_extension = "gz"

    @contextlib.contextmanager
    def open_data(self, resource: resources.Resource) -> Iterator[BinaryIO]:
        with resource.open() as raw, gzip.GzipFile(fileobj=raw) as stream:
            yield stream  # type: ignore[misc]


class AsciiGridHandler:
    """ESRI ASCII Grid text rasters, recognised by their header."""

    name = "esri_ascii_grid"

    def __init__(
        self,
        encoding: str = "latin-1",
        queue_capacity: int = 64,
        poll_interval: float = 0.05,
        probe_line_limit: int = 4096,
    ) -> None:
        self.encoding = encoding
        self.queue_capacity = queue_capacity
        self.poll_interval = poll_interval
        self.probe_line_limit = probe_line_limit

    @classmethod
    def from_settings(cls, settings: config.Settings) -> AsciiGridHandler:
        return cls(
            encoding=settings.text_encoding,
            queue_capacity=settings.grid_queue_capacity,
            poll_interval=settings.grid_poll_interval,
            probe_line_limit=settings.probe_line_limit,
        )

    def probe(self, resource: resources.Resource) -> ProbeResult:
        try:
            with self._open_text(resource, decode_errors="replace") as text:
                header, _ = grid_header.parse_grid_header(
                    grid_header.read_probe_lines(text, self.probe_line_limit)
                )
        except (OSError, errors.GeoImportError) as e:
            return Failure(errors.ProbeError("Unreadable grid header", e))
        if not header.is_valid():
            return Failure(errors.ProbeError("No valid ESRI ASCII grid header"))
        return Success(resource)

    def decode(
        self,
        resource: resources.Resource,
        tracker: progress.ProgressTracker,
        factory: geometry.GeometryFactory,
    ) -> outcome.Decoded:
        with self._open_text(resource) as text:
            grid = ascii_grid.decode_ascii_grid(
                text,
                name=resources.stem(resource),
                tracker=tracker,
                queue_capacity=self.queue_capacity,
                poll_interval=self.poll_interval,
            )
        return outcome.Decoded(grid, handler=self.name)

    @contextlib.contextmanager
    def _open_text(
        self, resource: resources.Resource, decode_errors: str = "strict"
    ) -> Iterator[io.TextIOWrapper]:
        with io.TextIOWrapper(
            resource.open(), encoding=self.encoding, errors=decode_errors
        ) as text:
            yield text


class ImageCodec(Protocol):
    """Host image decoder used by the image handler."""

    def identify(self, stream: BinaryIO) -> tuple[int, int]:
        """Width and height of the image; raises if it is not an image."""
        ...

    def decode(self, stream: BinaryIO) -> np.ndarray:
        """Pixels as an array of shape (height, width[, bands])."""
        ...


class PillowCodec:
    """ImageCodec backed by Pillow."""

    def identify(self, stream: BinaryIO) -> tuple[int, int]:
        # Image.open only reads the header
        with Image.open(stream) as image:
            return image.size

    def decode(self, stream: BinaryIO) -> np.ndarray:
        with Image.open(stream) as image:
            image.load()
            return np.asarray(image)


class ImageHandler:
    """Raster images, georeferenced by a world file if one exists."""

    name = "image"

    def __init__(
        self, codec: ImageCodec | None = None, encoding: str = "latin-1"
    ) -> None:
        self.codec: ImageCodec = codec if codec is not None else PillowCodec()
        self.encoding = encoding

    def probe(self, resource: resources.Resource) -> ProbeResult:
        try:
            with resource.open() as stream:
                self.codec.identify(stream)
        except (OSError, ValueError) as e:
            return Failure(errors.ProbeError("Not a readable image", e))
        return Success(resource)

    def decode(
        self,
        resource: resources.Resource,
        tracker: progress.ProgressTracker,
        factory: geometry.GeometryFactory,
    ) -> outcome.Decoded:
        tracker.checkpoint(0)
        with resource.open() as stream:
            pixels = self.codec.decode(stream)
        height, width = pixels.shape[:2]
        image = raster.GeoImage(
            width=width,
            height=height,
            pixels=pixels,
            name=resources.stem(resource),
        )
        world_file.georeference(image, resource, self.encoding)
        tracker.checkpoint(100)
        return outcome.Decoded(image, handler=self.name)


type HandlerFactory = Callable[[config.Settings], FormatHandler]

BUILTIN_HANDLERS: dict[str, HandlerFactory] = {
    "image": lambda settings: ImageHandler(encoding=settings.text_encoding),
    "shapefile": lambda settings: ShapefileHandler(),
    "gzip_shapefile": lambda settings: GzipShapefileHandler(),
    "esri_ascii_grid": AsciiGridHandler.from_settings,
}


def build_handlers(
    names: Iterable[str],
    settings: config.Settings,
    available: dict[str, HandlerFactory] | None = None,
) -> list[FormatHandler]:
    """Instantiate handlers in the given priority order.

    Raises:
        HandlerConfigError: If a name is not a known handler.
    """
    available = BUILTIN_HANDLERS if available is None else available
    built = []
    for name in names:
        if name not in available:
            raise errors.HandlerConfigError(
                f"Unknown format handler {name!r}; "
                f"known handlers: {', '.join(sorted(available))}"
            )
        built.append(available[name](settings))
    return built
