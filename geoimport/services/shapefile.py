"""ESRI Shapefile geometry decoder.

A shapefile set consists of the geometry file (.shp), an index (.shx)
and attributes (.dbf). This module decodes the first two:

- The .shp file starts with a 100-byte header. The magic number 9994 and
  the file length (in 16-bit words) are big-endian; version, shape type
  and bounding box are little-endian. Variable-length records follow,
  each with a big-endian (record number, content length) header and a
  little-endian payload starting with the record's shape type.
- The .shx file has the same 100-byte header followed by one big-endian
  (offset, content length) pair per record, both in 16-bit words.

When an index is available, records are read at the offsets it lists,
which tolerates gaps in the geometry file. Without one, records are read
back to back until the stream is exhausted.

Example:
    Decode a point shapefile:
        >>> from geoimport.services import progress, shapefile
        >>> with open("cities.shp", "rb") as stream:
        ...     cities = shapefile.decode_shapefile(
        ...         stream,
        ...         name="cities",
        ...         index=None,
        ...         tracker=progress.ProgressTracker(),
        ...     )
        >>> # cities is a GeometryCollection with one Point per record
"""

from __future__ import annotations

import dataclasses
import enum
from typing import TYPE_CHECKING

from loguru import logger

from geoimport.core import errors
from geoimport.model import geometry
from geoimport.utils import binary_cursor, resources

if TYPE_CHECKING:
    from typing import BinaryIO

    import numpy as np

    from geoimport.services import progress

FILE_CODE = 9994
HEADER_SIZE = 100
RECORD_HEADER_SIZE = 8
INDEX_ENTRY_SIZE = 8
INDEX_EXTENSIONS = ("shx", "SHX")
FILLED_SYMBOL = "filled"

BBox = tuple[float, float, float, float]


class ShapeType(enum.IntEnum):
    NULL = 0
    POINT = 1
    POLYLINE = 3
    POLYGON = 5
    MULTIPOINT = 8
    POINT_Z = 11
    POLYLINE_Z = 13
    POLYGON_Z = 15
    MULTIPOINT_Z = 18
    POINT_M = 21
    POLYLINE_M = 23
    POLYGON_M = 25
    MULTIPOINT_M = 28
    MULTIPATCH = 31

    @property
    def family(self) -> ShapeType:
        """The planar base type; Z and M variants share their family."""
        return _FAMILIES[self]


_FAMILIES = {
    ShapeType.NULL: ShapeType.NULL,
    ShapeType.POINT: ShapeType.POINT,
    ShapeType.POINT_Z: ShapeType.POINT,
    ShapeType.POINT_M: ShapeType.POINT,
    ShapeType.MULTIPOINT: ShapeType.MULTIPOINT,
    ShapeType.MULTIPOINT_Z: ShapeType.MULTIPOINT,
    ShapeType.MULTIPOINT_M: ShapeType.MULTIPOINT,
    ShapeType.POLYLINE: ShapeType.POLYLINE,
    ShapeType.POLYLINE_Z: ShapeType.POLYLINE,
    ShapeType.POLYLINE_M: ShapeType.POLYLINE,
    ShapeType.POLYGON: ShapeType.POLYGON,
    ShapeType.POLYGON_Z: ShapeType.POLYGON,
    ShapeType.POLYGON_M: ShapeType.POLYGON,
    ShapeType.MULTIPATCH: ShapeType.MULTIPATCH,
}


@dataclasses.dataclass(frozen=True)
class ShapefileHeader:
    """Fixed header shared by .shp and .shx files.

    Attributes:
        file_length: Length of the file in bytes.
        version: Format version, 1000 for all known files.
        shape_type: Raw shape type code of the file.
        bbox: (xmin, ymin, xmax, ymax) of all shapes.
    """

    file_length: int
    version: int
    shape_type: int
    bbox: BBox


@dataclasses.dataclass(frozen=True)
class IndexEntry:
    """Location of one record in the .shp file, in bytes."""

    offset: int
    content_length: int


def read_header(cursor: binary_cursor.BinaryCursor) -> ShapefileHeader:
    """Read the 100-byte header at the cursor.

    Raises:
        CorruptDataError: If the magic number is wrong or data is missing.
    """
    file_code = cursor.read_int32_be()
    if file_code != FILE_CODE:
        raise errors.CorruptDataError(
            f"File is not an ESRI Shape file. Found file code: {file_code}"
        )
    cursor.skip(5 * 4)
    file_length = cursor.read_int32_be() * 2
    version = cursor.read_int32_le()
    shape_type = cursor.read_int32_le()
    xmin = cursor.read_float64_le()
    ymin = cursor.read_float64_le()
    xmax = cursor.read_float64_le()
    ymax = cursor.read_float64_le()
    # z and m ranges
    cursor.skip(4 * 8)
    return ShapefileHeader(
        file_length=file_length,
        version=version,
        shape_type=shape_type,
        bbox=(xmin, ymin, xmax, ymax),
    )


def read_index(stream: BinaryIO) -> list[IndexEntry]:
    """Parse a .shx index file.

    Raises:
        CorruptDataError: If the header is invalid or entries are missing.
    """
    cursor = binary_cursor.BinaryCursor(stream)
    header = read_header(cursor)
    record_count = (header.file_length - HEADER_SIZE) // INDEX_ENTRY_SIZE
    if record_count < 0:
        raise errors.CorruptDataError(
            f"Index file length {header.file_length} is shorter than its header"
        )
    entries = []
    for _ in range(record_count):
        offset = cursor.read_int32_be() * 2
        content_length = cursor.read_int32_be() * 2
        entries.append(IndexEntry(offset=offset, content_length=content_length))
    return entries


def find_index(resource: resources.Resource) -> resources.Resource | None:
    """The .shx/.SHX sibling of a shapefile, if present."""
    return resources.find_sibling(resource, INDEX_EXTENSIONS)


def load_index(resource: resources.Resource) -> list[IndexEntry] | None:
    """Read the index of a shapefile, or None if it is missing or unusable.

    An unusable index is not fatal: the caller falls back to reading the
    records sequentially.
    """
    index_resource = find_index(resource)
    if index_resource is None:
        return None
    try:
        with index_resource.open() as stream:
            return read_index(stream)
    except (OSError, errors.GeoImportError) as e:
        logger.warning(
            f"Ignoring unusable shapefile index {index_resource.id}: {e}"
        )
        return None


def decode_shapefile(
    stream: BinaryIO,
    *,
    name: str | None,
    index: list[IndexEntry] | None,
    tracker: progress.ProgressTracker,
    factory: geometry.GeometryFactory = geometry.DEFAULT_FACTORY,
) -> geometry.GeometryCollection:
    """Decode the geometry of a .shp stream into a collection.

    Args:
        stream: Binary stream positioned at the start of the .shp data.
        name: Name given to the returned collection.
        index: Record locations from the .shx file, None if unavailable.
        tracker: Progress of the decode; checked once per record.
        factory: Constructors for the created geometry.

    Returns:
        A collection with one child per point (point and multipoint
        records) or per non-empty path (polyline and polygon records).

    Raises:
        CorruptDataError: For structural errors in the data.
        UnsupportedFeatureError: For MultiPatch records.
        ImportCancelled: If the tracker reports cancellation.
    """
    cursor = binary_cursor.BinaryCursor(stream)
    header = read_header(cursor)
    header_family = _shape_type(header.shape_type).family
    collection = factory.collection(name)
    decoder = _RecordDecoder(collection, factory, header_family)

    if index is not None:
        _decode_indexed(cursor, decoder, index, tracker)
    else:
        _decode_sequential(cursor, decoder, header, tracker)

    if decoder.has_polygons:
        collection.symbol = FILLED_SYMBOL
    logger.debug(
        f"Decoded {collection.child_count} geometries from shapefile {name}"
    )
    return collection


def _decode_indexed(
    cursor: binary_cursor.BinaryCursor,
    decoder: _RecordDecoder,
    index: list[IndexEntry],
    tracker: progress.ProgressTracker,
) -> None:
    record_count = len(index)
    for position, entry in enumerate(index):
        cursor.skip_to(entry.offset)
        head = cursor.read_or_eof(RECORD_HEADER_SIZE)
        if head is None:
            raise errors.CorruptDataError(
                f"Index lists {record_count} records, "
                f"data ends after {position}"
            )
        cursor.skip_to(decoder.decode(cursor, head))
        tracker.checkpoint((position + 1) * 100 // record_count)


def _decode_sequential(
    cursor: binary_cursor.BinaryCursor,
    decoder: _RecordDecoder,
    header: ShapefileHeader,
    tracker: progress.ProgressTracker,
) -> None:
    while (head := cursor.read_or_eof(RECORD_HEADER_SIZE)) is not None:
        end = decoder.decode(cursor, head)
        cursor.skip_to(end)
        if header.file_length > 0:
            tracker.checkpoint(cursor.position * 100 // header.file_length)


def _shape_type(code: int) -> ShapeType:
    try:
        return ShapeType(code)
    except ValueError:
        raise errors.CorruptDataError(
            f"Shapefile contains unsupported geometry type: {code}"
        ) from None


class _RecordDecoder:
    """Turns records into children of one collection."""

    def __init__(
        self,
        collection: geometry.GeometryCollection,
        factory: geometry.GeometryFactory,
        header_family: ShapeType,
    ) -> None:
        self.collection = collection
        self.factory = factory
        self.header_family = header_family
        self.has_polygons = False

    def decode(self, cursor: binary_cursor.BinaryCursor, head: bytes) -> int:
        """Decode one record whose 8-byte header has been read.

        Returns:
            Byte offset of the end of the record.
        """
        record_number = int.from_bytes(head[:4], "big", signed=True)
        content_length = int.from_bytes(head[4:], "big", signed=True) * 2
        start = cursor.position
        end = start + content_length
        # content holds at least the shape type
        if content_length < 4:
            raise errors.CorruptDataError(
                f"Record {record_number} declares invalid content length "
                f"{content_length}"
            )

        shape_type = _shape_type(cursor.read_int32_le())
        if shape_type is ShapeType.MULTIPATCH:
            raise errors.UnsupportedFeatureError(
                "Multipatch Shape files are not supported."
            )
        family = shape_type.family
        if (
            family is not ShapeType.NULL
            and self.header_family is not ShapeType.NULL
            and family is not self.header_family
        ):
            raise errors.CorruptDataError(
                f"Record {record_number} has shape type {shape_type.name}, "
                f"file declares {self.header_family.name}"
            )

        match family:
            case ShapeType.POINT:
                self._read_point(cursor, record_number)
            case ShapeType.MULTIPOINT:
                self._read_multipoint(cursor, record_number)
            case ShapeType.POLYLINE:
                self._read_path(cursor, record_number, closed=False)
            case ShapeType.POLYGON:
                self._read_path(cursor, record_number, closed=True)
                self.has_polygons = True

        if cursor.position > end:
            raise errors.CorruptDataError(
                f"Record {record_number} is longer than its declared "
                f"content length of {content_length} bytes"
            )
        return end

    def _read_point(
        self, cursor: binary_cursor.BinaryCursor, record_number: int
    ) -> None:
        x = cursor.read_float64_le()
        y = cursor.read_float64_le()
        self._add_point(x, y, record_number)

    def _read_multipoint(
        self, cursor: binary_cursor.BinaryCursor, record_number: int
    ) -> None:
        cursor.skip(4 * 8)  # bounding box
        num_points = cursor.read_int32_le()
        if num_points < 0:
            raise errors.CorruptDataError(
                f"Record {record_number} has negative point count {num_points}"
            )
        coords = cursor.read_float64_array_le(2 * num_points)
        for x, y in coords.reshape(num_points, 2).tolist():
            self._add_point(x, y, record_number)

    def _add_point(self, x: float, y: float, record_number: int) -> None:
        point = self.factory.point(x, y)
        point.id = record_number
        self.collection.add(point)

    def _read_path(
        self,
        cursor: binary_cursor.BinaryCursor,
        record_number: int,
        *,
        closed: bool,
    ) -> None:
        cursor.skip(4 * 8)  # bounding box
        num_parts = cursor.read_int32_le()
        num_points = cursor.read_int32_le()
        if num_parts < 0 or num_points < 0:
            raise errors.CorruptDataError(
                f"Record {record_number} has invalid part count {num_parts} "
                f"or point count {num_points}"
            )
        part_starts = cursor.read_int32_array_le(num_parts).tolist()
        _check_part_starts(part_starts, num_points, record_number)
        coords = cursor.read_float64_array_le(2 * num_points)

        path = self.factory.path()
        path.id = record_number
        _append_parts(path, part_starts, coords, num_points, closed=closed)
        self.collection.add(path)


def _check_part_starts(
    part_starts: list[int], num_points: int, record_number: int
) -> None:
    previous = 0
    for start in part_starts:
        if start < previous or start > num_points:
            raise errors.CorruptDataError(
                f"Record {record_number} has invalid part start index {start} "
                f"for {num_points} points"
            )
        previous = start


def _append_parts(
    path: geometry.Path,
    part_starts: list[int],
    coords: np.ndarray,
    num_points: int,
    *,
    closed: bool,
) -> None:
    """Add each part with at least two points as a MoveTo/LineTo run."""
    points = coords.reshape(num_points, 2).tolist()
    bounds = [*part_starts, num_points]
    for first, last in zip(bounds, bounds[1:], strict=False):
        if last - first < 2:
            continue
        x, y = points[first]
        path.move_to(x, y)
        for x, y in points[first + 1 : last]:
            path.line_to(x, y)
        if closed and last - first > 2:
            path.close_path()
