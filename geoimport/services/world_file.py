"""World files: georeferencing sidecars of raster images.

A world file holds six numbers, one per line: horizontal pixel size,
rotation about x, rotation about y, vertical pixel size (usually
negative), and the x and y coordinates of the top-left pixel. Only
axis-aligned images with square pixels are supported.

The world file of ``map.jpeg`` may be called ``map.jpegw``, ``map.jgw``
or ``map.w``. Each name is tried with a lower and an upper case ``w``.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

from loguru import logger

from geoimport.core import errors
from geoimport.utils import resources

if TYPE_CHECKING:
    from geoimport.model import raster


@dataclasses.dataclass(frozen=True)
class WorldFile:
    """Axis-aligned placement of an image.

    Attributes:
        cell_size: Edge length of a pixel in map units.
        west: X coordinate of the top-left pixel.
        north: Y coordinate of the top-left pixel.
    """

    cell_size: float
    west: float
    north: float


def candidate_names(image: resources.Resource) -> list[str]:
    """Sibling names that may hold the world file of ``image``, in order."""
    ext = resources.extension(image)
    stem = resources.stem(image)
    names = []
    if ext:
        names += [f"{stem}.{ext}w", f"{stem}.{ext}W"]
        short = ext[0] + ext[-1]
        names += [f"{stem}.{short}w", f"{stem}.{short}W"]
    names += [f"{image.name}w", f"{image.name}W"]
    names += [f"{stem}.w", f"{stem}.W"]
    # single character extensions produce duplicates
    return list(dict.fromkeys(names))


def search_world_file(image: resources.Resource) -> resources.Resource | None:
    """First existing world file sibling of ``image``, None if there is none."""
    for name in candidate_names(image):
        candidate = image.sibling(name)
        if candidate.exists():
            return candidate
    return None


def parse_world_file(text: str) -> WorldFile:
    """Parse and validate the content of a world file.

    Raises:
        CorruptDataError: If fewer than six numbers are present.
        UnsupportedFeatureError: If the image is rotated or its pixels are
            not square.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if len(lines) < 6:
        raise errors.CorruptDataError(
            f"World file holds {len(lines)} values, expected 6"
        )
    try:
        size_x, rot_x, rot_y, size_y, west, north = (
            float(value) for value in lines[:6]
        )
    except ValueError as e:
        raise errors.CorruptDataError(f"Invalid world file value: {e}") from None

    size_x, size_y = abs(size_x), abs(size_y)
    if size_x != size_y:
        raise errors.UnsupportedFeatureError(
            "Horizontal and vertical pixel sizes are different in world file."
        )
    if rot_x != 0 or rot_y != 0:
        raise errors.UnsupportedFeatureError(
            "World file specifies unsupported image rotation."
        )
    return WorldFile(cell_size=size_x, west=west, north=north)


def read_world_file(
    world_file: resources.Resource, encoding: str = "latin-1"
) -> WorldFile:
    with world_file.open() as stream:
        return parse_world_file(stream.read().decode(encoding))


def georeference(
    image: raster.GeoImage,
    source: resources.Resource,
    encoding: str = "latin-1",
) -> bool:
    """Place ``image`` using the world file next to ``source``.

    Returns:
        True if a world file was found and applied; False leaves the image
        untouched.

    Raises:
        CorruptDataError: If the world file cannot be parsed.
        UnsupportedFeatureError: If the world file is rotated or
            anisotropic.
    """
    world_file = search_world_file(source)
    if world_file is None:
        return False
    placement = read_world_file(world_file, encoding)
    image.cell_size = placement.cell_size
    image.west = placement.west
    image.north = placement.north
    image.georeferenced = True
    logger.debug(f"Georeferenced {source.id} with {world_file.id}")
    return True
