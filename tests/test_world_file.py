"""Tests for world file lookup, parsing and image georeferencing."""

from __future__ import annotations

import pathlib

import numpy as np
import pytest

from geoimport.core import errors
from geoimport.model import raster
from geoimport.services import world_file
from geoimport.utils import resources


def _image() -> raster.GeoImage:
    return raster.GeoImage(width=4, height=2, pixels=np.zeros((2, 4, 3), np.uint8))


def test_candidate_names_order() -> None:
    """Test full, short, appended and bare candidates come in order."""
    image = resources.FileResource(pathlib.Path("/data/map.jpeg"))
    assert world_file.candidate_names(image) == [
        "map.jpegw",
        "map.jpegW",
        "map.jgw",
        "map.jgW",
        "map.w",
        "map.W",
    ]


def test_candidate_names_without_extension() -> None:
    """Test names without an extension only get a w appended."""
    image = resources.FileResource(pathlib.Path("/data/scan"))
    assert world_file.candidate_names(image) == ["scanw", "scanW", "scan.w", "scan.W"]


def test_parse_world_file() -> None:
    """Test a north-up world file yields cell size and top-left corner."""
    placement = world_file.parse_world_file("2.5\n0\n0\n-2.5\n1000.0\n5000.0\n")
    assert placement == world_file.WorldFile(
        cell_size=2.5, west=1000.0, north=5000.0
    )


def test_parse_skips_blank_lines() -> None:
    """Test blank lines between values are ignored."""
    placement = world_file.parse_world_file("\n1\n\n0\n0\n-1\n  \n3\n4\n")
    assert placement.west == 3.0
    assert placement.north == 4.0


def test_rotation_is_unsupported() -> None:
    """Test a non-zero rotation term is rejected."""
    with pytest.raises(errors.UnsupportedFeatureError):
        world_file.parse_world_file("1\n0.0001\n0\n-1\n0\n0\n")


def test_anisotropic_pixels_are_unsupported() -> None:
    """Test pixels of different width and height are rejected."""
    with pytest.raises(errors.UnsupportedFeatureError):
        world_file.parse_world_file("1\n0\n0\n-2\n0\n0\n")


@pytest.mark.parametrize("text", ["1\n0\n0\n-1\n0\n", "1\n0\n0\n-1\nwest\n0\n"])
def test_short_or_malformed_file_is_corrupt(text: str) -> None:
    """Test fewer than six numbers or a non-number is corrupt data."""
    with pytest.raises(errors.CorruptDataError):
        world_file.parse_world_file(text)


def test_georeference_applies_first_candidate(tmp_path: pathlib.Path) -> None:
    """Test the earliest existing candidate places the image."""
    (tmp_path / "map.jpg").write_bytes(b"")
    (tmp_path / "map.jpgw").write_text("10\n0\n0\n-10\n500\n900\n")
    (tmp_path / "map.w").write_text("1\n0\n0\n-1\n0\n0\n")
    image = _image()

    applied = world_file.georeference(
        image, resources.FileResource(tmp_path / "map.jpg")
    )

    assert applied
    assert image.georeferenced
    assert image.cell_size == 10.0
    assert image.bounds() == (500.0, 880.0, 540.0, 900.0)


def test_georeference_without_world_file(tmp_path: pathlib.Path) -> None:
    """Test an image without world file keeps its default placement."""
    (tmp_path / "photo.png").write_bytes(b"")
    image = _image()

    assert not world_file.georeference(
        image, resources.FileResource(tmp_path / "photo.png")
    )
    assert not image.georeferenced
    assert image.bounds() == (0.0, 0.0, 4.0, 2.0)
