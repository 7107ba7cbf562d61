"""Tests for the built-in format handlers and handler construction."""

from __future__ import annotations

import gzip
import pathlib

import geodata_builders as builders
import numpy as np
import pytest
from PIL import Image
from returns.result import Failure

from geoimport.core import config, errors
from geoimport.model import geometry, raster
from geoimport.services import handlers, progress
from geoimport.utils import resources


def _res(path: pathlib.Path | str) -> resources.FileResource:
    return resources.FileResource(pathlib.Path(path))


def _declined(result: handlers.ProbeResult) -> bool:
    return isinstance(result, Failure)


@pytest.mark.parametrize("member", ["cities.dbf", "cities.shx", "cities.prj"])
def test_shapefile_probe_resolves_members(
    point_shapefile: pathlib.Path, member: str
) -> None:
    """Test any member of a shapefile set resolves to the .shp file."""
    (point_shapefile.parent / "cities.prj").write_text("GEOGCS[]")
    result = handlers.ShapefileHandler().probe(_res(point_shapefile.parent / member))
    assert result.unwrap() == _res(point_shapefile)


def test_shapefile_probe_finds_upper_case_data(tmp_path: pathlib.Path) -> None:
    """Test a .SHP file is found when .shp does not exist."""
    (tmp_path / "ROADS.SHP").write_bytes(b"")
    result = handlers.ShapefileHandler().probe(_res(tmp_path / "ROADS.dbf"))
    assert result.unwrap().name == "ROADS.SHP"


def test_shapefile_probe_declines(tmp_path: pathlib.Path) -> None:
    """Test short paths, foreign extensions and lone members are declined."""
    handler = handlers.ShapefileHandler()
    assert _declined(handler.probe(_res(".shp")))
    assert _declined(handler.probe(_res(tmp_path / "notes.txt")))
    assert _declined(handler.probe(_res(tmp_path / "lonely.dbf")))


def test_shapefile_decode_links_attributes(point_shapefile: pathlib.Path) -> None:
    """Test decoding returns points and a table link to the DBF."""
    decoded = handlers.ShapefileHandler().decode(
        _res(point_shapefile), progress.ProgressTracker(), geometry.DEFAULT_FACTORY
    )

    assert decoded.handler == "shapefile"
    assert decoded.payload.name == "cities"
    assert decoded.payload.child_count == 3
    assert decoded.table_link is not None
    assert decoded.table_link.table.column("POP") == [133000.0, 173000.0, 37000.0]
    assert decoded.table_link.row_for(2) == 2


def test_shapefile_decode_without_dbf(point_shapefile: pathlib.Path) -> None:
    """Test a shapefile without attributes has no table link."""
    (point_shapefile.parent / "cities.dbf").unlink()
    decoded = handlers.ShapefileHandler().decode(
        _res(point_shapefile), progress.ProgressTracker(), geometry.DEFAULT_FACTORY
    )
    assert decoded.table_link is None


def test_shapefile_decode_with_short_dbf(
    point_shapefile: pathlib.Path, tmp_path: pathlib.Path
) -> None:
    """Test fewer attribute rows than geometries is corrupt data."""
    (tmp_path / "cities.dbf").write_bytes(
        builders.build_dbf([("NAME", "C", 4)], [("a",), ("b",)])
    )
    with pytest.raises(errors.CorruptDataError):
        handlers.ShapefileHandler().decode(
            _res(point_shapefile), progress.ProgressTracker(), geometry.DEFAULT_FACTORY
        )


def test_gzip_shapefile(point_shapefile: pathlib.Path) -> None:
    """Test a gzip compressed geometry file is probed and decoded."""
    gz_path = point_shapefile.with_suffix(".gz")
    gz_path.write_bytes(gzip.compress(point_shapefile.read_bytes()))
    point_shapefile.unlink()
    handler = handlers.GzipShapefileHandler()

    target = handler.probe(_res(point_shapefile.with_suffix(".dbf"))).unwrap()
    assert target.name == "cities.gz"
    decoded = handler.decode(target, progress.ProgressTracker(), geometry.DEFAULT_FACTORY)
    assert decoded.payload.child_count == 3
    assert decoded.table_link is not None


def test_ascii_grid_probe(grid_file: pathlib.Path, tmp_path: pathlib.Path) -> None:
    """Test grids are recognised by header, regardless of extension."""
    handler = handlers.AsciiGridHandler()
    renamed = tmp_path / "elevation.txt"
    renamed.write_bytes(grid_file.read_bytes())
    binary = tmp_path / "blob.bin"
    binary.write_bytes(bytes(range(256)) * 40)

    assert handler.probe(_res(grid_file)).unwrap() == _res(grid_file)
    assert handler.probe(_res(renamed)).unwrap() == _res(renamed)
    assert _declined(handler.probe(_res(binary)))
    assert _declined(handler.probe(_res(tmp_path / "missing.asc")))


def test_ascii_grid_decode(grid_file: pathlib.Path, settings: config.Settings) -> None:
    """Test decoding uses the configured pipeline settings."""
    handler = handlers.AsciiGridHandler.from_settings(settings)
    assert handler.poll_interval == 0.01

    decoded = handler.decode(
        _res(grid_file), progress.ProgressTracker(), geometry.DEFAULT_FACTORY
    )
    assert isinstance(decoded.payload, raster.Grid)
    assert decoded.payload.name == "dem"
    assert decoded.payload.bounds() == (100.0, 200.0, 120.0, 210.0)


class _FakeCodec:
    def identify(self, stream) -> tuple[int, int]:
        if stream.read(4) != b"FAKE":
            raise ValueError("not fake")
        return 3, 2

    def decode(self, stream) -> np.ndarray:
        return np.zeros((2, 3), dtype=np.uint8)


def test_image_handler_with_custom_codec(tmp_path: pathlib.Path) -> None:
    """Test the image handler delegates to its codec and reports progress."""
    image_path = tmp_path / "scan.fake"
    image_path.write_bytes(b"FAKE")
    (tmp_path / "other.fake").write_bytes(b"NOPE")
    reports: list[int] = []
    handler = handlers.ImageHandler(codec=_FakeCodec())

    assert _declined(handler.probe(_res(tmp_path / "other.fake")))
    target = handler.probe(_res(image_path)).unwrap()
    decoded = handler.decode(
        target,
        progress.ProgressTracker(
            progress.CallbackProgress(lambda p: reports.append(p) or True)
        ),
        geometry.DEFAULT_FACTORY,
    )

    image = decoded.payload
    assert isinstance(image, raster.GeoImage)
    assert (image.width, image.height) == (3, 2)
    assert not image.georeferenced
    assert image.bounds() == (0.0, 0.0, 3.0, 2.0)
    assert reports == [0, 100]


def test_image_handler_with_pillow_and_world_file(tmp_path: pathlib.Path) -> None:
    """Test a PNG with a .pgw world file is decoded and placed."""
    path = tmp_path / "ortho.png"
    Image.new("RGB", (4, 3), color=(10, 20, 30)).save(path)
    (tmp_path / "ortho.pgw").write_text("0.5\n0\n0\n-0.5\n100\n50\n")
    handler = handlers.ImageHandler()

    decoded = handler.decode(
        handler.probe(_res(path)).unwrap(),
        progress.ProgressTracker(),
        geometry.DEFAULT_FACTORY,
    )

    image = decoded.payload
    assert image.pixels.shape == (3, 4, 3)
    assert image.georeferenced
    assert image.bounds() == (100.0, 48.5, 102.0, 50.0)


def test_image_probe_declines_text(grid_file: pathlib.Path) -> None:
    """Test Pillow rejects non-image files during probing."""
    assert _declined(handlers.ImageHandler().probe(_res(grid_file)))


def test_build_handlers_in_order(settings: config.Settings) -> None:
    """Test handlers are built in the configured order."""
    built = handlers.build_handlers(["esri_ascii_grid", "shapefile"], settings)
    assert [h.name for h in built] == ["esri_ascii_grid", "shapefile"]


def test_build_handlers_rejects_unknown_name(settings: config.Settings) -> None:
    """Test an unknown handler name is a configuration error."""
    with pytest.raises(errors.HandlerConfigError, match="geotiff"):
        handlers.build_handlers(["shapefile", "geotiff"], settings)
