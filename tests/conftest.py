"""Shared fixtures: isolated settings and on-disk geodata samples."""

from __future__ import annotations

import pathlib
from collections.abc import Iterator

import geodata_builders as builders
import pytest

from geoimport.core import config


@pytest.fixture(autouse=True)
def isolated_settings(
    tmp_path: pathlib.Path, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    """Point uploads at a temporary directory and reset cached settings."""
    monkeypatch.setenv("GEOIMPORT_STORAGE_DIR", str(tmp_path / "uploads"))
    monkeypatch.setenv("GEOIMPORT_CATALOG_BACKEND", "memory")
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()


@pytest.fixture
def settings() -> config.Settings:
    return config.Settings(grid_poll_interval=0.01)


@pytest.fixture
def point_shapefile(tmp_path: pathlib.Path) -> pathlib.Path:
    """Shapefile set with three points, an index and a DBF table."""
    shp, shx = builders.build_shp(
        1,
        [
            builders.point_content(10.0, 20.0),
            builders.point_content(11.0, 21.0),
            builders.point_content(12.0, 22.0),
        ],
    )
    path = tmp_path / "cities.shp"
    path.write_bytes(shp)
    (tmp_path / "cities.shx").write_bytes(shx)
    (tmp_path / "cities.dbf").write_bytes(
        builders.build_dbf(
            [("NAME", "C", 10), ("POP", "N", 8)],
            [("Bern", "133000"), ("Basel", "173000"), ("Chur", "37000")],
        )
    )
    return path


@pytest.fixture
def grid_file(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "dem.asc"
    path.write_text(
        builders.grid_text(
            3,
            2,
            [1.0, 2.0, 3.0, 4.0, -9999.0, 6.0],
            west=100.0,
            south=200.0,
            cell_size=10.0,
        )
    )
    return path
