"""Tests for the shapefile geometry decoder.

Builds .shp/.shx byte streams in memory and checks point, multipoint,
polyline and polygon decoding, both with and without an index, plus the
structural errors the decoder must reject.
"""

from __future__ import annotations

import io
import pathlib
import struct

import geodata_builders as builders
import pytest

from geoimport.core import errors
from geoimport.model import geometry
from geoimport.services import progress, shapefile
from geoimport.utils import resources


def _decode(
    shp: bytes,
    shx: bytes | None = None,
    tracker: progress.ProgressTracker | None = None,
    **kwargs,
) -> geometry.GeometryCollection:
    index = shapefile.read_index(io.BytesIO(shx)) if shx is not None else None
    return shapefile.decode_shapefile(
        io.BytesIO(shp),
        name="test",
        index=index,
        tracker=tracker or progress.ProgressTracker(),
        **kwargs,
    )


def test_single_point() -> None:
    """Test a one-record point file yields one point with id 1."""
    shp, _ = builders.build_shp(1, [builders.point_content(10.0, 20.0)])
    collection = _decode(shp)

    assert collection.name == "test"
    assert collection.child_count == 1
    point = collection[0]
    assert isinstance(point, geometry.Point)
    assert (point.x, point.y, point.id) == (10.0, 20.0, 1)
    assert collection.symbol is None


@pytest.mark.parametrize("with_index", [False, True])
def test_polygon_parts(with_index: bool) -> None:
    """Test polygon parts become closed subpaths and tiny parts are dropped."""
    outer = [(0.0, 0.0), (0.0, 10.0), (10.0, 0.0)]
    hole = [(1.0, 1.0), (1.0, 2.0), (2.0, 1.0)]
    stray = [(5.0, 5.0)]
    shp, shx = builders.build_shp(
        5, [builders.poly_content([outer, stray, hole])]
    )
    collection = _decode(shp, shx if with_index else None)

    assert collection.child_count == 1
    assert collection.symbol == shapefile.FILLED_SYMBOL
    path = collection[0]
    assert path.id == 1
    assert path.instruction_count == 8
    assert path.instructions == [
        geometry.MoveTo(0.0, 0.0),
        geometry.LineTo(0.0, 10.0),
        geometry.LineTo(10.0, 0.0),
        geometry.ClosePath(),
        geometry.MoveTo(1.0, 1.0),
        geometry.LineTo(1.0, 2.0),
        geometry.LineTo(2.0, 1.0),
        geometry.ClosePath(),
    ]


def test_polyline_is_not_closed() -> None:
    """Test polyline parts have no ClosePath."""
    shp, _ = builders.build_shp(
        3, [builders.poly_content([[(0.0, 0.0), (1.0, 1.0), (2.0, 0.0)]], 3)]
    )
    path = _decode(shp)[0]
    assert not any(isinstance(i, geometry.ClosePath) for i in path.instructions)
    assert path.instruction_count == 3


def test_two_point_polygon_part_is_not_closed() -> None:
    """Test a polygon part with two points is drawn but not closed."""
    shp, _ = builders.build_shp(5, [builders.poly_content([[(0.0, 0.0), (1.0, 1.0)]])])
    assert _decode(shp)[0].instructions == [
        geometry.MoveTo(0.0, 0.0),
        geometry.LineTo(1.0, 1.0),
    ]


def test_empty_paths_are_skipped() -> None:
    """Test a record whose parts are all too short adds no child."""
    shp, _ = builders.build_shp(
        3,
        [
            builders.poly_content([[(0.0, 0.0)]], 3),
            builders.poly_content([[(0.0, 0.0), (1.0, 1.0)]], 3),
        ],
    )
    collection = _decode(shp)
    assert collection.child_count == 1
    assert collection[0].id == 2


def test_multipoint_shares_record_id() -> None:
    """Test every point of a multipoint record carries the record number."""
    shp, _ = builders.build_shp(
        8,
        [
            builders.multipoint_content([(1.0, 1.0), (2.0, 2.0)]),
            builders.multipoint_content([(3.0, 3.0)]),
        ],
    )
    collection = _decode(shp)
    assert [(p.x, p.id) for p in collection] == [(1.0, 1), (2.0, 1), (3.0, 2)]


def test_null_records_are_skipped() -> None:
    """Test null shapes add nothing but keep later record numbers."""
    shp, shx = builders.build_shp(
        1,
        [
            builders.null_content(),
            builders.point_content(1.0, 2.0),
            builders.null_content(),
        ],
    )
    for index in (None, shx):
        collection = _decode(shp, index)
        assert [p.id for p in collection] == [2]


def test_z_records_use_their_planar_family() -> None:
    """Test PointZ records decode as points and trailing z is skipped."""
    contents = [
        struct.pack("<iddd d", 11, 1.0, 2.0, 3.0, 0.0),
        struct.pack("<iddd d", 11, 4.0, 5.0, 6.0, 0.0),
    ]
    shp, _ = builders.build_shp(11, contents)
    assert [(p.x, p.y) for p in _decode(shp)] == [(1.0, 2.0), (4.0, 5.0)]


def test_index_skips_gaps_between_records() -> None:
    """Test the index is followed past bytes that are not records."""
    first = builders.record(1, builders.point_content(1.0, 1.0))
    second = builders.record(2, builders.point_content(2.0, 2.0))
    gap = b"\xff" * 8
    body = first + gap + second
    shp = builders.shp_header(1, 100 + len(body)) + body
    entries = struct.pack(">ii", 50, 10) + struct.pack(
        ">ii", (100 + len(first) + len(gap)) // 2, 10
    )
    shx = builders.shp_header(1, 100 + len(entries)) + entries

    assert [p.x for p in _decode(shp, shx)] == [1.0, 2.0]
    with pytest.raises(errors.CorruptDataError):
        _decode(shp)


def test_index_longer_than_data_is_corrupt() -> None:
    """Test an index listing a record beyond the data is corrupt."""
    shp, _ = builders.build_shp(1, [builders.point_content(1.0, 1.0)])
    _, shx = builders.build_shp(
        1, [builders.point_content(1.0, 1.0), builders.point_content(2.0, 2.0)]
    )
    with pytest.raises(errors.CorruptDataError):
        _decode(shp, shx)


def test_bad_magic_number_is_corrupt() -> None:
    """Test a file without the 9994 file code is rejected."""
    shp, _ = builders.build_shp(1, [builders.point_content(1.0, 1.0)])
    with pytest.raises(errors.CorruptDataError, match="not an ESRI Shape file"):
        _decode(b"\x00\x00\x00\x01" + shp[4:])


def test_unknown_header_shape_type_is_corrupt() -> None:
    """Test a header shape type outside the known codes is rejected."""
    shp, _ = builders.build_shp(2, [])
    with pytest.raises(errors.CorruptDataError):
        _decode(shp)


def test_multipatch_is_unsupported() -> None:
    """Test MultiPatch records raise UnsupportedFeatureError."""
    shp, _ = builders.build_shp(31, [struct.pack("<i", 31) + b"\x00" * 36])
    with pytest.raises(errors.UnsupportedFeatureError):
        _decode(shp)


def test_record_family_must_match_header() -> None:
    """Test a polyline record in a point file is corrupt."""
    shp, _ = builders.build_shp(
        1, [builders.poly_content([[(0.0, 0.0), (1.0, 1.0)]], 3)]
    )
    with pytest.raises(errors.CorruptDataError):
        _decode(shp)


def test_truncated_record_is_corrupt() -> None:
    """Test a record cut off inside its payload is corrupt."""
    shp, _ = builders.build_shp(1, [builders.point_content(1.0, 1.0)])
    with pytest.raises(errors.CorruptDataError):
        _decode(shp[:-4])


def test_decreasing_part_starts_are_corrupt() -> None:
    """Test part start indices must not decrease."""
    content = struct.pack("<i4dii", 3, 0.0, 0.0, 0.0, 0.0, 2, 3)
    content += struct.pack("<2i", 2, 0) + struct.pack("<6d", *range(6))
    shp, _ = builders.build_shp(3, [content])
    with pytest.raises(errors.CorruptDataError):
        _decode(shp)


def test_negative_point_count_is_corrupt() -> None:
    """Test negative counts in a multipoint record are rejected."""
    content = struct.pack("<i4di", 8, 0.0, 0.0, 0.0, 0.0, -1)
    shp, _ = builders.build_shp(8, [content])
    with pytest.raises(errors.CorruptDataError):
        _decode(shp)


def test_cancellation_stops_after_first_record() -> None:
    """Test a sink returning False cancels the decode."""
    reports: list[int] = []

    def stop(percent: int) -> bool:
        reports.append(percent)
        return False

    shp, shx = builders.build_shp(
        1, [builders.point_content(float(i), 0.0) for i in range(4)]
    )
    tracker = progress.ProgressTracker(progress.CallbackProgress(stop))
    with pytest.raises(errors.ImportCancelled):
        _decode(shp, shx, tracker=tracker)
    assert reports == [25]


def test_custom_factory_is_used() -> None:
    """Test geometry is created through the supplied factory."""
    factory = geometry.GeometryFactory(
        point=lambda x, y: geometry.Point(x, y, name="custom")
    )
    shp, _ = builders.build_shp(1, [builders.point_content(1.0, 1.0)])
    assert _decode(shp, factory=factory)[0].name == "custom"


def test_load_index_falls_back_when_unusable(tmp_path: pathlib.Path) -> None:
    """Test a broken index is ignored rather than failing the import."""
    shp, _ = builders.build_shp(1, [builders.point_content(1.0, 1.0)])
    (tmp_path / "a.shp").write_bytes(shp)
    (tmp_path / "a.shx").write_bytes(b"garbage")
    assert shapefile.load_index(resources.FileResource(tmp_path / "a.shp")) is None


def test_load_index_reads_entries(point_shapefile: pathlib.Path) -> None:
    """Test the index of a shapefile set lists one entry per record."""
    entries = shapefile.load_index(resources.FileResource(point_shapefile))
    assert entries is not None
    assert [entry.offset for entry in entries] == [100, 128, 156]
    assert all(entry.content_length == 20 for entry in entries)


@pytest.mark.parametrize("with_index", [False, True])
def test_record_shorter_than_declared_length_is_corrupt(with_index: bool) -> None:
    """Test a last record missing its z tail is not taken for a clean end."""
    content = builders.point_content(1.0, 2.0, shape_type=11)
    shp = (
        builders.shp_header(11, 100 + 8 + 36)
        + struct.pack(">ii", 1, 36 // 2)
        + content
    )
    shx = builders.shp_header(11, 108) + struct.pack(">ii", 50, 36 // 2)
    with pytest.raises(errors.CorruptDataError):
        _decode(shp, shx if with_index else None)
