"""Reader for dBASE III attribute tables (.dbf) of shapefile sets.

Only what is needed to attach attributes to shapefile geometry is
supported: the record count, the field descriptors, and character,
numeric and binary number fields. Deleted records are kept so that row
``i`` still belongs to shape ``i``.

Example:
    Read the attributes of a shapefile:
        >>> import pathlib
        >>> from geoimport.services import dbf
        >>> from geoimport.utils import resources
        >>> table = dbf.load_dbf(resources.FileResource(pathlib.Path("roads.dbf")))
        >>> table.row_count(), table.columns
"""

from __future__ import annotations

import dataclasses
import struct
from typing import TYPE_CHECKING, Any

from loguru import logger

from geoimport.core import errors
from geoimport.model import table as table_model
from geoimport.utils import binary_cursor, resources

if TYPE_CHECKING:
    from typing import BinaryIO

DBF_EXTENSIONS = ("dbf", "DBF")
HEADER_TERMINATOR = 0x0D
DESCRIPTOR_SIZE = 32
DEFAULT_CODEC = "cp437"

# language driver id -> Python codec
CODEPAGES = {
    0x01: "cp437",
    0x02: "cp850",
    0x03: "cp1252",
    0x04: "mac_roman",
    0x57: "cp1252",  # "ANSI" as written by ESRI software
    0x64: "cp852",
    0x65: "cp865",
    0x66: "cp866",
    0x67: "cp861",
    0x6A: "cp737",
    0x6B: "cp857",
    0x96: "mac_cyrillic",
    0x97: "mac_latin2",
    0x98: "mac_greek",
    0xC8: "cp1250",
    0xC9: "cp1251",
    0xCA: "cp1254",
    0xCB: "cp1253",
}

_DOUBLE_LE = struct.Struct("<d")
_INT32_LE = struct.Struct("<i")
_INT16_LE = struct.Struct("<h")


@dataclasses.dataclass(frozen=True)
class Field:
    """Descriptor of one DBF column."""

    name: str
    type: str
    length: int
    decimal_count: int


def codec_for(codepage: int) -> str:
    """Python codec for a DBF language driver id; cp437 if unknown."""
    return CODEPAGES.get(codepage, DEFAULT_CODEC)


def read_dbf(stream: BinaryIO, name: str | None = None) -> table_model.Table:
    """Read a DBF table from a binary stream.

    Raises:
        UnsupportedFeatureError: If the file is encrypted.
        CorruptDataError: If the header is malformed or records are missing.
    """
    cursor = binary_cursor.BinaryCursor(stream)
    cursor.skip(4)  # file code and date of last update
    record_count = cursor.read_uint32_le()
    header_size = cursor.read_uint16_le()
    record_size = cursor.read_uint16_le()
    cursor.skip(3)  # reserved and transaction flag
    encrypted = cursor.read_uint8()
    cursor.skip(13)
    codepage = cursor.read_uint8()
    cursor.skip(2)

    if encrypted != 0:
        raise errors.UnsupportedFeatureError("Encrypted DBF not supported.")

    codec = codec_for(codepage)
    fields = _read_fields(cursor, (header_size - 32) // DESCRIPTOR_SIZE, codec)
    cursor.skip_to(header_size)
    if record_size < 1 + sum(field.length for field in fields):
        raise errors.CorruptDataError(
            f"DBF record size {record_size} is smaller than its fields"
        )

    table = table_model.Table(
        name=name, columns=[field.name for field in fields], encoding=codec
    )
    for _ in range(record_count):
        record = cursor.read_exact(record_size)
        table.add_row(_parse_record(record, fields, codec))
    logger.debug(
        f"Read {record_count} records with {len(fields)} fields from DBF {name}"
    )
    return table


def find_dbf(resource: resources.Resource) -> resources.Resource | None:
    """The .dbf/.DBF sibling of a shapefile, if present."""
    return resources.find_sibling(resource, DBF_EXTENSIONS)


def load_dbf(resource: resources.Resource) -> table_model.Table:
    with resource.open() as stream:
        return read_dbf(stream, name=resources.stem(resource))


def _read_fields(
    cursor: binary_cursor.BinaryCursor, count: int, codec: str
) -> list[Field]:
    fields = []
    for _ in range(count):
        descriptor = cursor.read_exact(DESCRIPTOR_SIZE)
        raw_name = descriptor[:11].split(b"\x00", 1)[0]
        fields.append(
            Field(
                name=raw_name.decode(codec, errors="replace").strip(),
                type=chr(descriptor[11]),
                length=descriptor[16],
                decimal_count=descriptor[17],
            )
        )
    terminator = cursor.read_uint8()
    if terminator != HEADER_TERMINATOR:
        raise errors.CorruptDataError("DBF file is corrupt.")
    return fields


def _parse_record(record: bytes, fields: list[Field], codec: str) -> list[Any]:
    # first byte is the deletion flag
    offset = 1
    values = []
    for field in fields:
        data = record[offset : offset + field.length]
        offset += field.length
        values.append(_parse_value(data, field, codec))
    return values


def _parse_value(data: bytes, field: Field, codec: str) -> Any:
    match field.type:
        case "C":
            return data.decode(codec, errors="replace").strip(" \x00")
        case "N" | "F":
            try:
                return float(data.decode("ascii"))
            except ValueError:
                return 0.0
        case "O" | "8":
            return _DOUBLE_LE.unpack_from(data)[0]
        case "I" | "4":
            return float(_INT32_LE.unpack_from(data)[0])
        case "2":
            return float(_INT16_LE.unpack_from(data)[0])
        case _:
            return data.decode(codec, errors="replace").strip(" \x00")
