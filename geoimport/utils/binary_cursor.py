"""Mixed-endian binary reader over a byte stream.

Shapefiles mix big-endian header fields with little-endian geometry, so
the cursor exposes explicit big/little-endian readers instead of a byte
order flag. It also tracks its own position, which lets decoders follow
record offsets from an index file on streams that cannot report one
(e.g. gzip streams).

Example:
    Read the shapefile magic number:
        >>> import io
        >>> cursor = BinaryCursor(io.BytesIO(b"\\x00\\x00\\x27\\x0a"))
        >>> cursor.read_int32_be()
        9994
"""

from __future__ import annotations

import struct
from typing import TYPE_CHECKING

import numpy as np

from geoimport.core import errors

if TYPE_CHECKING:
    from typing import BinaryIO

_INT32_BE = struct.Struct(">i")
_INT32_LE = struct.Struct("<i")
_INT16_LE = struct.Struct("<h")
_UINT16_LE = struct.Struct("<H")
_UINT32_LE = struct.Struct("<I")
_FLOAT64_LE = struct.Struct("<d")
_FLOAT64_BE = struct.Struct(">d")

_SKIP_CHUNK = 64 * 1024


class BinaryCursor:
    """Sequential reader that knows its byte offset in the stream."""

    def __init__(self, stream: BinaryIO, position: int = 0) -> None:
        self._stream = stream
        self._position = position
        self._stream_length: int | None = None

    @property
    def position(self) -> int:
        return self._position

    def read_exact(self, size: int) -> bytes:
        """Read exactly ``size`` bytes.

        Raises:
            CorruptDataError: If the stream ends first.
        """
        data = self._read(size)
        if len(data) != size:
            raise errors.CorruptDataError(
                f"Unexpected end of data at byte {self._position}: "
                f"needed {size} bytes, got {len(data)}"
            )
        return data

    def read_or_eof(self, size: int) -> bytes | None:
        """Read ``size`` bytes, or None if the stream is already exhausted.

        A stream that ends part way through the requested bytes is
        truncated, not cleanly finished.

        Raises:
            CorruptDataError: If fewer than ``size`` but more than zero
                bytes are available.
        """
        data = self._read(size)
        if not data:
            return None
        if len(data) != size:
            raise errors.CorruptDataError(
                f"Truncated data at byte {self._position}: "
                f"needed {size} bytes, got {len(data)}"
            )
        return data

    def read_int32_be(self) -> int:
        return _INT32_BE.unpack(self.read_exact(4))[0]

    def read_int32_le(self) -> int:
        return _INT32_LE.unpack(self.read_exact(4))[0]

    def read_uint32_le(self) -> int:
        return _UINT32_LE.unpack(self.read_exact(4))[0]

    def read_int16_le(self) -> int:
        return _INT16_LE.unpack(self.read_exact(2))[0]

    def read_uint16_le(self) -> int:
        return _UINT16_LE.unpack(self.read_exact(2))[0]

    def read_uint8(self) -> int:
        return self.read_exact(1)[0]

    def read_float64_le(self) -> float:
        return _FLOAT64_LE.unpack(self.read_exact(8))[0]

    def read_float64_be(self) -> float:
        return _FLOAT64_BE.unpack(self.read_exact(8))[0]

    def read_int32_array_le(self, count: int) -> np.ndarray:
        return np.frombuffer(self.read_exact(4 * count), dtype="<i4")

    def read_float64_array_le(self, count: int) -> np.ndarray:
        return np.frombuffer(self.read_exact(8 * count), dtype="<f8")

    def skip(self, size: int) -> None:
        """Advance ``size`` bytes.

        Seekable streams accept seeks past their end, so the target is
        checked against the stream length.

        Raises:
            ValueError: If ``size`` is negative.
            CorruptDataError: If the stream ends first.
        """
        if size < 0:
            raise ValueError(f"Cannot skip a negative number of bytes: {size}")
        if size == 0:
            return
        if self._stream.seekable():
            current = self._stream.tell()
            if current + size > self._length():
                raise errors.CorruptDataError(
                    f"Unexpected end of data while skipping to byte "
                    f"{self._position + size}"
                )
            self._stream.seek(size, 1)
            self._position += size
            return
        remaining = size
        while remaining > 0:
            chunk = self._read(min(remaining, _SKIP_CHUNK))
            if not chunk:
                raise errors.CorruptDataError(
                    f"Unexpected end of data while skipping to byte "
                    f"{self._position + remaining}"
                )
            remaining -= len(chunk)

    def skip_to(self, offset: int) -> None:
        """Move to an absolute offset, seeking backwards when possible.

        Raises:
            CorruptDataError: If the offset lies behind the cursor and the
                stream cannot seek.
        """
        if offset >= self._position:
            self.skip(offset - self._position)
            return
        if not self._stream.seekable():
            raise errors.CorruptDataError(
                f"Cannot move back to byte {offset} from byte {self._position}"
            )
        self._stream.seek(offset - self._position, 1)
        self._position = offset

    def _length(self) -> int:
        if self._stream_length is None:
            current = self._stream.tell()
            self._stream_length = self._stream.seek(0, 2)
            self._stream.seek(current)
        return self._stream_length

    def _read(self, size: int) -> bytes:
        data = self._stream.read(size)
        self._position += len(data)
        return data
