"""Header of ESRI ASCII Grid files.

The header is a sequence of ``key value`` lines. Keys are matched
case-insensitively and tokens may be separated by whitespace, commas or
semicolons:

    ncols         4
    nrows         3
    xllcorner     600000.0
    yllcorner     200000.0
    cellsize      25
    NODATA_value  -9999

Parsing stops at the first line whose first token is not a header key.
That line already belongs to the grid body and is returned to the caller.
"""

from __future__ import annotations

import dataclasses
import math
import re
from typing import TYPE_CHECKING

from geoimport.core import errors

if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import TextIO

_SEPARATORS = re.compile(r"[\s,;]+")


@dataclasses.dataclass
class GridHeader:
    """Values read from a grid header; unset values are 0 or NaN."""

    cols: int = 0
    rows: int = 0
    west: float = math.nan
    south: float = math.nan
    cell_size: float = math.nan
    nodata: float = math.nan

    def is_valid(self) -> bool:
        """True if the header fully describes a grid; nodata is optional."""
        return (
            self.cols > 0
            and self.rows > 0
            and self.cell_size > 0
            and not math.isnan(self.west)
            and not math.isnan(self.south)
        )

    @property
    def north(self) -> float:
        """Y coordinate of the first (northernmost) row."""
        return self.south + (self.rows - 1) * self.cell_size


def parse_grid_header(lines: Iterable[str]) -> tuple[GridHeader, str | None]:
    """Read header lines until the first line that is not a header key.

    Args:
        lines: Text lines; consumed up to and including the first data line.

    Returns:
        The header and the first data line, or None if the input ended
        inside the header.

    Raises:
        CorruptDataError: If a header key has a missing or malformed value.
    """
    header = GridHeader()
    for line in lines:
        tokens = _SEPARATORS.split(line.strip())
        key = tokens[0].lower()
        if not key:
            continue
        if key == "ncols":
            header.cols = _value(tokens, int)
        elif key == "nrows":
            header.rows = _value(tokens, int)
        elif key in ("xllcorner", "xllcenter"):
            header.west = _value(tokens, float)
        elif key in ("yllcorner", "yllcenter"):
            header.south = _value(tokens, float)
        elif key == "cellsize":
            header.cell_size = _value(tokens, float)
        elif key.startswith("nodata"):
            header.nodata = _value(tokens, float)
        else:
            return header, line
    return header, None


def read_probe_lines(stream: TextIO, line_limit: int) -> Iterable[str]:
    """Yield lines of at most ``line_limit`` characters each.

    Binary input read as text may contain no line breaks at all; capping
    the line length keeps probing cheap in that case.
    """
    while line := stream.readline(line_limit):
        yield line


def _value[T: (int, float)](tokens: list[str], convert: type[T]) -> T:
    if len(tokens) < 2:
        raise errors.CorruptDataError(
            f"Grid header key {tokens[0]!r} has no value"
        )
    try:
        return convert(tokens[1])
    except ValueError:
        raise errors.CorruptDataError(
            f"Invalid value {tokens[1]!r} for grid header key {tokens[0]!r}"
        ) from None
