"""Streaming decoder for ESRI ASCII Grid files.

After the header, the body of a grid is read by two roles running on a
small thread pool and connected by a bounded queue:

- the producer reads text lines and puts them on the queue, followed by
  an end-of-file sentinel;
- the consumer takes lines off the queue, parses their values and stores
  them in row-major order, reporting progress once per line.

The bounded queue keeps the producer at most ``queue_capacity`` lines
ahead of the consumer. Both roles watch a shared stop event, so a failure
or a cancellation on either side winds the other down. The first failure
is kept in a set-once cell and raised only after both roles have finished.

Example:
    Read a grid from disk:
        >>> from geoimport.services import ascii_grid, progress
        >>> with open("dem.asc", encoding="latin-1") as stream:
        ...     grid = ascii_grid.decode_ascii_grid(
        ...         stream, name="dem", tracker=progress.ProgressTracker()
        ...     )
        >>> grid.cols, grid.rows
"""

from __future__ import annotations

import math
import queue
import threading
from concurrent import futures
from typing import TYPE_CHECKING

import numpy as np
from loguru import logger

from geoimport.core import errors
from geoimport.model import raster
from geoimport.services import grid_header

if TYPE_CHECKING:
    from typing import TextIO

    from geoimport.services import progress

_EOF = object()


class FailureCell:
    """Holds the first exception recorded by any pipeline role."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._error: BaseException | None = None

    def set(self, error: BaseException) -> bool:
        """Record ``error`` unless a failure is already recorded.

        Returns:
            True if ``error`` was recorded.
        """
        with self._lock:
            if self._error is not None:
                return False
            self._error = error
            return True

    @property
    def error(self) -> BaseException | None:
        with self._lock:
            return self._error


def decode_ascii_grid(
    stream: TextIO,
    *,
    name: str | None,
    tracker: progress.ProgressTracker,
    queue_capacity: int = 64,
    poll_interval: float = 0.05,
) -> raster.Grid:
    """Decode an ESRI ASCII Grid from a text stream.

    Args:
        stream: Text stream positioned at the start of the header.
        name: Name given to the grid.
        tracker: Progress of the decode; checked once per body line.
        queue_capacity: Lines buffered between producer and consumer.
        poll_interval: Seconds a blocked role waits between checks of the
            stop event.

    Returns:
        The decoded grid; no-data cells hold NaN.

    Raises:
        CorruptDataError: If the header is invalid or the body does not
            hold exactly ``cols * rows`` numeric values.
        ImportCancelled: If the tracker reports cancellation.
        OSError: If reading the stream fails.
    """
    header, first_line = grid_header.parse_grid_header(stream)
    if not header.is_valid():
        raise errors.CorruptDataError(f"Invalid ESRI ASCII grid header: {header}")

    grid = raster.Grid(
        cols=header.cols,
        rows=header.rows,
        cell_size=header.cell_size,
        west=header.west,
        north=header.north,
        name=name,
    )
    pipeline = _GridPipeline(
        stream,
        grid,
        nodata=header.nodata,
        tracker=tracker,
        queue_capacity=queue_capacity,
        poll_interval=poll_interval,
    )
    pipeline.run(first_line)
    logger.debug(f"Decoded {grid.cols}x{grid.rows} grid {name}")
    return grid


class _GridPipeline:
    """One producer/consumer run filling a preallocated grid."""

    def __init__(
        self,
        stream: TextIO,
        grid: raster.Grid,
        *,
        nodata: float,
        tracker: progress.ProgressTracker,
        queue_capacity: int,
        poll_interval: float,
    ) -> None:
        self._stream = stream
        self._grid = grid
        self._nodata = None if math.isnan(nodata) else np.float32(nodata)
        self._tracker = tracker
        self._queue: queue.Queue[object] = queue.Queue(maxsize=queue_capacity)
        self._poll_interval = poll_interval
        self._stop = threading.Event()
        self._failure = FailureCell()
        self._cancelled = False

    def run(self, first_line: str | None) -> None:
        """Fill the grid, raising the first failure after both roles end."""
        if first_line is not None:
            self._queue.put(first_line)
        with futures.ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="ascii-grid"
        ) as executor:
            roles = [
                executor.submit(self._produce),
                executor.submit(self._consume),
            ]
        for role in roles:
            role.result()

        error = self._failure.error
        if error is not None:
            raise error
        if self._cancelled:
            raise errors.ImportCancelled()

    def _fail(self, error: BaseException) -> None:
        self._failure.set(error)
        self._stop.set()

    def _put(self, item: object) -> bool:
        while not self._stop.is_set():
            try:
                self._queue.put(item, timeout=self._poll_interval)
                return True
            except queue.Full:
                continue
        return False

    def _take(self) -> object | None:
        while not self._stop.is_set():
            try:
                return self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                continue
        return None

    def _produce(self) -> None:
        try:
            for line in self._stream:
                if not self._put(line):
                    return
            self._put(_EOF)
        except Exception as e:
            self._fail(e)

    def _consume(self) -> None:
        try:
            self._consume_lines()
        except Exception as e:
            self._fail(e)

    def _consume_lines(self) -> None:
        cols, rows = self._grid.cols, self._grid.rows
        total = cols * rows
        cells = self._grid.data.reshape(-1)
        counter = 0
        while (line := self._take()) is not None:
            if line is _EOF:
                if counter != total:
                    raise errors.CorruptDataError(
                        f"Incomplete grid: expected {total} values, "
                        f"found {counter}"
                    )
                return

            values = self._parse(line)
            if counter + values.size > total:
                raise errors.CorruptDataError(
                    f"Too many values in grid: expected {total}"
                )
            cells[counter : counter + values.size] = values
            counter += values.size

            row = (counter - 1) // cols if counter else 0
            if not self._tracker.report((row + 1) * 100 // rows):
                self._cancelled = True
                self._stop.set()
                return

    def _parse(self, line: str) -> np.ndarray:
        tokens = line.split()
        try:
            values = np.array(tokens, dtype=np.float32)
        except ValueError:
            raise errors.CorruptDataError(
                f"Non-numeric value in grid line: {line.strip()[:80]!r}"
            ) from None
        if self._nodata is not None:
            values[values == self._nodata] = np.nan
        return values
