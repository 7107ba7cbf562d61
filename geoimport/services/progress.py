"""Progress reporting and cooperative cancellation.

Long decodes report a completion percentage to a ProgressSink. Returning
False from ``report`` asks the decoder to stop; the import then ends as
cancelled, which is neither a success nor a failure.

Example:
    Cancel an import after half of the work:
        >>> from geoimport.services import progress
        >>> sink = progress.CallbackProgress(lambda percent: percent < 50)
        >>> tracker = progress.ProgressTracker(sink)
        >>> tracker.report(10)
        True
        >>> tracker.report(60)
        False
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from geoimport.core import errors

if TYPE_CHECKING:
    from collections.abc import Callable


class ProgressSink(Protocol):
    """Receives progress of one decode call."""

    def start(self) -> None: ...

    def report(self, percent: int) -> bool: ...

    def finish(self) -> None: ...


class NullProgress:
    """Progress sink that ignores reports and never cancels."""

    def start(self) -> None:
        pass

    def report(self, percent: int) -> bool:
        return True

    def finish(self) -> None:
        pass


class CallbackProgress:
    """Forward reports to a callable deciding whether to continue."""

    def __init__(self, callback: Callable[[int], bool]) -> None:
        self._callback = callback
        self.started = False
        self.finished = False

    def start(self) -> None:
        self.started = True

    def report(self, percent: int) -> bool:
        return bool(self._callback(percent))

    def finish(self) -> None:
        self.finished = True


class ProgressTracker:
    """Guards a ProgressSink for the duration of one decode call.

    Reported values are clamped to 0..100 and never decrease. Once the
    sink asks to stop, the tracker stays cancelled and stops forwarding.
    """

    def __init__(self, sink: ProgressSink | None = None) -> None:
        self._sink: ProgressSink = sink if sink is not None else NullProgress()
        self._percent = 0
        self._cancelled = False

    @property
    def percent(self) -> int:
        return self._percent

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> None:
        self._sink.start()

    def finish(self) -> None:
        self._sink.finish()

    def report(self, percent: int) -> bool:
        """Forward a percentage; returns False once cancellation is requested."""
        if self._cancelled:
            return False
        self._percent = max(self._percent, min(100, max(0, int(percent))))
        if not self._sink.report(self._percent):
            self._cancelled = True
        return not self._cancelled

    def checkpoint(self, percent: int) -> None:
        """Report and raise if the sink asked to stop.

        Raises:
            ImportCancelled: If cancellation has been requested.
        """
        if not self.report(percent):
            raise errors.ImportCancelled()
