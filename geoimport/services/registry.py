"""Format detection and import dispatch.

The FormatRegistry holds format handlers in priority order. Detection asks
each handler's probe in turn and picks the first that accepts a resource.
Importing then decodes the canonical resource the probe returned and
delivers the result, or an error, to a ResultSink.

Probing never aborts detection: a probe that declines returns a Failure,
and a probe that raises is treated as if it had declined. Decode failures
are reported to the sink once and turned into a Failed outcome;
cancellation is not an error and is never reported to the sink.

Example:
    Import a file with the configured handlers:
        >>> from geoimport.core.config import get_settings
        >>> from geoimport.services import registry, sinks
        >>> from geoimport.utils import resources
        >>> formats = registry.FormatRegistry.from_settings(get_settings())
        >>> sink = sinks.CollectingSink()
        >>> outcome = formats.import_resource(
        ...     resources.as_resource("/data/roads.dbf"), sink
        ... )
        >>> outcome.handler
        'shapefile'

    Run an import in the background:
        >>> from concurrent import futures
        >>> with futures.ThreadPoolExecutor() as executor:
        ...     future = formats.submit(
        ...         resources.as_resource("/data/dem.asc"), sink, None, executor
        ...     )
        ...     result = future.result()
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

from loguru import logger
from returns.result import Failure, Success

from geoimport.core import config, errors
from geoimport.model import geometry, outcome
from geoimport.services import handlers as format_handlers
from geoimport.services import progress as progress_model
from geoimport.utils import resources

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterable, Sequence
    from concurrent import futures

    from geoimport.services import sinks

type ResourceLike = resources.Resource | str | pathlib.Path


@dataclasses.dataclass(frozen=True)
class Detection:
    """A handler that accepted a resource, and what it will decode.

    Attributes:
        handler: The accepting handler.
        resource: The canonical resource returned by the probe, e.g. the
            .shp file of a shapefile set probed through its .dbf file.
    """

    handler: format_handlers.FormatHandler
    resource: resources.Resource


class FormatRegistry:
    """Ordered, read-only collection of format handlers."""

    def __init__(
        self,
        handlers: Sequence[format_handlers.FormatHandler],
        factory: geometry.GeometryFactory = geometry.DEFAULT_FACTORY,
    ) -> None:
        self._handlers = tuple(handlers)
        self.factory = factory

    @classmethod
    def from_settings(
        cls,
        settings: config.Settings | None = None,
        factory: geometry.GeometryFactory = geometry.DEFAULT_FACTORY,
    ) -> FormatRegistry:
        """Build a registry with the handlers named in ``handler_order``.

        Raises:
            HandlerConfigError: If a configured name is not a known handler.
        """
        settings = settings if settings is not None else config.get_settings()
        built = format_handlers.build_handlers(settings.handler_order, settings)
        logger.debug(
            f"Format handlers in priority order: "
            f"{', '.join(handler.name for handler in built)}"
        )
        return cls(built, factory)

    @property
    def handlers(self) -> tuple[format_handlers.FormatHandler, ...]:
        return self._handlers

    def probe(
        self,
        handler: format_handlers.FormatHandler,
        resource: resources.Resource,
    ) -> format_handlers.ProbeResult:
        """Run one handler's probe, converting exceptions to a Failure."""
        try:
            result = handler.probe(resource)
        except Exception as e:
            result = Failure(errors.ProbeError(f"{handler.name} probe raised", e))
        if isinstance(result, Failure):
            logger.debug(
                f"{handler.name} declined {resource.id}: {result.failure()}"
            )
        return result

    def detect(self, resource: ResourceLike) -> Detection | None:
        """First handler, in priority order, whose probe accepts ``resource``."""
        resource = resources.as_resource(resource)
        for handler in self._handlers:
            result = self.probe(handler, resource)
            if isinstance(result, Success):
                return Detection(handler, result.unwrap())
        return None

    def detect_many(self, items: Iterable[ResourceLike]) -> dict[str, Detection]:
        """Detect a batch of resources, one entry per dataset.

        Several members of one multi-file dataset resolve to the same
        canonical resource and yield a single entry. For each resource
        the first accepting handler wins.

        Returns:
            Detections keyed by canonical resource id, in input order.
        """
        detected: dict[str, Detection] = {}
        for item in items:
            detection = self.detect(item)
            if detection is not None:
                detected.setdefault(detection.resource.id, detection)
        return detected

    def import_resource(
        self,
        resource: ResourceLike,
        sink: sinks.ResultSink,
        progress: progress_model.ProgressSink | None = None,
    ) -> outcome.ImportOutcome:
        """Detect and decode one resource, delivering the result to ``sink``.

        Returns:
            NoMatch if no handler accepts the resource, otherwise the
            outcome of decoding it.
        """
        resource = resources.as_resource(resource)
        detection = self.detect(resource)
        if detection is None:
            logger.info(f"No format handler accepts {resource.id}")
            return outcome.NoMatch(resource.id)
        return self.decode(detection, sink, progress)

    def import_all(
        self,
        items: Iterable[ResourceLike],
        sink: sinks.ResultSink,
        progress: progress_model.ProgressSink | None = None,
    ) -> dict[str, outcome.ImportOutcome]:
        """Import every dataset referenced by ``items``.

        A failing dataset does not stop the batch; its error reaches the
        sink and the remaining datasets are still imported.

        Returns:
            Outcomes keyed by canonical resource id.
        """
        return {
            resource_id: self.decode(detection, sink, progress)
            for resource_id, detection in self.detect_many(items).items()
        }

    def decode(
        self,
        detection: Detection,
        sink: sinks.ResultSink,
        progress: progress_model.ProgressSink | None = None,
    ) -> outcome.ImportOutcome:
        """Decode a detected resource and deliver the result."""
        handler, target = detection.handler, detection.resource
        tracker = progress_model.ProgressTracker(progress)
        logger.info(f"Decoding {target.id} with {handler.name}")
        tracker.start()
        try:
            decoded = handler.decode(target, tracker, self.factory)
        except errors.ImportCancelled:
            logger.warning(f"Import of {target.id} was cancelled")
            return outcome.Cancelled(handler.name)
        except errors.GeoImportError as e:
            logger.error(f"{handler.name} failed to decode {target.id}: {e}")
            return _fail(sink, e.kind, str(e), target, handler)
        except Exception as e:
            logger.exception(f"{handler.name} raised while decoding {target.id}")
            message = str(e) or type(e).__name__
            return _fail(sink, errors.ErrorKind.IO_FAILURE, message, target, handler)
        finally:
            tracker.finish()

        _deliver(decoded, sink)
        return decoded

    def submit(
        self,
        resource: ResourceLike,
        sink: sinks.ResultSink,
        progress: progress_model.ProgressSink | None,
        executor: futures.Executor,
    ) -> futures.Future[outcome.ImportOutcome]:
        """Run ``import_resource`` on ``executor``."""
        return executor.submit(self.import_resource, resource, sink, progress)


def _fail(
    sink: sinks.ResultSink,
    kind: errors.ErrorKind,
    message: str,
    target: resources.Resource,
    handler: format_handlers.FormatHandler,
) -> outcome.Failed:
    sink.on_error(kind, message, target.id)
    return outcome.Failed(kind, message, handler.name)


def _deliver(decoded: outcome.Decoded, sink: sinks.ResultSink) -> None:
    payload = decoded.payload
    if isinstance(payload, geometry.GeometryCollection):
        logger.info(
            f"Imported {payload.child_count} geometries from {payload.name}"
        )
        sink.on_geometry(payload)
    else:
        logger.info(f"Imported raster {payload.name}")
        sink.on_raster(payload)
    if decoded.table_link is not None:
        sink.on_table_link(decoded.table_link)
