"""Error taxonomy of the import framework.

Decoders raise the exceptions defined here; the registry translates them
into import outcomes. A handler declining a resource is not an error at
all: probes return a ProbeError value instead of raising.

Example:
    Handle a decode failure:
        >>> from geoimport.core.errors import CorruptDataError, ErrorKind
        >>> try:
        ...     raise CorruptDataError("incomplete grid")
        ... except CorruptDataError as e:
        ...     assert e.kind is ErrorKind.CORRUPT_DATA
"""

from __future__ import annotations

import dataclasses
import enum


class ErrorKind(enum.StrEnum):
    """Category of a failed import, as reported to result sinks."""

    UNSUPPORTED_FEATURE = "unsupported_feature"
    CORRUPT_DATA = "corrupt_data"
    IO_FAILURE = "io_failure"


class GeoImportError(Exception):
    """Base class for decode failures that carry an ErrorKind."""

    kind: ErrorKind = ErrorKind.IO_FAILURE


class UnsupportedFeatureError(GeoImportError):
    """The data is valid but uses a feature the decoders do not model.

    Raised for MultiPatch shapefiles and for rotated or anisotropic world
    files.
    """

    kind = ErrorKind.UNSUPPORTED_FEATURE


class CorruptDataError(GeoImportError):
    """The data violates the structure of its format.

    Example:
        >>> raise CorruptDataError("File is not an ESRI Shape file")
    """

    kind = ErrorKind.CORRUPT_DATA


class ImportCancelled(Exception):  # noqa: N818
    """The progress sink asked the decoder to stop."""


class HandlerConfigError(ValueError):
    """The configured handler order names an unknown handler."""


@dataclasses.dataclass(frozen=True)
class ProbeError:
    """Why a handler declined a resource.

    Attributes:
        reason: Human readable explanation.
        cause: Exception raised while probing, if any.
    """

    reason: str
    cause: Exception | None = None

    def __str__(self) -> str:
        if self.cause is None:
            return self.reason
        return f"{self.reason}: {self.cause}"
