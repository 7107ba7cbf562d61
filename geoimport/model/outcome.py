"""Result of importing one resource."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from geoimport.core import errors
    from geoimport.model import geometry, raster, table


@dataclasses.dataclass(frozen=True)
class Decoded:
    """The resource was decoded and delivered to the sink."""

    payload: geometry.GeometryCollection | raster.Raster
    table_link: table.TableLink | None = None
    handler: str | None = None


@dataclasses.dataclass(frozen=True)
class NoMatch:
    """No registered handler accepted the resource."""

    resource_id: str


@dataclasses.dataclass(frozen=True)
class Failed:
    """Decoding failed; the sink received ``on_error``."""

    kind: errors.ErrorKind
    message: str
    handler: str | None = None


@dataclasses.dataclass(frozen=True)
class Cancelled:
    """The progress sink asked to stop; nothing was delivered."""

    handler: str | None = None


ImportOutcome = Decoded | NoMatch | Failed | Cancelled
