"""Vector geometry model: points, paths and nested collections.

Paths are stored as ordered drawing instructions (MoveTo, LineTo,
ClosePath), which keeps multi-part features such as polygons with holes
in one object. Collections preserve insertion order, so child ``i`` of a
decoded collection corresponds to row ``i`` of a linked attribute table.

Decoders never instantiate these classes directly; they go through a
GeometryFactory, which lets callers substitute their own types.
"""

from __future__ import annotations

import dataclasses
import math
from collections.abc import Callable, Iterator

BBox = tuple[float, float, float, float]


@dataclasses.dataclass(frozen=True)
class MoveTo:
    x: float
    y: float


@dataclasses.dataclass(frozen=True)
class LineTo:
    x: float
    y: float


@dataclasses.dataclass(frozen=True)
class ClosePath:
    pass


Instruction = MoveTo | LineTo | ClosePath


@dataclasses.dataclass
class Point:
    """A named or anonymous location."""

    x: float
    y: float
    name: str | None = None
    id: int | None = None

    def bounds(self) -> BBox:
        return (self.x, self.y, self.x, self.y)


@dataclasses.dataclass
class Path:
    """An ordered sequence of drawing instructions.

    A path is closed only by an explicit ClosePath; closing twice in a row
    has no further effect.
    """

    instructions: list[Instruction] = dataclasses.field(default_factory=list)
    name: str | None = None
    id: int | None = None

    def move_to(self, x: float, y: float) -> None:
        self.instructions.append(MoveTo(x, y))

    def line_to(self, x: float, y: float) -> None:
        self.instructions.append(LineTo(x, y))

    def close_path(self) -> None:
        if not self.instructions or isinstance(
            self.instructions[-1], ClosePath
        ):
            return
        self.instructions.append(ClosePath())

    @property
    def instruction_count(self) -> int:
        return len(self.instructions)

    def is_empty(self) -> bool:
        return not self.instructions

    def subpaths(self) -> list[list[Instruction]]:
        """Split the instructions at every MoveTo."""
        parts: list[list[Instruction]] = []
        for instruction in self.instructions:
            if isinstance(instruction, MoveTo) or not parts:
                parts.append([])
            parts[-1].append(instruction)
        return parts

    def bounds(self) -> BBox | None:
        xs = [i.x for i in self.instructions if not isinstance(i, ClosePath)]
        ys = [i.y for i in self.instructions if not isinstance(i, ClosePath)]
        if not xs:
            return None
        return (min(xs), min(ys), max(xs), max(ys))


Geometry = Point | Path


@dataclasses.dataclass
class GeometryCollection:
    """Ordered, named container of points, paths and nested collections.

    Attributes:
        name: Display name, usually the stem of the imported file.
        children: Child geometries in insertion order.
        id: Optional integer identifier.
        symbol: Opaque rendering hint, e.g. "filled" for polygon data.
    """

    name: str | None = None
    children: list[Geometry | GeometryCollection] = dataclasses.field(
        default_factory=list
    )
    id: int | None = None
    symbol: str | None = None

    def add(self, child: Geometry | GeometryCollection) -> bool:
        """Append a child; empty paths are rejected.

        Returns:
            True if the child was added.
        """
        if isinstance(child, Path) and child.is_empty():
            return False
        self.children.append(child)
        return True

    @property
    def child_count(self) -> int:
        return len(self.children)

    def __len__(self) -> int:
        return len(self.children)

    def __iter__(self) -> Iterator[Geometry | GeometryCollection]:
        return iter(self.children)

    def __getitem__(self, index: int) -> Geometry | GeometryCollection:
        return self.children[index]

    def bounds(self) -> BBox | None:
        """Union of the children's bounding boxes, None when empty."""
        minx = miny = math.inf
        maxx = maxy = -math.inf
        found = False
        for child in self.children:
            box = child.bounds()
            if box is None:
                continue
            found = True
            minx, miny = min(minx, box[0]), min(miny, box[1])
            maxx, maxy = max(maxx, box[2]), max(maxy, box[3])
        return (minx, miny, maxx, maxy) if found else None


@dataclasses.dataclass(frozen=True)
class GeometryFactory:
    """Constructors used by decoders to create geometry objects.

    Pass a customised factory to a decode call to receive your own
    point, path or collection types. The returned objects must offer the
    same methods as the defaults.

    Example:
        >>> factory = GeometryFactory(point=lambda x, y: Point(x, y, name="p"))
        >>> factory.point(1.0, 2.0).name
        'p'
    """

    point: Callable[[float, float], Point] = Point
    path: Callable[[], Path] = Path
    collection: Callable[[str | None], GeometryCollection] = (
        GeometryCollection
    )


DEFAULT_FACTORY = GeometryFactory()
