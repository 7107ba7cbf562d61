"""Addressable byte sources and sibling-file lookup.

Multi-file formats (shapefile sets, images with world files) need to find
files that share a base name with the resource they were handed. The
helpers in this module do that purely through the Resource protocol, so a
non-filesystem backend only needs to implement ``sibling`` and
``exists``.

Example:
    Find the index file of a shapefile:
        >>> import pathlib
        >>> from geoimport.utils import resources
        >>> shp = resources.FileResource(pathlib.Path("roads.shp"))
        >>> resources.find_sibling(shp, ["shx", "SHX"])
"""

from __future__ import annotations

import dataclasses
import pathlib
from typing import TYPE_CHECKING, BinaryIO, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterable


class Resource(Protocol):
    """An immutable, externally owned byte source."""

    @property
    def id(self) -> str: ...

    @property
    def name(self) -> str: ...

    def open(self) -> BinaryIO: ...

    def size(self) -> int | None: ...

    def exists(self) -> bool: ...

    def sibling(self, name: str) -> Resource: ...


@dataclasses.dataclass(frozen=True)
class FileResource:
    """A file on the local filesystem."""

    path: pathlib.Path

    @property
    def id(self) -> str:
        return str(self.path)

    @property
    def name(self) -> str:
        return self.path.name

    def open(self) -> BinaryIO:
        return self.path.open("rb")

    def size(self) -> int | None:
        try:
            return self.path.stat().st_size
        except OSError:
            return None

    def exists(self) -> bool:
        return self.path.is_file()

    def sibling(self, name: str) -> FileResource:
        return FileResource(self.path.with_name(name))

    def __str__(self) -> str:
        return str(self.path)


def as_resource(source: Resource | pathlib.Path | str) -> Resource:
    """Wrap a path in a FileResource; pass resources through."""
    if isinstance(source, (str, pathlib.Path)):
        return FileResource(pathlib.Path(source))
    return source


def extension(resource: Resource) -> str:
    """Characters after the last dot of the name, "" if there is none."""
    stem, dot, ext = resource.name.rpartition(".")
    return ext if dot and stem else ""


def stem(resource: Resource) -> str:
    """Name without its extension."""
    name = resource.name
    if extension(resource):
        return name.rpartition(".")[0]
    return name


def with_extension(resource: Resource, ext: str) -> Resource:
    """Sibling with the same stem and a different extension."""
    return resource.sibling(f"{stem(resource)}.{ext}")


def find_sibling(resource: Resource, extensions: Iterable[str]) -> Resource | None:
    """First existing sibling among the given extensions, in order."""
    for ext in extensions:
        candidate = with_extension(resource, ext)
        if candidate.exists():
            return candidate
    return None
