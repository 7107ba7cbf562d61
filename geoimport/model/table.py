"""Attribute tables and their association with decoded geometry."""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Any, Protocol

from geoimport.core import errors

if TYPE_CHECKING:
    from geoimport.model import geometry


class AttributeTable(Protocol):
    """Row/column store linked to geometry; only row_count is required."""

    name: str | None

    def row_count(self) -> int: ...

    def column(self, name: str) -> list[Any]: ...


@dataclasses.dataclass
class Table:
    """Simple in-memory attribute table.

    Attributes:
        name: Display name, usually the stem of the source file.
        columns: Column names in file order.
        rows: Row values, one list per record.
        encoding: Python codec the text fields were decoded with.
    """

    name: str | None = None
    columns: list[str] = dataclasses.field(default_factory=list)
    rows: list[list[Any]] = dataclasses.field(default_factory=list)
    encoding: str | None = None

    def row_count(self) -> int:
        return len(self.rows)

    def column(self, name: str) -> list[Any]:
        index = self.columns.index(name)
        return [row[index] for row in self.rows]

    def add_row(self, values: list[Any]) -> None:
        if len(values) != len(self.columns):
            raise ValueError(
                f"Row has {len(values)} values, table has "
                f"{len(self.columns)} columns"
            )
        self.rows.append(values)


@dataclasses.dataclass(frozen=True)
class TableLink:
    """Row ``i`` of ``table`` describes child ``i`` of ``collection``.

    Use :func:`link_table` to construct a validated link.
    """

    table: AttributeTable
    collection: geometry.GeometryCollection

    @property
    def linked_count(self) -> int:
        return min(self.table.row_count(), self.collection.child_count)

    def row_for(self, child_index: int) -> int | None:
        """Row index linked to a child, None if the child is unlinked."""
        if 0 <= child_index < self.linked_count:
            return child_index
        return None


def link_table(
    table: AttributeTable,
    collection: geometry.GeometryCollection,
) -> TableLink:
    """Link a table to a collection in sequential order.

    Raises:
        CorruptDataError: If the table has fewer rows than the collection
            has children.
    """
    rows = table.row_count()
    if rows < collection.child_count:
        raise errors.CorruptDataError(
            f"Attribute table has {rows} rows for "
            f"{collection.child_count} geometries"
        )
    return TableLink(table=table, collection=collection)
