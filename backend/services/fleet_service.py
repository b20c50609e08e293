"""
Fleet reconstruction: groups stored ship cell rows into structured ships.
"""

import enum
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from backend.database.models import Side
from backend.utils.cell_codec import Cell, decode
from backend.utils.exceptions import InvalidShipLayoutError, MalformedRowError


class Orientation(str, enum.Enum):
    """Direction a ship lies on the board."""

    HORIZONTAL = "horizontal"
    VERTICAL = "vertical"
    SINGLE = "single"


@dataclass(frozen=True)
class Ship:
    """A reconstructed ship with its cells in canonical (y, x) order."""

    ship_id: int
    side: Side
    cells: tuple
    orientation: Orientation

    @property
    def length(self) -> int:
        return len(self.cells)

    @property
    def sunk(self) -> bool:
        return all(cell.hit for cell in self.cells)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ship_id": self.ship_id,
            "side": self.side.value,
            "cells": [cell.to_dict() for cell in self.cells],
            "length": self.length,
            "orientation": self.orientation.value,
            "sunk": self.sunk,
        }


def _orientation(ship_id, cells: List[Cell], match_id: Optional[int]) -> Orientation:
    """Classify a (y, x)-sorted group of cells, rejecting anything but a straight contiguous line."""
    if len(cells) == 1:
        return Orientation.SINGLE

    if all(cell.y == cells[0].y for cell in cells):
        orientation, steps = Orientation.HORIZONTAL, [cell.x for cell in cells]
    elif all(cell.x == cells[0].x for cell in cells):
        orientation, steps = Orientation.VERTICAL, [cell.y for cell in cells]
    else:
        raise InvalidShipLayoutError(
            f"Ship {ship_id} cells are not on a single row or column", ship_id=ship_id, match_id=match_id
        )

    for previous, current in zip(steps, steps[1:]):
        if current == previous:
            raise InvalidShipLayoutError(
                f"Ship {ship_id} has duplicate cells", ship_id=ship_id, match_id=match_id
            )
        if current != previous + 1:
            raise InvalidShipLayoutError(
                f"Ship {ship_id} cells are not contiguous", ship_id=ship_id, match_id=match_id
            )
    return orientation


def reconstruct_fleet(rows: Iterable[Any], side: Side, match_id: Optional[int] = None) -> List[Ship]:
    """
    Rebuild a side's fleet from its stored ship cell rows.

    Ships come out in the order their ship_id first appears in ``rows``;
    cells within a ship are sorted by (y, x) so storage order does not matter.

    Args:
        rows: Ship cell rows (mappings or ORM objects) for one side of one match
        side: Side the rows belong to
        match_id: Only used to give errors context

    Returns:
        Ordered list of Ship

    Raises:
        MalformedRowError: If a row cannot be decoded
        InvalidShipLayoutError: If a ship is not a straight contiguous line,
            or a row belongs to the other side
    """
    groups: Dict[Any, List[Cell]] = {}
    for row in rows:
        try:
            cell = decode(row, side=side)
        except MalformedRowError as e:
            e.match_id = match_id
            raise
        if cell.ship_id is None:
            raise MalformedRowError("Ship row is missing 'ship_id'", match_id=match_id)
        if cell.side != side:
            raise InvalidShipLayoutError(
                f"Ship {cell.ship_id} has a {cell.side.value} cell in the {side.value} fleet",
                ship_id=cell.ship_id,
                match_id=match_id,
            )
        groups.setdefault(cell.ship_id, []).append(cell)

    fleet = []
    for ship_id, cells in groups.items():
        cells.sort(key=lambda cell: (cell.y, cell.x))
        fleet.append(
            Ship(
                ship_id=ship_id,
                side=side,
                cells=tuple(cells),
                orientation=_orientation(ship_id, cells, match_id),
            )
        )
    return fleet
