"""
Conversion between stored cell rows and in-memory cells.

Ship tables hold one row per occupied cell ({match_id, ship_id, x, y, hit, side});
board tables hold the full grid ({match_id, x, y, side, marker}).
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from backend.database.models import BoardMarker, Side
from backend.utils.constants import BOARD_SIZE
from backend.utils.exceptions import MalformedRowError


@dataclass(frozen=True)
class Cell:
    """A single board coordinate with its hit state."""

    x: int
    y: int
    hit: bool = False
    side: Side = Side.SELF
    ship_id: Optional[int] = None
    marker: Optional[BoardMarker] = None

    def __post_init__(self):
        if self.ship_id is not None and self.marker is not None:
            raise ValueError("A cell belongs to a ship or a board, not both")
        if self.ship_id is None and self.marker is None:
            # Board cells always carry a marker; derive it from the hit flag
            object.__setattr__(self, "marker", BoardMarker.HIT if self.hit else BoardMarker.MISS)
        if self.marker is not None and self.hit != (self.marker == BoardMarker.HIT):
            raise ValueError(f"hit={self.hit} contradicts marker {self.marker.value}")

    @property
    def is_ship_cell(self) -> bool:
        return self.ship_id is not None

    def to_dict(self) -> Dict[str, Any]:
        """JSON shape used inside a reconstructed ship."""
        return {"x": self.x, "y": self.y, "hit": self.hit}


def _field(row: Any, name: str) -> Any:
    if isinstance(row, Mapping):
        return row.get(name)
    return getattr(row, name, None)


def _coordinate(row: Any, name: str) -> int:
    value = _field(row, name)
    if value is None:
        raise MalformedRowError(f"Row is missing '{name}'")
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise MalformedRowError(f"'{name}' must be an integer, got {value!r}")
    try:
        coordinate = int(value)
    except (TypeError, ValueError):
        raise MalformedRowError(f"'{name}' must be an integer, got {value!r}")
    if not 0 <= coordinate < BOARD_SIZE:
        raise MalformedRowError(f"'{name}'={coordinate} is outside the {BOARD_SIZE}x{BOARD_SIZE} board")
    return coordinate


def _hit(row: Any) -> bool:
    value = _field(row, "hit")
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise MalformedRowError(f"'hit' must be a boolean, got {value!r}")


def _side(row: Any, default: Optional[Side]) -> Side:
    value = _field(row, "side")
    if value is None:
        if default is None:
            raise MalformedRowError("Row is missing 'side'")
        return default
    if isinstance(value, Side):
        return value
    try:
        return Side(str(value).lower())
    except ValueError:
        raise MalformedRowError(f"Unknown side {value!r}")


def encode(cell: Cell) -> Dict[str, Any]:
    """
    Map a cell to the row shape of the ship table or the board table.

    Cells carrying a ship_id become ship rows; all others become board rows.
    """
    if cell.is_ship_cell:
        return {
            "ship_id": cell.ship_id,
            "x": cell.x,
            "y": cell.y,
            "hit": cell.hit,
            "side": cell.side.value,
        }

    return {
        "x": cell.x,
        "y": cell.y,
        "side": cell.side.value,
        "marker": cell.marker.value,
    }


def decode(row: Any, side: Optional[Side] = None) -> Cell:
    """
    Map a stored row (mapping or ORM object) back to a cell.

    Args:
        row: Ship or board row
        side: Side to assume when the row does not carry one

    Raises:
        MalformedRowError: If x/y are missing, not integers, or off the board,
            or hit is not a boolean
    """
    x = _coordinate(row, "x")
    y = _coordinate(row, "y")
    row_side = _side(row, side)

    ship_id = _field(row, "ship_id")
    if ship_id is not None:
        return Cell(x=x, y=y, hit=_hit(row), side=row_side, ship_id=ship_id)

    raw_marker = _field(row, "marker")
    if raw_marker is None:
        raise MalformedRowError("Row has neither 'ship_id' nor 'marker'")
    try:
        marker = raw_marker if isinstance(raw_marker, BoardMarker) else BoardMarker(str(raw_marker).lower())
    except ValueError:
        raise MalformedRowError(f"Unknown board marker {raw_marker!r}")
    return Cell(x=x, y=y, hit=marker == BoardMarker.HIT, side=row_side, marker=marker)
