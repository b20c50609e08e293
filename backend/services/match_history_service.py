"""
Match history service: the read and save flows behind the game routes.

Fetches rows through data_service and rebuilds fleets with fleet_service.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.models import Side
from backend.services import data_service
from backend.services.fleet_service import reconstruct_fleet
from backend.utils.cell_codec import decode
from backend.utils.constants import SELF_SHIPS, RIVAL_SHIPS, SELF_BOARD, RIVAL_BOARD
from backend.utils.exceptions import (
    DataIntegrityError,
    InvalidShipLayoutError,
    MalformedRowError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


async def get_match_detail(session: AsyncSession, user_id: int, match_id: int) -> Dict:
    """
    Get both fleets and both boards of a match owned by the user.

    Returns:
        {"ships": [self_fleet, rival_fleet], "selfBoard": [...], "rivalBoard": [...]}

    Raises:
        NotFoundError: If the match is missing, owned by someone else, or has no ships
        DataIntegrityError: If stored ship rows cannot be reconstructed
    """
    match = await data_service.get_match_by_user_and_id(session, user_id, match_id)
    if not match:
        raise NotFoundError("Game not found")

    self_ships = await data_service.get_match_rows(session, match_id, SELF_SHIPS)
    rival_ships = await data_service.get_match_rows(session, match_id, RIVAL_SHIPS)
    self_board = await data_service.get_match_rows(session, match_id, SELF_BOARD)
    rival_board = await data_service.get_match_rows(session, match_id, RIVAL_BOARD)

    if not self_ships or not rival_ships:
        if self_ships or rival_ships:
            empty_side = "rival" if self_ships else "self"
            logger.error(f"Match {match_id} has no {empty_side} ship rows but the other side has ships")
        raise NotFoundError("Ship not found")

    try:
        self_fleet = reconstruct_fleet(self_ships, Side.SELF, match_id=match_id)
        rival_fleet = reconstruct_fleet(rival_ships, Side.RIVAL, match_id=match_id)
    except InvalidShipLayoutError as e:
        logger.error(f"Corrupt ship layout in match {match_id}, ship {e.ship_id}: {e}")
        raise
    except DataIntegrityError as e:
        logger.error(f"Malformed ship row in match {match_id}: {e}")
        raise

    if len(self_fleet) != len(rival_fleet):
        logger.warning(
            f"Match {match_id} fleet sizes differ: {len(self_fleet)} self ships, {len(rival_fleet)} rival ships"
        )

    return {
        "ships": [
            [ship.to_dict() for ship in self_fleet],
            [ship.to_dict() for ship in rival_fleet],
        ],
        "selfBoard": self_board,
        "rivalBoard": rival_board,
    }


async def get_match_history(session: AsyncSession, user_id: int) -> List[Dict]:
    """
    Get all of a user's matches, most recent first.

    Raises:
        NotFoundError: If the user has no matches
    """
    matches = await data_service.get_matches_by_user(session, user_id)
    if not matches:
        raise NotFoundError("Game not found")
    return matches


def _validate_fleet(side: Side, ships: List[Mapping[str, Any]]) -> None:
    if not ships:
        raise ValidationError(f"The {side.value} fleet needs at least one ship", fields=["ships"])

    ship_ids = [ship["ship_id"] for ship in ships]
    if len(set(ship_ids)) != len(ship_ids):
        raise ValidationError(f"Duplicate ship_id in the {side.value} fleet", fields=["ships"])

    rows = []
    for ship in ships:
        if not ship.get("cells"):
            raise ValidationError(f"Ship {ship['ship_id']} has no cells", fields=["ships"])
        for cell in ship["cells"]:
            rows.append({"ship_id": ship["ship_id"], "side": side.value, **cell})

    positions = {(row.get("x"), row.get("y")) for row in rows}
    if len(positions) != len(rows):
        raise ValidationError(f"Ships overlap in the {side.value} fleet", fields=["ships"])

    try:
        reconstruct_fleet(rows, side)
    except (MalformedRowError, InvalidShipLayoutError) as e:
        raise ValidationError(str(e), fields=["ships"]) from e


def _validate_board(side: Side, board: List[Mapping[str, Any]]) -> None:
    positions = set()
    for cell in board:
        try:
            decoded = decode(cell, side=side)
        except MalformedRowError as e:
            raise ValidationError(str(e), fields=["boards"]) from e
        if (decoded.x, decoded.y) in positions:
            raise ValidationError(
                f"Duplicate cell ({decoded.x}, {decoded.y}) on the {side.value} board", fields=["boards"]
            )
        positions.add((decoded.x, decoded.y))


async def save_match(
    session: AsyncSession,
    user_id: int,
    payload: Mapping[str, Any],
    timestamp: Optional[datetime] = None,
) -> int:
    """
    Validate and persist a finished match.

    Args:
        session: Database session
        user_id: Owner of the match
        payload: Dict with name, date, fire_direction, total_hits,
            ships {"self", "rival"} and boards {"self", "rival"}
        timestamp: Save time, defaults to now

    Returns:
        The new match ID

    Raises:
        ValidationError: If summary fields are missing or the fleets/boards are invalid
    """
    missing = data_service.missing_summary_fields(payload)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

    ships = payload.get("ships") or {}
    boards = payload.get("boards") or {}
    for side in (Side.SELF, Side.RIVAL):
        _validate_fleet(side, list(ships.get(side.value) or []))
        _validate_board(side, list(boards.get(side.value) or []))

    summary = {field: payload[field] for field in data_service.REQUIRED_SUMMARY_FIELDS}
    return await data_service.save_match(session, user_id, summary, ships, boards, timestamp=timestamp)
