"""
Data service layer for database operations.
Handles persistence of completed matches and their ship/board rows.
"""

import asyncio
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.models import Match, ShipCell, BoardCell, BoardMarker, GameResult, Side
from backend.utils import cell_codec
from backend.utils.cell_codec import Cell
from backend.utils.constants import SELF_SHIPS, RIVAL_SHIPS, SELF_BOARD, RIVAL_BOARD
from backend.utils.datetime_utils import utcnow
from backend.utils.exceptions import (
    InvalidArgumentError,
    StorageUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)

REQUIRED_SUMMARY_FIELDS = ("name", "date", "fire_direction", "total_hits")

# Logical row-set name -> (model, side)
_ROW_TABLES = {
    SELF_SHIPS: (ShipCell, Side.SELF),
    RIVAL_SHIPS: (ShipCell, Side.RIVAL),
    SELF_BOARD: (BoardCell, Side.SELF),
    RIVAL_BOARD: (BoardCell, Side.RIVAL),
}


#
# Helper functions
#

@contextmanager
def _storage_errors(operation: str):
    """Re-raise connection-level database failures as StorageUnavailableError."""
    try:
        yield
    except (OperationalError, InterfaceError, asyncio.TimeoutError) as e:
        logger.error(f"Storage unavailable during {operation}: {e}")
        raise StorageUnavailableError(f"Storage unavailable during {operation}") from e
    except DBAPIError as e:
        if not e.connection_invalidated:
            raise
        logger.error(f"Connection lost during {operation}: {e}")
        raise StorageUnavailableError(f"Connection lost during {operation}") from e


def missing_summary_fields(summary: Mapping[str, Any]) -> List[str]:
    """Return the required summary fields that are absent (None counts as absent)."""
    return [field for field in REQUIRED_SUMMARY_FIELDS if summary.get(field) is None]


def _match_to_dict(match: Match) -> Dict:
    return {
        "id": match.id,
        "user_id": match.user_id,
        "name": match.name,
        "date": match.date,
        "fire_direction": match.fire_direction,
        "total_hits": match.total_hits,
        "created_at": match.created_at.isoformat() if match.created_at else None,
    }


def _ship_cell_to_dict(row: ShipCell) -> Dict:
    return {
        "match_id": row.match_id,
        "ship_id": row.ship_id,
        "x": row.x,
        "y": row.y,
        "hit": row.hit,
        "side": row.side.value,
    }


def _board_cell_to_dict(row: BoardCell) -> Dict:
    return {
        "match_id": row.match_id,
        "x": row.x,
        "y": row.y,
        "side": row.side.value,
        "marker": row.marker.value,
    }


def _ship_cells(match_id: int, side: Side, ships: Iterable[Mapping[str, Any]]) -> List[ShipCell]:
    rows = []
    for ship in ships:
        for cell in ship["cells"]:
            encoded = cell_codec.encode(
                Cell(x=cell["x"], y=cell["y"], hit=bool(cell.get("hit", False)), side=side, ship_id=ship["ship_id"])
            )
            rows.append(
                ShipCell(
                    match_id=match_id,
                    ship_id=encoded["ship_id"],
                    x=encoded["x"],
                    y=encoded["y"],
                    hit=encoded["hit"],
                    side=Side(encoded["side"]),
                )
            )
    return rows


def _board_cells(match_id: int, side: Side, board: Iterable[Mapping[str, Any]]) -> List[BoardCell]:
    rows = []
    for cell in board:
        marker = BoardMarker(cell["marker"])
        encoded = cell_codec.encode(
            Cell(x=cell["x"], y=cell["y"], hit=marker == BoardMarker.HIT, side=side, marker=marker)
        )
        rows.append(
            BoardCell(
                match_id=match_id,
                x=encoded["x"],
                y=encoded["y"],
                side=Side(encoded["side"]),
                marker=BoardMarker(encoded["marker"]),
            )
        )
    return rows


#
# Match persistence
#

async def save_match(
    session: AsyncSession,
    user_id: int,
    summary: Mapping[str, Any],
    ships: Mapping[str, Iterable[Mapping[str, Any]]],
    boards: Mapping[str, Iterable[Mapping[str, Any]]],
    timestamp: Optional[datetime] = None,
) -> int:
    """
    Persist a finished match and all of its ship and board rows atomically.

    Args:
        session: Database session
        user_id: Owner of the match
        summary: Dict with name, date, fire_direction, total_hits
        ships: {"self": [...], "rival": [...]}, each ship {"ship_id", "cells": [{"x", "y", "hit"}]}
        boards: {"self": [...], "rival": [...]}, each cell {"x", "y", "marker"}
        timestamp: Save time, defaults to now

    Returns:
        The new match ID

    Raises:
        ValidationError: If a required summary field is missing or a side has
            no ships (nothing is written)
        StorageUnavailableError: If the database cannot be reached
    """
    missing = missing_summary_fields(summary)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)
    empty_sides = [side.value for side in (Side.SELF, Side.RIVAL) if not ships.get(side.value)]
    if empty_sides:
        raise ValidationError(f"No ships for side: {', '.join(empty_sides)}", fields=["ships"])

    with _storage_errors("save_match"):
        try:
            new_match = Match(
                user_id=user_id,
                name=summary["name"],
                date=summary["date"],
                fire_direction=summary["fire_direction"],
                total_hits=summary["total_hits"],
                created_at=timestamp or utcnow(),
            )
            session.add(new_match)
            await session.flush()  # Get the match ID
            match_id = new_match.id

            for side in (Side.SELF, Side.RIVAL):
                session.add_all(_ship_cells(match_id, side, ships.get(side.value, [])))
            for side in (Side.SELF, Side.RIVAL):
                session.add_all(_board_cells(match_id, side, boards.get(side.value, [])))

            await session.flush()
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    logger.info(f"Saved match {match_id} for user {user_id}")
    return match_id


async def get_matches_by_user(session: AsyncSession, user_id: int) -> List[Dict]:
    """
    Get all matches owned by a user, most recent first.

    Args:
        session: Database session
        user_id: Owner ID

    Returns:
        List of match dicts ordered by created_at desc, then id desc
    """
    with _storage_errors("get_matches_by_user"):
        result = await session.execute(
            select(Match)
            .where(Match.user_id == user_id)
            .order_by(Match.created_at.desc(), Match.id.desc())
        )
        return [_match_to_dict(match) for match in result.scalars().all()]


async def get_match_by_user_and_id(session: AsyncSession, user_id: int, match_id: int) -> Optional[Dict]:
    """
    Get a match only if it belongs to the given user.

    Returns:
        Match dict or None if not found or owned by another user
    """
    with _storage_errors("get_match_by_user_and_id"):
        result = await session.execute(
            select(Match).where(Match.id == match_id, Match.user_id == user_id)
        )
        match = result.scalar_one_or_none()
    return _match_to_dict(match) if match else None


async def get_match_rows(session: AsyncSession, match_id: int, table: str) -> List[Dict]:
    """
    Get the raw rows of one logical row-set for a match, in insertion order.

    Args:
        session: Database session
        match_id: Match ID
        table: One of "self_ships", "rival_ships", "self_board", "rival_board"

    Raises:
        InvalidArgumentError: If table is not a known row-set name
    """
    if table not in _ROW_TABLES:
        raise InvalidArgumentError(f"Unknown match table '{table}'")
    model, side = _ROW_TABLES[table]
    to_dict = _ship_cell_to_dict if model is ShipCell else _board_cell_to_dict

    with _storage_errors("get_match_rows"):
        result = await session.execute(
            select(model)
            .where(model.match_id == match_id, model.side == side)
            .order_by(model.id)
        )
        return [to_dict(row) for row in result.scalars().all()]


async def delete_matches_for_user(session: AsyncSession, user_id: int) -> int:
    """
    Delete every match a user owns, with its ship and board rows.
    Does not commit; the caller owns the transaction.

    Returns:
        Number of matches deleted
    """
    match_ids = select(Match.id).where(Match.user_id == user_id)
    await session.execute(delete(ShipCell).where(ShipCell.match_id.in_(match_ids)))
    await session.execute(delete(BoardCell).where(BoardCell.match_id.in_(match_ids)))
    result = await session.execute(delete(Match).where(Match.user_id == user_id))
    return result.rowcount


#
# Game results
#

async def save_game_result(
    session: AsyncSession,
    user_id: int,
    username: str,
    total_hits: int,
    time_consumed: int,
    result: str,
    date: str,
    timestamp: Optional[datetime] = None,
) -> int:
    """Store a post-game summary posted by the client. Returns the new row ID."""
    with _storage_errors("save_game_result"):
        try:
            game_result = GameResult(
                user_id=user_id,
                username=username,
                total_hits=total_hits,
                time_consumed=time_consumed,
                result=result,
                date=date,
                created_at=timestamp or utcnow(),
            )
            session.add(game_result)
            await session.flush()
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    return game_result.id


async def get_game_results(session: AsyncSession, user_id: int) -> List[Dict]:
    """Get a user's posted game results, newest first."""
    with _storage_errors("get_game_results"):
        result = await session.execute(
            select(GameResult)
            .where(GameResult.user_id == user_id)
            .order_by(GameResult.created_at.desc(), GameResult.id.desc())
        )
        return [
            {
                "id": row.id,
                "username": row.username,
                "total_hits": row.total_hits,
                "time_consumed": row.time_consumed,
                "result": row.result,
                "date": row.date,
                "created_at": row.created_at.isoformat() if row.created_at else None,
            }
            for row in result.scalars().all()
        ]
