"""Match save and match history route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database.db import get_db_session
from backend.services import match_history_service
from backend.api.auth_dependencies import require_path_user
from backend.models.schemas import SaveGameRequest, SaveGameResponse
from backend.utils.datetime_utils import utcnow
from backend.utils.exceptions import (
    DataIntegrityError,
    NotFoundError,
    StorageUnavailableError,
    ValidationError,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/users/{user_id}/games/save", status_code=201, response_model=SaveGameResponse)
async def save_game(
    user_id: int,
    payload: SaveGameRequest,
    current_user: dict = Depends(require_path_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Save a finished match with both fleets and both boards.

    Request body:
        {
            "game": {
                "name": "Friday rematch",
                "date": "2024-05-03",
                "fireDirection": "up",
                "totalHits": 17,
                "ships": {"self": [{"shipId": 1, "cells": [{"x": 0, "y": 0, "hit": false}]}], "rival": [...]},
                "boards": {"self": [{"x": 0, "y": 0, "marker": "miss"}], "rival": [...]}
            }
        }
    """
    try:
        game_id = await match_history_service.save_match(
            session, user_id, payload.game.to_service_payload(), timestamp=utcnow()
        )
        return SaveGameResponse(message="Match saved", game_id=game_id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StorageUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Error saving game for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error saving game")


@router.get("/api/users/{user_id}/games/{game_id}")
async def get_game(
    user_id: int,
    game_id: int,
    current_user: dict = Depends(require_path_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Get both fleets and both boards of one of the user's matches.

    Returns:
        {"ships": [selfFleet, rivalFleet], "selfBoard": [...], "rivalBoard": [...]}
    """
    try:
        return await match_history_service.get_match_detail(session, user_id, game_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except DataIntegrityError as e:
        raise HTTPException(status_code=500, detail=f"Stored data for game {game_id} is corrupt: {e}")
    except StorageUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Error retrieving game {game_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error retrieving game by id")


@router.get("/api/users/{user_id}/games")
async def list_games(
    user_id: int,
    current_user: dict = Depends(require_path_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List the user's matches, most recent first."""
    try:
        return await match_history_service.get_match_history(session, user_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StorageUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Error retrieving games for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error retrieving games")
