"""User account and game result route handlers."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from backend.api.routes import limiter
from backend.database.db import get_db_session
from backend.services import auth_service, data_service, user_service
from backend.api.auth_dependencies import require_path_user
from backend.models.schemas import (
    GameResultRequest,
    LoginRequest,
    LoginResponse,
    PasswordUpdateRequest,
    SignupRequest,
    UserResponse,
)
from backend.utils.datetime_utils import utcnow
from backend.utils.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/api/users/signup", status_code=201)
@limiter.limit("10/minute")
async def signup(
    request: Request,
    payload: SignupRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Create a user account. 409 if the username is taken."""
    try:
        existing = await user_service.get_user_by_username(session, payload.username)
        if existing:
            raise HTTPException(status_code=409, detail=f"Name {payload.username} already exists")

        password_hash = auth_service.hash_password(payload.password)
        user_id = await user_service.create_user(
            session, username=payload.username, email=payload.email, password_hash=password_hash
        )
        return {"message": "User created", "user": {"id": user_id, "username": payload.username}}
    except HTTPException:
        raise
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating user: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error creating user")


@router.post("/api/users/login", response_model=LoginResponse)
@limiter.limit("10/minute")
async def login(
    request: Request,
    payload: LoginRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Login with username and password. Returns a bearer token."""
    try:
        user = await user_service.get_user_by_username(session, payload.username)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        if not auth_service.verify_password(payload.password, user["password_hash"]):
            raise HTTPException(status_code=401, detail="Incorrect password")

        token = auth_service.create_access_token(data={"user_id": user["id"], "username": user["username"]})
        return LoginResponse(token=token)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error logging in user: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error login user")


@router.patch("/api/users/{user_id}/password")
async def update_password(
    user_id: int,
    payload: PasswordUpdateRequest,
    current_user: dict = Depends(require_path_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Change the user's password after checking the old one."""
    try:
        user = await user_service.get_user_by_id(session, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        if not auth_service.verify_password(payload.old_password, user["password_hash"]):
            raise HTTPException(status_code=401, detail="Incorrect old password")

        password_hash = auth_service.hash_password(payload.new_password)
        await user_service.update_user_password(session, user_id, password_hash)
        return {"message": "Password updated"}
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error updating password for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error updating password")


@router.get("/api/users/{username}", response_model=UserResponse)
async def get_user(username: str, session: AsyncSession = Depends(get_db_session)):
    """Public lookup by username."""
    try:
        user = await user_service.get_user_by_username(session, username)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return UserResponse(username=user["username"])
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error retrieving user {username}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error retrieving user")


@router.delete("/api/users/{user_id}")
async def delete_user(
    user_id: int,
    current_user: dict = Depends(require_path_user),
    session: AsyncSession = Depends(get_db_session),
):
    """Delete the user with all of their matches. 204 if there was nothing to delete."""
    try:
        deleted = await user_service.delete_user(session, user_id)
        if not deleted:
            return Response(status_code=204)
        return {"message": "User deleted"}
    except Exception as e:
        logger.error(f"Error deleting user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error deleting user")


@router.post("/api/users/{user_id}/history", status_code=201)
async def save_game_result(
    user_id: int,
    payload: GameResultRequest,
    current_user: dict = Depends(require_path_user),
    session: AsyncSession = Depends(get_db_session),
):
    """
    Record a post-game summary.

    Request body:
        {"username": "ann", "totalHits": 17, "timeConsumed": 240, "result": "win", "date": "2024-05-03"}
    """
    fields = payload.model_dump()
    missing = [name for name, value in fields.items() if value is None]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")

    try:
        user = await user_service.get_user_by_id(session, user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        await data_service.save_game_result(session, user_id, timestamp=utcnow(), **fields)
        return {"message": "game details created"}
    except HTTPException:
        raise
    except StorageUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Error saving game result for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error saving game details")


@router.get("/api/users/{user_id}/history")
async def list_game_results(
    user_id: int,
    current_user: dict = Depends(require_path_user),
    session: AsyncSession = Depends(get_db_session),
):
    """List the user's posted game results, newest first."""
    try:
        return await data_service.get_game_results(session, user_id)
    except StorageUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Error retrieving game results for user {user_id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error retrieving game details")
