"""
User service layer for user account database operations.
"""

from typing import Optional, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete, func
from backend.database.models import User, GameResult
from backend.services import data_service
import logging

logger = logging.getLogger(__name__)


def _user_to_dict(user: User) -> Dict:
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "password_hash": user.password_hash,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


async def create_user(session: AsyncSession, username: str, email: str, password_hash: str) -> int:
    """
    Create a new user account.

    Args:
        session: Database session
        username: Unique username
        email: User email (normalized to lowercase)
        password_hash: Hashed password

    Returns:
        User ID of the created user

    Raises:
        ValueError: If the username is already taken
    """
    result = await session.execute(select(User.id).where(User.username == username))
    if result.scalar_one_or_none():
        raise ValueError(f"Name {username} already exists")

    new_user = User(username=username, email=email.strip().lower(), password_hash=password_hash)
    session.add(new_user)
    await session.flush()
    user_id = new_user.id
    await session.commit()

    return user_id


async def get_user_by_username(session: AsyncSession, username: str) -> Optional[Dict]:
    """
    Get user by username.

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.username == username).limit(1))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def get_user_by_id(session: AsyncSession, user_id: int) -> Optional[Dict]:
    """
    Get user by ID.

    Returns:
        User dictionary or None if not found
    """
    result = await session.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    return _user_to_dict(user) if user else None


async def update_user_password(session: AsyncSession, user_id: int, password_hash: str) -> bool:
    """
    Update a user's password.

    Returns:
        True if successful, False if the user does not exist
    """
    result = await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(password_hash=password_hash, updated_at=func.now())
    )
    await session.commit()
    return result.rowcount > 0


async def delete_user(session: AsyncSession, user_id: int) -> bool:
    """
    Delete a user with all of their matches and game results.

    Returns:
        True if the user existed, False otherwise
    """
    deleted_matches = await data_service.delete_matches_for_user(session, user_id)
    await session.execute(delete(GameResult).where(GameResult.user_id == user_id))
    result = await session.execute(delete(User).where(User.id == user_id))
    await session.commit()

    if result.rowcount > 0:
        logger.info(f"Deleted user {user_id} and {deleted_matches} matches")
    return result.rowcount > 0
