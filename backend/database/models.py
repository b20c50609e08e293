"""
SQLAlchemy ORM models for the Battleship match history system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.database.db import Base
from backend.utils.constants import BOARD_SIZE


class Side(str, enum.Enum):
    """Whose fleet or board a row belongs to."""

    SELF = "self"
    RIVAL = "rival"


class BoardMarker(str, enum.Enum):
    """State of a single board cell."""

    HIT = "hit"
    MISS = "miss"
    SHIP = "ship"
    EMPTY = "empty"


# Shared so PostgreSQL creates the enum type once
side_enum = Enum(Side, name="side")


def _coordinate_checks(prefix: str):
    return (
        CheckConstraint(f"x >= 0 AND x < {BOARD_SIZE}", name=f"ck_{prefix}_x_range"),
        CheckConstraint(f"y >= 0 AND y < {BOARD_SIZE}", name=f"ck_{prefix}_y_range"),
    )


class User(Base):
    """User accounts with username/password authentication."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, nullable=False, unique=True)
    email = Column(String, nullable=False)
    password_hash = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    matches = relationship("Match", back_populates="user", cascade="all, delete-orphan")
    game_results = relationship("GameResult", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_users_username", "username"),)


class Match(Base):
    """A completed game snapshot. Immutable once saved."""

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String, nullable=False)
    date = Column(String, nullable=False)  # Client-supplied display date
    fire_direction = Column(String, nullable=False)
    total_hits = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    user = relationship("User", back_populates="matches")
    ship_cells = relationship("ShipCell", back_populates="match", cascade="all, delete-orphan")
    board_cells = relationship("BoardCell", back_populates="match", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_matches_user_created", "user_id", "created_at"),
    )


class ShipCell(Base):
    """One occupied ship cell. Rows sharing (match_id, side, ship_id) form one ship."""

    __tablename__ = "ship_cells"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    side = Column(side_enum, nullable=False)
    ship_id = Column(Integer, nullable=False)
    x = Column(Integer, nullable=False)
    y = Column(Integer, nullable=False)
    hit = Column(Boolean, nullable=False, default=False)

    match = relationship("Match", back_populates="ship_cells")

    __table_args__ = (
        UniqueConstraint("match_id", "side", "x", "y", name="uq_ship_cells_position"),
        Index("idx_ship_cells_match_side", "match_id", "side"),
        *_coordinate_checks("ship_cells"),
    )


class BoardCell(Base):
    """Full grid state for one side of a match, misses included."""

    __tablename__ = "board_cells"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False)
    side = Column(side_enum, nullable=False)
    x = Column(Integer, nullable=False)
    y = Column(Integer, nullable=False)
    marker = Column(Enum(BoardMarker, name="board_marker"), nullable=False)

    match = relationship("Match", back_populates="board_cells")

    __table_args__ = (
        UniqueConstraint("match_id", "side", "x", "y", name="uq_board_cells_position"),
        Index("idx_board_cells_match_side", "match_id", "side"),
        *_coordinate_checks("board_cells"),
    )


class GameResult(Base):
    """Per-game summary posted by the client after a game ends."""

    __tablename__ = "game_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    username = Column(String, nullable=False)
    total_hits = Column(Integer, nullable=False)
    time_consumed = Column(Integer, nullable=False)  # Seconds
    result = Column(String, nullable=False)
    date = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    user = relationship("User", back_populates="game_results")

    __table_args__ = (Index("idx_game_results_user", "user_id"),)
