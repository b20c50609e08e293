"""
Pydantic models for API request/response validation.
"""

from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from backend.database.models import BoardMarker
from backend.utils.constants import BOARD_SIZE


class SignupRequest(BaseModel):
    """Request to create a user account."""

    username: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)


class LoginRequest(BaseModel):
    """Login with username and password."""

    username: str
    password: str


class LoginResponse(BaseModel):
    token: str


class PasswordUpdateRequest(BaseModel):
    """Change password; the old password must match."""

    model_config = ConfigDict(populate_by_name=True)
    old_password: str = Field(alias="oldPassword")
    new_password: str = Field(alias="newPassword", min_length=1)


class UserResponse(BaseModel):
    username: str


class ShipCellPayload(BaseModel):
    """One occupied cell of a ship."""

    x: int = Field(ge=0, lt=BOARD_SIZE)
    y: int = Field(ge=0, lt=BOARD_SIZE)
    hit: bool = False


class ShipPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    ship_id: int = Field(alias="shipId")
    cells: List[ShipCellPayload]


class FleetsPayload(BaseModel):
    """Both fleets of a finished match."""

    model_config = ConfigDict(populate_by_name=True)
    self_fleet: List[ShipPayload] = Field(default_factory=list, alias="self")
    rival_fleet: List[ShipPayload] = Field(default_factory=list, alias="rival")


class BoardCellPayload(BaseModel):
    x: int = Field(ge=0, lt=BOARD_SIZE)
    y: int = Field(ge=0, lt=BOARD_SIZE)
    marker: BoardMarker


class BoardsPayload(BaseModel):
    """Both boards of a finished match, misses included."""

    model_config = ConfigDict(populate_by_name=True)
    self_board: List[BoardCellPayload] = Field(default_factory=list, alias="self")
    rival_board: List[BoardCellPayload] = Field(default_factory=list, alias="rival")


class GamePayload(BaseModel):
    """
    A finished match as sent by the client.

    Summary fields are optional here; the service reports which are missing.
    """

    model_config = ConfigDict(populate_by_name=True)
    name: Optional[str] = None
    date: Optional[str] = None
    fire_direction: Optional[str] = Field(default=None, alias="fireDirection")
    total_hits: Optional[int] = Field(default=None, alias="totalHits", ge=0)
    ships: FleetsPayload = Field(default_factory=FleetsPayload)
    boards: BoardsPayload = Field(default_factory=BoardsPayload)

    def to_service_payload(self) -> dict:
        """Flatten into the plain dict shape match_history_service.save_match expects."""
        return {
            "name": self.name,
            "date": self.date,
            "fire_direction": self.fire_direction,
            "total_hits": self.total_hits,
            "ships": {
                "self": [ship.model_dump() for ship in self.ships.self_fleet],
                "rival": [ship.model_dump() for ship in self.ships.rival_fleet],
            },
            "boards": {
                "self": [cell.model_dump(mode="json") for cell in self.boards.self_board],
                "rival": [cell.model_dump(mode="json") for cell in self.boards.rival_board],
            },
        }


class SaveGameRequest(BaseModel):
    game: GamePayload


class SaveGameResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)
    message: str
    game_id: int = Field(serialization_alias="gameId")


class MatchSummary(BaseModel):
    """One entry of a user's match history."""

    id: int
    user_id: int
    name: str
    date: str
    fire_direction: str
    total_hits: int
    created_at: Optional[str] = None


class GameResultRequest(BaseModel):
    """Post-game summary. All fields are required."""

    model_config = ConfigDict(populate_by_name=True)
    username: Optional[str] = None
    total_hits: Optional[int] = Field(default=None, alias="totalHits")
    time_consumed: Optional[int] = Field(default=None, alias="timeConsumed")
    result: Optional[str] = None
    date: Optional[str] = None
