"""
Tests for the match history service: detail reconstruction, history listing
and validated saves.
"""
import logging

import pytest
from sqlalchemy import func, select

from backend.database.models import Match, ShipCell, Side
from backend.services import data_service, match_history_service
from backend.utils.exceptions import InvalidShipLayoutError, NotFoundError, ValidationError
from conftest import make_game_payload


async def _count(db_session, model):
    result = await db_session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


# ============================================================================
# get_match_detail
# ============================================================================

@pytest.mark.asyncio
async def test_detail_reconstructs_both_fleets(db_session, test_user_id):
    """Vertical unsunk self ship and a sunk single-cell rival ship."""
    match_id = await match_history_service.save_match(db_session, test_user_id, make_game_payload())

    detail = await match_history_service.get_match_detail(db_session, test_user_id, match_id)

    self_fleet, rival_fleet = detail["ships"]
    assert len(self_fleet) == 1
    assert self_fleet[0]["ship_id"] == 1
    assert self_fleet[0]["orientation"] == "vertical"
    assert self_fleet[0]["sunk"] is False
    assert self_fleet[0]["length"] == 2

    assert len(rival_fleet) == 1
    assert rival_fleet[0]["ship_id"] == 2
    assert rival_fleet[0]["orientation"] == "single"
    assert rival_fleet[0]["sunk"] is True

    assert [(cell["x"], cell["y"], cell["marker"]) for cell in detail["selfBoard"]] == [
        (0, 0, "ship"), (0, 1, "ship"), (3, 3, "miss"),
    ]
    assert len(detail["rivalBoard"]) == 2


@pytest.mark.asyncio
async def test_detail_of_other_users_match_is_not_found(db_session, test_user_id, other_user_id):
    match_id = await match_history_service.save_match(db_session, test_user_id, make_game_payload())

    with pytest.raises(NotFoundError):
        await match_history_service.get_match_detail(db_session, other_user_id, match_id)


@pytest.mark.asyncio
async def test_detail_of_missing_match_is_not_found(db_session, test_user_id):
    with pytest.raises(NotFoundError):
        await match_history_service.get_match_detail(db_session, test_user_id, 999)


@pytest.mark.asyncio
async def test_detail_with_no_ship_rows_is_not_found(db_session, test_user_id, caplog):
    match = Match(user_id=test_user_id, name="empty", date="2024-05-03", fire_direction="up", total_hits=0)
    db_session.add(match)
    await db_session.commit()

    with caplog.at_level(logging.ERROR, logger="backend.services.match_history_service"):
        with pytest.raises(NotFoundError):
            await match_history_service.get_match_detail(db_session, test_user_id, match.id)
    assert caplog.records == []


@pytest.mark.asyncio
async def test_detail_with_one_side_missing_is_flagged(db_session, test_user_id, caplog):
    """Rival ships missing is still not-found, but logged as corruption."""
    match = Match(user_id=test_user_id, name="half", date="2024-05-03", fire_direction="up", total_hits=0)
    db_session.add(match)
    await db_session.flush()
    db_session.add(ShipCell(match_id=match.id, side=Side.SELF, ship_id=1, x=0, y=0, hit=False))
    await db_session.commit()

    with caplog.at_level(logging.ERROR, logger="backend.services.match_history_service"):
        with pytest.raises(NotFoundError):
            await match_history_service.get_match_detail(db_session, test_user_id, match.id)

    assert any(f"Match {match.id}" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_detail_with_corrupt_layout_raises_and_logs(db_session, test_user_id, caplog):
    match = Match(user_id=test_user_id, name="corrupt", date="2024-05-03", fire_direction="up", total_hits=0)
    db_session.add(match)
    await db_session.flush()
    db_session.add_all([
        ShipCell(match_id=match.id, side=Side.SELF, ship_id=7, x=0, y=0, hit=False),
        ShipCell(match_id=match.id, side=Side.SELF, ship_id=7, x=2, y=0, hit=False),
        ShipCell(match_id=match.id, side=Side.RIVAL, ship_id=1, x=4, y=4, hit=False),
    ])
    await db_session.commit()

    with caplog.at_level(logging.ERROR, logger="backend.services.match_history_service"):
        with pytest.raises(InvalidShipLayoutError) as exc_info:
            await match_history_service.get_match_detail(db_session, test_user_id, match.id)

    assert exc_info.value.ship_id == 7
    assert exc_info.value.match_id == match.id
    assert any("ship 7" in record.getMessage() for record in caplog.records)


@pytest.mark.asyncio
async def test_detail_returns_fleets_of_different_sizes(db_session, test_user_id, caplog):
    payload = make_game_payload()
    payload["ships"]["self"].append({"ship_id": 3, "cells": [{"x": 6, "y": 0}, {"x": 7, "y": 0}, {"x": 8, "y": 0}]})
    match_id = await match_history_service.save_match(db_session, test_user_id, payload)

    with caplog.at_level(logging.WARNING, logger="backend.services.match_history_service"):
        detail = await match_history_service.get_match_detail(db_session, test_user_id, match_id)

    self_fleet, rival_fleet = detail["ships"]
    assert [ship["ship_id"] for ship in self_fleet] == [1, 3]
    assert self_fleet[1]["orientation"] == "horizontal"
    assert len(rival_fleet) == 1
    assert any("fleet sizes differ" in record.getMessage() for record in caplog.records)


# ============================================================================
# get_match_history
# ============================================================================

@pytest.mark.asyncio
async def test_history_lists_users_matches(db_session, test_user_id):
    first = await match_history_service.save_match(db_session, test_user_id, make_game_payload(name="one"))
    second = await match_history_service.save_match(db_session, test_user_id, make_game_payload(name="two"))

    history = await match_history_service.get_match_history(db_session, test_user_id)

    assert {match["id"] for match in history} == {first, second}


@pytest.mark.asyncio
async def test_history_with_no_matches_is_not_found(db_session, test_user_id):
    with pytest.raises(NotFoundError):
        await match_history_service.get_match_history(db_session, test_user_id)


# ============================================================================
# save_match validation
# ============================================================================

@pytest.mark.asyncio
async def test_save_without_fire_direction_writes_nothing(db_session, test_user_id, monkeypatch):
    calls = []

    async def spy_save_match(*args, **kwargs):
        calls.append(args)

    monkeypatch.setattr(data_service, "save_match", spy_save_match)
    payload = make_game_payload()
    del payload["fire_direction"]

    with pytest.raises(ValidationError, match="fire_direction"):
        await match_history_service.save_match(db_session, test_user_id, payload)

    assert calls == []
    assert await _count(db_session, Match) == 0


@pytest.mark.asyncio
async def test_save_reports_every_missing_field(db_session, test_user_id):
    payload = make_game_payload(name=None, total_hits=None)

    with pytest.raises(ValidationError) as exc_info:
        await match_history_service.save_match(db_session, test_user_id, payload)

    assert exc_info.value.fields == ["name", "total_hits"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "ships, message",
    [
        ({"self": [], "rival": [{"ship_id": 2, "cells": [{"x": 5, "y": 5}]}]}, "at least one ship"),
        ({"self": [{"ship_id": 1, "cells": [{"x": 0, "y": 0}]}]}, "at least one ship"),
        (
            {
                "self": [{"ship_id": 1, "cells": [{"x": 0, "y": 0}]}, {"ship_id": 1, "cells": [{"x": 5, "y": 0}]}],
                "rival": [{"ship_id": 2, "cells": [{"x": 5, "y": 5}]}],
            },
            "Duplicate ship_id",
        ),
        (
            {
                "self": [{"ship_id": 1, "cells": [{"x": 0, "y": 0}]}, {"ship_id": 3, "cells": [{"x": 0, "y": 0}]}],
                "rival": [{"ship_id": 2, "cells": [{"x": 5, "y": 5}]}],
            },
            "overlap",
        ),
        (
            {
                "self": [{"ship_id": 1, "cells": [{"x": 0, "y": 0}, {"x": 1, "y": 1}]}],
                "rival": [{"ship_id": 2, "cells": [{"x": 5, "y": 5}]}],
            },
            "single row or column",
        ),
        (
            {
                "self": [{"ship_id": 1, "cells": []}],
                "rival": [{"ship_id": 2, "cells": [{"x": 5, "y": 5}]}],
            },
            "no cells",
        ),
    ],
)
async def test_save_rejects_invalid_fleets(db_session, test_user_id, ships, message):
    with pytest.raises(ValidationError, match=message):
        await match_history_service.save_match(db_session, test_user_id, make_game_payload(ships=ships))

    assert await _count(db_session, Match) == 0


@pytest.mark.asyncio
async def test_save_rejects_duplicate_board_cells(db_session, test_user_id):
    boards = {"self": [{"x": 1, "y": 1, "marker": "miss"}, {"x": 1, "y": 1, "marker": "hit"}], "rival": []}

    with pytest.raises(ValidationError, match="Duplicate cell"):
        await match_history_service.save_match(db_session, test_user_id, make_game_payload(boards=boards))


@pytest.mark.asyncio
async def test_save_rejects_off_board_cells(db_session, test_user_id):
    boards = {"self": [{"x": 10, "y": 1, "marker": "miss"}], "rival": []}

    with pytest.raises(ValidationError, match="outside"):
        await match_history_service.save_match(db_session, test_user_id, make_game_payload(boards=boards))
