import os
import sys
import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    AsyncEventRepository,
    AsyncExerciseCatalogRepository,
    AsyncPinnedExerciseRepository,
    AsyncUserRepository,
    ExerciseCatalogRepository,
    UserRepository,
)
from errors import (
    DuplicatePinError,
    NotFoundError,
    NotPinnedError,
    PinError,
    PinLimitError,
)
from settings_schema import AnalyticsSettings
from stats_service import StatisticsService


def _setup(db_path: str, settings: AnalyticsSettings | None = None):
    user = UserRepository(db_path).create("pins@example.com")
    catalog = ExerciseCatalogRepository(db_path)
    exercise_ids = [catalog.add(f"Exercise {i}", "CHEST") for i in range(7)]
    service = StatisticsService(
        AsyncEventRepository(db_path),
        AsyncUserRepository(db_path),
        AsyncExerciseCatalogRepository(db_path),
        AsyncPinnedExerciseRepository(db_path),
        settings=settings,
    )
    return service, user, exercise_ids


@pytest.mark.asyncio
async def test_pin_capacity(tmp_path):
    service, user, ex = _setup(str(tmp_path / "pins.db"))
    for eid in ex[:5]:
        await service.pin(user, eid)
    assert await service.get_pinned(user) == ex[:5]
    with pytest.raises(PinLimitError):
        await service.pin(user, ex[5])
    assert len(await service.get_pinned(user)) == 5


@pytest.mark.asyncio
async def test_duplicate_and_not_pinned(tmp_path):
    service, user, ex = _setup(str(tmp_path / "pins.db"))
    await service.pin(user, ex[0])
    with pytest.raises(DuplicatePinError):
        await service.pin(user, ex[0])
    with pytest.raises(NotPinnedError):
        await service.unpin(user, ex[1])
    await service.unpin(user, ex[0])
    assert await service.get_pinned(user) == []


@pytest.mark.asyncio
async def test_order_kept_after_unpin(tmp_path):
    service, user, ex = _setup(str(tmp_path / "pins.db"))
    for eid in (ex[2], ex[0], ex[1]):
        await service.pin(user, eid)
    await service.unpin(user, ex[0])
    await service.pin(user, ex[3])
    assert await service.get_pinned(user) == [ex[2], ex[1], ex[3]]


@pytest.mark.asyncio
async def test_pin_errors_are_validation_errors(tmp_path):
    service, user, ex = _setup(
        str(tmp_path / "pins.db"), AnalyticsSettings(pin_limit=1)
    )
    await service.pin(user, ex[0])
    with pytest.raises(PinError):
        await service.pin(user, ex[1])
    with pytest.raises(ValueError):
        await service.pin(user, ex[0])


@pytest.mark.asyncio
async def test_unknown_user_or_exercise(tmp_path):
    service, user, ex = _setup(str(tmp_path / "pins.db"))
    with pytest.raises(NotFoundError):
        await service.pin(user, 999)
    with pytest.raises(NotFoundError):
        await service.get_pinned(999)
    with pytest.raises(NotFoundError):
        await service.unpin(999, ex[0])
