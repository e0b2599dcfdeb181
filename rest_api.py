import logging
from typing import Optional

from fastapi import APIRouter, FastAPI, Header, HTTPException, Query

from config import APP_VERSION, YamlConfig
from db import (
    AsyncEventRepository,
    AsyncExerciseCatalogRepository,
    AsyncPinnedExerciseRepository,
    AsyncUserRepository,
    ExerciseCatalogRepository,
)
from errors import NotFoundError, ValidationError
from settings_schema import AnalyticsSettings
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


class FitlogAPI:
    """FastAPI application exposing workout, sleep and body statistics."""

    def __init__(
        self,
        db_path: str = "fitlog.db",
        yaml_path: str = "settings.yaml",
        *,
        settings: AnalyticsSettings | None = None,
        clock=None,
    ) -> None:
        self.db_path = db_path
        self.config = YamlConfig(yaml_path)
        self.settings = settings or self.config.settings()
        self.catalog = ExerciseCatalogRepository(db_path)
        self.stats = StatisticsService(
            AsyncEventRepository(db_path),
            AsyncUserRepository(db_path),
            AsyncExerciseCatalogRepository(db_path),
            AsyncPinnedExerciseRepository(db_path),
            settings=self.settings,
            clock=clock,
        )
        self.app = FastAPI(title="Fitlog Analytics API", version=APP_VERSION)
        self._setup_routes()

    @staticmethod
    async def _call(coro):
        """Await ``coro`` translating domain errors to HTTP responses."""
        try:
            return await coro
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    def _setup_routes(self) -> None:
        statistics_router = APIRouter(prefix="/statistics", tags=["Statistics"])
        sleep_router = APIRouter(prefix="/sleep", tags=["Sleep"])
        body_router = APIRouter(prefix="/body-measurements", tags=["Body"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.catalog.fetch_all()
                return {"status": "ok", "version": APP_VERSION}
            except Exception as e:  # pragma: no cover - connectivity failure
                logger.exception("health check failed")
                raise HTTPException(status_code=500, detail=str(e))

        @statistics_router.get("/dashboard")
        async def dashboard(x_user_id: int = Header(..., alias="X-User-Id")):
            return await self._call(self.stats.dashboard(x_user_id))

        @statistics_router.get("/evolution")
        async def evolution(
            x_user_id: int = Header(..., alias="X-User-Id"),
            start_date: Optional[str] = None,
            end_date: Optional[str] = None,
            weeks: Optional[int] = None,
        ):
            return await self._call(
                self.stats.workout_volume_stats(x_user_id, start_date, end_date, weeks)
            )

        @statistics_router.get("/exercise/{exercise_id}/progression")
        async def exercise_progression(
            exercise_id: int,
            x_user_id: int = Header(..., alias="X-User-Id"),
            start_date: Optional[str] = None,
            end_date: Optional[str] = None,
        ):
            return await self._call(
                self.stats.exercise_progression(
                    x_user_id, exercise_id, start_date, end_date
                )
            )

        @statistics_router.get("/exercise/{exercise_id}/history")
        async def exercise_history(
            exercise_id: int,
            x_user_id: int = Header(..., alias="X-User-Id"),
            limit: Optional[int] = Query(None),
        ):
            return await self._call(
                self.stats.exercise_history(x_user_id, exercise_id, limit)
            )

        @statistics_router.get("/pinned-exercises")
        async def list_pinned(x_user_id: int = Header(..., alias="X-User-Id")):
            ids = await self._call(self.stats.get_pinned(x_user_id))
            return {"exercise_ids": ids}

        @statistics_router.post("/pinned-exercises/{exercise_id}")
        async def pin_exercise(
            exercise_id: int, x_user_id: int = Header(..., alias="X-User-Id")
        ):
            await self._call(self.stats.pin(x_user_id, exercise_id))
            return {"status": "pinned"}

        @statistics_router.delete("/pinned-exercises/{exercise_id}")
        async def unpin_exercise(
            exercise_id: int, x_user_id: int = Header(..., alias="X-User-Id")
        ):
            await self._call(self.stats.unpin(x_user_id, exercise_id))
            return {"status": "unpinned"}

        @sleep_router.get("/stats")
        async def sleep_stats(
            x_user_id: int = Header(..., alias="X-User-Id"),
            start_date: Optional[str] = None,
            end_date: Optional[str] = None,
            weeks: Optional[int] = None,
        ):
            return await self._call(
                self.stats.sleep_stats(x_user_id, start_date, end_date, weeks)
            )

        @body_router.get("/stats")
        async def body_measurement_stats(
            x_user_id: int = Header(..., alias="X-User-Id"),
            start_date: Optional[str] = None,
            end_date: Optional[str] = None,
            weeks: Optional[int] = None,
        ):
            return await self._call(
                self.stats.body_measurement_stats(
                    x_user_id, start_date, end_date, weeks
                )
            )

        self.app.include_router(statistics_router)
        self.app.include_router(sleep_router)
        self.app.include_router(body_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(FitlogAPI().app)
