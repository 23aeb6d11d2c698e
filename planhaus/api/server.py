import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from pymongo.database import Database

from planhaus.api.auth_routes import auth_router
from planhaus.api.mongo import get_db, lifespan as mongo_lifespan
from planhaus.api.planning_routes import analytics_router, planning_router
from planhaus.api.rate_limit import RateLimiter, cleanup_loop, default_rate_limiters, rate_limit_middleware
from planhaus.api.realtime import ConnectionHub, realtime_router
from planhaus.utils.config import Config
from planhaus.utils.logger import get_logger

logger = get_logger(__name__)


class HealthResponse(BaseModel):
    status: str


@asynccontextmanager
async def lifespan(app: FastAPI):
    """MongoDB connection plus periodic rate limit cleanup."""
    async with mongo_lifespan(app):
        cleanup = asyncio.create_task(cleanup_loop(app.state.rate_limiters))
        try:
            yield
        finally:
            cleanup.cancel()


def create_app(db: Optional[Database] = None,
               rate_limiters: Optional[Dict[str, RateLimiter]] = None) -> FastAPI:
    """Build the API; pass ``db`` to use an existing database instead of connecting."""
    app = FastAPI(title="PlanHaus API", lifespan=lifespan)
    app.state.db = db
    app.state.hub = ConnectionHub()
    app.state.rate_limiters = default_rate_limiters() if rate_limiters is None else rate_limiters

    app.add_middleware(
        CORSMiddleware,
        allow_origins=Config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(rate_limit_middleware)

    app.include_router(auth_router)
    app.include_router(planning_router)
    app.include_router(analytics_router)
    app.include_router(realtime_router)

    @app.get("/db-check")
    def db_check(db: Database = Depends(get_db)):
        """Check if MongoDB connection is alive."""
        try:
            db.command("ping")
            return {"status": "ok", "message": "MongoDB connection successful"}
        except Exception as e:
            logger.warning(f"MongoDB ping failed: {e}")
            return {"status": "error", "message": str(e)}

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    # Run with: uvicorn planhaus.api.server:app --reload
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
