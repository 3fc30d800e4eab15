"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gladgrade.config import settings
from gladgrade.database import Database, get_database
from gladgrade.routes import register_all_routes

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the connection pool at start-up unless one was injected; close it at shutdown."""
    configure_logging()
    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        app.state.database = Database.from_settings(settings)
        logger.info("Database connection pool created")

    yield

    if owns_database:
        await app.state.database.dispose()


def create_app(database: Optional[Database] = None) -> FastAPI:
    """Build the application, optionally around an existing Database."""
    app = FastAPI(
        title="GladGrade Portal API",
        description="Sales pipeline and audit trail for the GladGrade business portal",
        version="1.0.0",
        lifespan=lifespan,
    )
    if database is not None:
        app.state.database = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_all_routes(app, api_prefix=settings.API_V1_PREFIX)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "GladGrade Portal API",
            "version": "1.0.0",
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check(database: Database = Depends(get_database)):
        """Health check endpoint, including a database round-trip."""
        try:
            await database.execute("SELECT 1 AS ok")
        except Exception as e:
            logger.error(f"Health check database query failed: {e}")
            return {"status": "degraded", "database": "unreachable"}
        return {"status": "healthy", "database": "ok"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "gladgrade.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
