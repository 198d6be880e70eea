"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from upload_gallery.config import Settings
from upload_gallery.database import build_engine, build_session_factory, get_db
from upload_gallery.dependencies import get_settings
from upload_gallery.errors import register_exception_handlers
from upload_gallery.models import Base
from upload_gallery.routes.files import router as files_router
from upload_gallery.routes.pages import router as pages_router
from upload_gallery.services.object_storage import ObjectStorage

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the DB engine and tables on startup, dispose on shutdown."""
    settings: Settings = app.state.settings
    engine = build_engine(settings)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.STORAGE_CREATE_BUCKET:
        await app.state.storage.ensure_bucket()

    logger.info("Ready: storage=%s bucket=%s", settings.STORAGE_TYPE, settings.STORAGE_BUCKET)

    yield

    await engine.dispose()


def create_app(settings: Settings | None = None, storage: ObjectStorage | None = None) -> FastAPI:
    """Create a FastAPI application.

    The object store client is built here and the database engine in the
    lifespan; both live on ``app.state`` for the lifetime of the app.
    """
    settings = settings or Settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Upload Gallery",
        version="1.0.0",
        description="Upload files to object storage and browse them.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.storage = storage or ObjectStorage(settings)

    # CORS
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(pages_router)
    app.include_router(files_router)

    @app.get("/api/health")
    async def health_check(
        db: AsyncSession = Depends(get_db),
        settings: Settings = Depends(get_settings),
    ):
        """Verify API and database connectivity."""
        storage_info = {"type": settings.STORAGE_TYPE, "bucket": settings.STORAGE_BUCKET}
        try:
            await db.execute(text("SELECT 1"))
            return {"status": "ok", "database": "connected", "storage": storage_info}
        except Exception as e:
            return {"status": "error", "database": str(e), "storage": storage_info}

    return app


if __name__ == "__main__":
    import uvicorn

    settings = Settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.API_PORT)
