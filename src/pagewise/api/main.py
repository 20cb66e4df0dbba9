from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from pagewise import __version__
from pagewise.api import jobs
from pagewise.config import settings
from pagewise.progress import ProgressPublisher
from pagewise.service import PipelineService
from pagewise.utils import setup_logging
from typing import Optional

logger = setup_logging("pagewise", settings.LOG_LEVEL)


async def build_service() -> PipelineService:
    """Service wired to the configured database and OpenAI"""
    from pagewise.database import async_session, init_db
    from pagewise.inference import InferenceClient
    from pagewise.owner_store import SqlOwnerStore
    from pagewise.usage import SqlUsageRecorder

    await init_db()
    logger.info("[api] Database initialized")

    return PipelineService.build(
        InferenceClient(),
        SqlOwnerStore(async_session),
        SqlUsageRecorder(async_session),
    )


def create_app(service: Optional[PipelineService] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info("[api] pagewise starting...")
        if app.state.service is None:
            app.state.service = await build_service()

        publisher = None
        if settings.PUBLISH_PROGRESS:
            publisher = ProgressPublisher.from_url(settings.REDIS_URL)
            app.state.service.state.subscribe_all(publisher)
            logger.info("[api] Publishing progress to Redis")
        yield
        # Shutdown
        logger.info("[api] pagewise shutting down...")
        await app.state.service.close()
        if publisher is not None:
            await publisher.aclose()

    app = FastAPI(
        title="pagewise API",
        description="Chunked document analysis jobs",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    app.include_router(jobs.router)
    return app


app = create_app()
