"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable, Optional, cast

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
import redis.asyncio as redis
from starlette.responses import JSONResponse, Response
import structlog

from .api.routes import chat_router, examples_router
from .config import Settings, load_settings
from .core.errors import AppError, app_error_handler, http_exception_handler
from .curation import ExampleCurator
from .db.memory import InMemoryExampleStore, InMemoryInteractionStore
from .db.postgres import PostgresClient
from .embeddings import EmbeddingGateway
from .feedback import LearningFeedbackLoop
from .interactions import (
    InteractionLogger,
    PostgresInteractionStore,
    close_pool,
    create_pool,
)
from .llm import CompletionGateway
from .observability import MetricsConfig, install_metrics
from .orchestrator import ChatOrchestrator
from .policy import ResponsePolicy
from .rate_limit import InMemoryRateLimiter, RedisRateLimiter, close_redis
from .retrieval import Retriever

logger = structlog.get_logger(__name__)

RATE_LIMIT_WINDOW_SECONDS = 60


async def _init_storage(app: FastAPI, settings: Settings, embeddings: EmbeddingGateway) -> None:
    app.state.postgres = None
    app.state.pool = None
    if settings.storage_backend == "memory":
        app.state.example_store = InMemoryExampleStore(
            embedding_provider=embeddings,
            dimension=settings.embedding_dimensions,
        )
        app.state.interaction_store = InMemoryInteractionStore()
        logger.info("storage_initialized", backend="memory")
        return

    postgres = PostgresClient(
        settings.database_url,
        embedding_provider=embeddings,
        dimension=settings.embedding_dimensions,
        min_size=settings.db_pool_min,
        max_size=settings.db_pool_max,
    )
    await postgres.connect()
    try:
        await postgres.create_tables()
    except Exception as e:
        logger.error("schema_setup_failed", error=str(e))
        await postgres.disconnect()
        raise
    app.state.postgres = postgres

    pool = create_pool(settings.database_url, settings.db_pool_min, settings.db_pool_max)
    try:
        await pool.open()
    except Exception as e:
        logger.error("pool_open_failed", error=str(e))
        await pool.close()
        await postgres.disconnect()
        raise
    app.state.pool = pool

    app.state.example_store = postgres
    app.state.interaction_store = PostgresInteractionStore(pool=pool)
    logger.info("storage_initialized", backend="postgres")


def _init_rate_limiter(app: FastAPI, settings: Settings) -> None:
    if settings.rate_limit_backend == "redis":
        redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        app.state.redis = redis_client
        app.state.rate_limiter = RedisRateLimiter(
            client=redis_client,
            max_requests=settings.rate_limit_per_minute,
            window_seconds=RATE_LIMIT_WINDOW_SECONDS,
        )
    else:
        app.state.redis = None
        app.state.rate_limiter = InMemoryRateLimiter(
            max_requests=settings.rate_limit_per_minute,
            window_seconds=RATE_LIMIT_WINDOW_SECONDS,
        )


def wire_services(app: FastAPI, settings: Settings) -> None:
    """Build the engine components on top of the stores already in app.state."""
    embeddings = app.state.embeddings
    completion = app.state.completion
    app.state.retriever = Retriever(app.state.example_store, embeddings)
    app.state.policy = ResponsePolicy(
        retriever=app.state.retriever,
        completion=completion,
        max_examples=settings.max_examples_to_retrieve,
        similarity_threshold=settings.similarity_threshold,
        direct_reuse_threshold=settings.direct_reuse_threshold,
    )
    app.state.orchestrator = ChatOrchestrator(
        policy=app.state.policy,
        examples=app.state.example_store,
        interactions=app.state.interaction_store,
        interaction_logger=InteractionLogger(app.state.interaction_store),
        default_language=settings.default_language,
    )
    app.state.feedback_loop = LearningFeedbackLoop(
        examples=app.state.example_store,
        interactions=app.state.interaction_store,
        embeddings=embeddings,
        auto_promote_enabled=settings.auto_promote_enabled,
        auto_promote_min_rating=settings.auto_promote_min_rating,
    )
    app.state.curator = ExampleCurator(
        app.state.example_store, completion, embeddings=embeddings
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Initializes storage and provider clients on startup and closes them on
    shutdown. Every component is stored in app.state for dependency injection.
    """
    settings: Settings = app.state.settings
    app.state.embeddings = EmbeddingGateway(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        dimensions=settings.embedding_dimensions,
        timeout=settings.embedding_timeout_seconds,
    )
    app.state.completion = CompletionGateway.from_settings(settings)

    await _init_storage(app, settings, app.state.embeddings)
    _init_rate_limiter(app, settings)
    wire_services(app, settings)
    logger.info("application_started", env=settings.app_env, storage=settings.storage_backend)

    yield

    if getattr(app.state, "redis", None):
        await close_redis(app.state.redis)
    if getattr(app.state, "pool", None):
        await close_pool(app.state.pool)
    if getattr(app.state, "postgres", None):
        await app.state.postgres.disconnect()

    logger.info("database_connections_closed")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create the FastAPI application."""
    settings = settings or load_settings()
    app = FastAPI(
        title="Home Service Receptionist RAG Backend",
        version="0.1.0",
        description="Retrieval-augmented customer support for home-service businesses",
        lifespan=lifespan,
    )
    app.state.settings = settings
    install_middleware(app, settings)

    # Register exception handlers
    app.add_exception_handler(
        AppError,
        cast(Callable[[Request, Exception], Awaitable[Response]], app_error_handler),
    )
    app.add_exception_handler(
        HTTPException,
        cast(Callable[[Request, Exception], Awaitable[Response]], http_exception_handler),
    )

    # Register routers
    app.include_router(router)
    app.include_router(chat_router, prefix="/api/v1")
    app.include_router(examples_router, prefix="/api/v1")
    install_metrics(app, MetricsConfig())

    return app


router = APIRouter()


def install_middleware(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def enforce_request_size(request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                if int(content_length) > settings.request_max_bytes:
                    return JSONResponse(
                        status_code=413,
                        content={"detail": "Request body too large"},
                    )
            except ValueError:
                return JSONResponse(
                    status_code=400,
                    content={"detail": "Invalid content-length header"},
                )
        return await call_next(request)


@router.get("/health")
def health_check(request: Request) -> dict:
    """Health check endpoint."""
    settings = getattr(request.app.state, "settings", None)
    return {
        "status": "ok",
        "storage": settings.storage_backend if settings else None,
    }


def run() -> None:
    """Run the application with uvicorn."""
    import uvicorn

    settings = load_settings()
    uvicorn.run(
        "receptionist_rag_backend.main:app",
        host=settings.backend_host,
        port=settings.backend_port,
    )


app = create_app()
