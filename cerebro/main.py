from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings, settings as default_settings
from .db import init_models, make_engine
from .errors import CerebroError
from .logging_config import configure_logging
from .routers import chat, documents
from .services.embedding import EmbeddingProvider, EmbeddingService
from .services.ingestion import DocumentIngestionPipeline
from .services.rag import QueryService
from .services.store import DocumentStore
from .services.vector_search import VectorSearchIndex

log = structlog.get_logger(__name__)


def create_app(settings: Settings | None = None, provider: EmbeddingProvider | None = None) -> FastAPI:
    settings = settings or default_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.LOG_LEVEL)
        engine = make_engine(settings.database_url)
        await init_models(engine)

        store = DocumentStore(engine)
        embedding_service = EmbeddingService.from_settings(settings, provider)
        index = VectorSearchIndex(
            store,
            dimension=settings.EMBED_DIM,
            index_name=settings.VECTOR_INDEX_NAME,
            candidate_multiplier=settings.SEARCH_CANDIDATE_MULTIPLIER,
        )
        await index.ensure_index()

        app.state.settings = settings
        app.state.engine = engine
        app.state.index = index
        app.state.pipeline = DocumentIngestionPipeline.from_settings(settings, store, embedding_service)
        app.state.query_service = QueryService.from_settings(settings, embedding_service, index)
        log.info("Application started", embedding_provider=settings.EMBEDDING_PROVIDER)
        yield
        await engine.dispose()
        log.info("Application shutdown")

    app = FastAPI(title="Cerebro AI", version="0.1.0", lifespan=lifespan)
    app.add_middleware(CORSMiddleware,
        allow_origins=[o.strip() for o in settings.ALLOWED_ORIGINS.split(",")],
        allow_credentials=True, allow_methods=["*"], allow_headers=["*"])

    @app.exception_handler(CerebroError)
    async def cerebro_error_handler(request: Request, exc: CerebroError):
        log.error("Request failed", path=request.url.path, method=request.method,
                  error_type=type(exc).__name__, error=exc.message)
        body = {"status": "error", "message": exc.message, "code": exc.status_code}
        if exc.document_id is not None:
            body["document_id"] = str(exc.document_id)
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.get("/health")
    async def health(request: Request):
        database, vector_index = "connected", "absent"
        try:
            async with request.app.state.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            if await request.app.state.index.exists():
                vector_index = "present"
        except SQLAlchemyError:
            database = "disconnected"
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "services": {"database": database, "vector_index": vector_index},
        }

    app.include_router(documents.router, prefix="/v1")
    app.include_router(chat.router, prefix="/v1")
    return app


app = create_app()
