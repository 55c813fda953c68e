"""
HTTP query endpoint.

POST /api/bns/predict takes the raw query text as the request body and
returns up to four matching sections. Embeddings never leave the service.
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from ..config.config_loader import SearchConfig
from ..core.exceptions import EncoderUnavailableError
from ..retrieval.service import RetrievalService
from ..storage import create_entry_store_from_config
from ..vector.encoder import TokenIdEncoder


logger = logging.getLogger(__name__)

DEGRADED_HEADER = "X-Search-Degraded"


class SectionOut(BaseModel):
    """Public view of a section."""
    id: Optional[int] = None
    section_no: str
    title: str
    description: str
    punishment: str


class HealthOut(BaseModel):
    status: str
    encoder_ready: bool
    cached_entries: int


def create_app(
    service: RetrievalService,
    cors_origins: Optional[List[str]] = None,
    lifespan=None,
) -> FastAPI:
    """
    Build the FastAPI application around an existing service.

    Args:
        service: Shared retrieval service
        cors_origins: Allowed CORS origins (default: all)
        lifespan: Optional lifespan context for startup/shutdown work
    """
    app = FastAPI(title="BNS Section Search", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.service = service

    @app.post("/api/bns/predict", response_model=List[SectionOut])
    async def predict(request: Request, response: Response):
        body = await request.body()
        if not body:
            raise HTTPException(status_code=400, detail="Query text is required")
        # Whitespace-only text is a valid query; it encodes to the zero vector
        query = body.decode("utf-8", errors="replace")

        try:
            result = await run_in_threadpool(service.search, query)
        except EncoderUnavailableError as e:
            logger.error(f"Search unavailable: {e}")
            raise HTTPException(status_code=503, detail="Search encoder is unavailable")

        if result.degraded:
            response.headers[DEGRADED_HEADER] = "true"
        return [entry.to_public_dict() for entry in result.entries]

    @app.get("/api/bns/health", response_model=HealthOut)
    def health():
        ready = service.ready
        return {
            "status": "ok" if ready else "unavailable",
            "encoder_ready": ready,
            "cached_entries": len(service.cache),
        }

    return app


def build_app(config: Optional[SearchConfig] = None) -> FastAPI:
    """
    Build the store, encoder and service from configuration and wrap them
    in an application that imports and backfills the corpus on startup.
    """
    config = config or SearchConfig()
    store = create_entry_store_from_config(config.get_storage_config())
    encoder = TokenIdEncoder.from_config(config.get_encoder_config())
    service = RetrievalService(
        store=store,
        encoder=encoder,
        top_k=config.get_search_config().get("top_k", 4),
    )
    corpus_path = config.get_corpus_path()
    backfill_timeout = config.get_search_config().get("backfill_timeout_seconds")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await run_in_threadpool(service.start, corpus_path, backfill_timeout)
        except EncoderUnavailableError as e:
            logger.error(f"Startup backfill skipped, encoder unavailable: {e}")
        yield
        store.close()

    return create_app(
        service,
        cors_origins=config.get_api_config().get("cors_origins"),
        lifespan=lifespan,
    )
