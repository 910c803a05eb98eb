from __future__ import annotations

from fastapi import FastAPI
from google import genai

from mirror_gateway.config import Settings, configure_logging, get_settings
from mirror_gateway.core.generation import GeminiGenerator, TextGenerator
from mirror_gateway.core.media import HttpImageFetcher, ImageFetcher
from mirror_gateway.core.persistence import InMemoryTranscriptStore, TranscriptStore
from mirror_gateway.core.safety import KeywordSafetyScreen, SafetyScreen
from mirror_gateway.dependencies import Services, register_exception_handlers
from mirror_gateway.internal import admin
from mirror_gateway.routers import mirror


def create_generator(settings: Settings) -> TextGenerator | None:
    if not settings.gemini_api_key:
        return None

    return GeminiGenerator(
        genai.Client(api_key=settings.gemini_api_key),
        text_model=settings.gemini_model_text,
        multimodal_model=settings.gemini_model_multi,
    )


def create_app(
    settings: Settings | None = None,
    *,
    generator: TextGenerator | None = None,
    store: TranscriptStore | None = None,
    safety: SafetyScreen | None = None,
    fetcher: ImageFetcher | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="mirror-gateway",
        version="0.1.0",
        docs_url="/docs",
        redoc_url=None,
    )

    app.state.services = Services(
        settings=settings,
        generator=generator if generator is not None else create_generator(settings),
        store=store if store is not None else InMemoryTranscriptStore(),
        safety=safety if safety is not None else KeywordSafetyScreen(),
        fetcher=fetcher if fetcher is not None else HttpImageFetcher(settings.fetch_timeout),
    )

    register_exception_handlers(app)

    app.include_router(mirror.router)
    app.include_router(admin.router)

    return app


app = create_app()
