from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from mirror_gateway.config import Settings
from mirror_gateway.core.errors import GatewayError
from mirror_gateway.core.generation import TextGenerator
from mirror_gateway.core.media import ImageFetcher
from mirror_gateway.core.persistence import TranscriptStore
from mirror_gateway.core.safety import SafetyScreen

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    generator: TextGenerator | None
    store: TranscriptStore
    safety: SafetyScreen
    fetcher: ImageFetcher


def get_services(request: Request) -> Services:
    return request.app.state.services


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(GatewayError)
    async def handle_gateway_error(
        request: Request,
        exc: GatewayError,
    ) -> JSONResponse:
        logger.info(
            "%s %s -> %d (%s)",
            request.method,
            request.url.path,
            exc.status_code,
            exc.code or "error",
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_error())

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = exc.errors()
        if errors:
            location = ".".join(str(part) for part in errors[0]["loc"] if part != "body")
            message = f"Invalid payload: {location}: {errors[0]['msg']}"
        else:
            message = "Invalid payload"

        compat_error = GatewayError(
            status_code=400,
            message=message,
            code="invalid_request",
        )
        return JSONResponse(
            status_code=compat_error.status_code,
            content=compat_error.to_error(),
        )
