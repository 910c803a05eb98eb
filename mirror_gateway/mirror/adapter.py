from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator

from mirror_gateway.core.errors import GatewayError, StreamInitError
from mirror_gateway.core.generation import TextGenerator
from mirror_gateway.core.retry import StructuredOutputEngine
from mirror_gateway.core.safety import SAFETY_NOTICE
from mirror_gateway.core.streaming import PERSIST_FAILED_MESSAGE, StreamingSessionController
from mirror_gateway.core.types import GenerationRequest
from mirror_gateway.dependencies import Services

from .errors import map_generation_error
from .request_builder import (
    build_action_request,
    build_chat_request,
    build_chat_stream_request,
    build_checkin_request,
    build_reframe_request,
)
from .schemas import ActionGenerateRequest, ChatTurnRequest, CheckinRequest, ReframeRequest

logger = logging.getLogger(__name__)

GENERATOR_MISSING_MESSAGE = "The assistant is not configured on this server."


def safety_block(payload: ChatTurnRequest, services: Services) -> dict[str, Any] | None:
    if not services.safety.screen(payload.user_message):
        return None

    logger.info("turn for session %s blocked by safety screen", payload.session_id)
    return {"safe_block": True, "message": SAFETY_NOTICE}


def create_chat_stream(
    payload: ChatTurnRequest,
    services: Services,
) -> AsyncIterator[bytes]:
    if services.generator is None:
        raise StreamInitError(
            status_code=503,
            message=GENERATOR_MISSING_MESSAGE,
            code="model_unavailable",
        )

    controller = StreamingSessionController(services.generator, services.store)
    return controller.frames(
        build_chat_stream_request(payload),
        session_id=payload.session_id,
        user_message=payload.user_message,
    )


async def create_structured_chat(
    payload: ChatTurnRequest,
    services: Services,
) -> dict[str, Any]:
    request = build_chat_request(payload, services.settings.max_attempts)
    output = await _run_structured(request, services)

    content = output.model_dump(mode="json")
    try:
        await services.store.append_turn(
            payload.session_id,
            payload.user_message,
            json.dumps(content, ensure_ascii=False),
        )
    except Exception as exc:
        logger.error("[%s] could not persist turn: %s", request.task, exc)
        raise GatewayError(
            status_code=500,
            message=PERSIST_FAILED_MESSAGE,
            code="persist_failed",
        ) from exc
    return content


async def create_reframe(
    payload: ReframeRequest,
    services: Services,
) -> dict[str, Any]:
    image = await services.fetcher.fetch(payload.image_url)
    request = build_reframe_request(payload, image, services.settings.max_attempts)
    output = await _run_structured(request, services)
    return output.model_dump(mode="json")


async def create_action_task(
    payload: ActionGenerateRequest,
    services: Services,
) -> dict[str, Any]:
    request = build_action_request(payload, services.settings.max_attempts)
    output = await _run_structured(request, services)
    return output.model_dump(mode="json")


async def create_checkin_feedback(
    payload: CheckinRequest,
    services: Services,
) -> dict[str, Any]:
    request = build_checkin_request(payload, services.settings.max_attempts)
    output = await _run_structured(request, services)
    return {**output.model_dump(mode="json"), "action_task_id": payload.action_task_id}


async def _run_structured(request: GenerationRequest, services: Services) -> Any:
    engine = StructuredOutputEngine(_require_generator(services.generator))
    try:
        return await engine.run(request)
    except Exception as exc:
        mapped = map_generation_error(exc)
        if mapped.status_code >= 500:
            logger.error("[%s] generation failed: %s", request.task, exc)
        raise mapped from exc


def _require_generator(generator: TextGenerator | None) -> TextGenerator:
    if generator is None:
        raise GatewayError(
            status_code=503,
            message=GENERATOR_MISSING_MESSAGE,
            code="model_unavailable",
        )
    return generator
