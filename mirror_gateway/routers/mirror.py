from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from mirror_gateway.dependencies import Services, get_services
from mirror_gateway.mirror.adapter import (
    create_action_task,
    create_chat_stream,
    create_checkin_feedback,
    create_reframe,
    create_structured_chat,
    safety_block,
)
from mirror_gateway.mirror.schemas import (
    ActionGenerateRequest,
    ChatTurnRequest,
    CheckinRequest,
    ReframeRequest,
)

router = APIRouter(prefix="/api/mirror", tags=["mirror"])


@router.post("/chat")
async def chat(payload: ChatTurnRequest, services: Services = Depends(get_services)):
    blocked = safety_block(payload, services)
    if blocked is not None:
        return JSONResponse(content=blocked)

    return StreamingResponse(
        create_chat_stream(payload, services),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@router.post("/chat/structured")
async def chat_structured(
    payload: ChatTurnRequest,
    services: Services = Depends(get_services),
):
    blocked = safety_block(payload, services)
    if blocked is not None:
        return JSONResponse(content=blocked)

    return JSONResponse(content=await create_structured_chat(payload, services))


@router.post("/reframe")
async def reframe(payload: ReframeRequest, services: Services = Depends(get_services)):
    return JSONResponse(content=await create_reframe(payload, services))


@router.post("/action/generate")
async def action_generate(
    payload: ActionGenerateRequest,
    services: Services = Depends(get_services),
):
    return JSONResponse(content=await create_action_task(payload, services))


@router.post("/action/checkin")
async def action_checkin(
    payload: CheckinRequest,
    services: Services = Depends(get_services),
):
    return JSONResponse(content=await create_checkin_feedback(payload, services))
