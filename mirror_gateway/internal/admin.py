from __future__ import annotations

from fastapi import APIRouter, Depends

from mirror_gateway.dependencies import Services, get_services

router = APIRouter(prefix="/internal", tags=["internal"])


@router.get("/healthz")
async def healthz(services: Services = Depends(get_services)) -> dict[str, str]:
    return {
        "status": "ok",
        "generator": "configured" if services.generator is not None else "missing",
    }
