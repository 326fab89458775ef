from __future__ import annotations

from typing import Dict, Literal

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from loyalty_api.core.settings import settings

router = APIRouter()


class ComponentStatus(BaseModel):
    status: Literal["ready", "starting", "disabled", "error"]
    detail: str | None = Field(default=None, description="Human readable status detail")


class ReadinessPayload(BaseModel):
    status: Literal["ready", "degraded", "error"]
    components: Dict[str, ComponentStatus]


@router.get("/healthz", summary="Service health check")
async def service_health() -> dict[str, str]:
    return {"status": "ok", "environment": settings.environment}


@router.get("/readyz", summary="Service readiness", response_model=ReadinessPayload)
async def service_readiness(request: Request) -> ReadinessPayload:
    components: Dict[str, ComponentStatus] = {}
    status: Literal["ready", "degraded", "error"] = "ready"

    reconciler = getattr(request.app.state, "accrual_reconciler", None)
    if settings.reconciler_enabled and reconciler is not None:
        running = reconciler.is_running
        last = reconciler.last_result
        component_status: Literal["ready", "starting", "disabled", "error"] = "ready" if running else "starting"
        detail = None if running else "Accrual reconciler not running"
        if last is not None and last.error and last.retry_after is None:
            component_status = "error"
            detail = last.error
            status = "error"
        elif not running:
            status = "degraded"
        components["accrual_reconciler"] = ComponentStatus(status=component_status, detail=detail)
    else:
        components["accrual_reconciler"] = ComponentStatus(
            status="disabled",
            detail="Accrual reconciler disabled via settings",
        )

    source = getattr(request.app.state, "accrual_source", None)
    if source is None:
        components["accrual_source"] = ComponentStatus(status="error", detail="Accrual source not configured")
        status = "error"
    else:
        components["accrual_source"] = ComponentStatus(status="ready", detail=type(source).__name__)

    return ReadinessPayload(status=status, components=components)
