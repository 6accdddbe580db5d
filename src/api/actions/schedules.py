from fastapi import APIRouter, Depends, Response
from fastapi.concurrency import run_in_threadpool

from api.deps import get_services
from schemas.cadence import CadenceSchedule
from schemas.requests import BatchStatusUpdate, OverrideRequest, PlanRequest
from services.runtime import ContinuityServices

router = APIRouter(prefix="/sessions/{session_id}/schedule", tags=["Cadence"])


@router.post("", response_model=CadenceSchedule, status_code=201)
async def plan_schedule(
    session_id: str,
    request: PlanRequest,
    replan: bool = False,
    services: ContinuityServices = Depends(get_services),
):
    """Plan the cadence for a closed session; ``replan=true`` resets an existing one."""
    store = services.schedules
    action = store.replan_for_session if replan else store.plan_for_session
    return await run_in_threadpool(action, session_id, request.closed_at, request.config)


@router.get("", response_model=CadenceSchedule)
async def get_schedule(session_id: str, services: ContinuityServices = Depends(get_services)):
    return await run_in_threadpool(services.schedules.require_schedule, session_id)


@router.delete("", status_code=204)
async def delete_schedule(session_id: str, services: ContinuityServices = Depends(get_services)):
    await run_in_threadpool(services.schedules.delete_schedule, session_id)
    return Response(status_code=204)


@router.post("/overrides", response_model=CadenceSchedule)
async def apply_override(
    session_id: str,
    request: OverrideRequest,
    services: ContinuityServices = Depends(get_services),
):
    """Defer the next pending batch, a named batch, or the digest."""
    return await run_in_threadpool(services.schedules.apply_override, session_id, request)


@router.put("/batches/{batch_id}", response_model=CadenceSchedule)
async def update_batch_status(
    session_id: str,
    batch_id: str,
    request: BatchStatusUpdate,
    services: ContinuityServices = Depends(get_services),
):
    return await run_in_threadpool(
        services.schedules.update_batch_status,
        session_id,
        batch_id,
        request.status,
        request,
    )
