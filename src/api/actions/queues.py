from fastapi import APIRouter, Depends, Response
from fastapi.concurrency import run_in_threadpool

from api.deps import get_services
from core.errors import NotFoundError
from schemas.moderation import ModerationQueueRecord
from schemas.requests import QueueProjectionRequest
from services.runtime import ContinuityServices

router = APIRouter(tags=["Moderation"])


@router.post("/sessions/{session_id}/queue", response_model=ModerationQueueRecord)
async def project_queue(
    session_id: str,
    request: QueueProjectionRequest,
    services: ContinuityServices = Depends(get_services),
):
    """Project the session's deltas into a moderation queue and store it."""
    return await run_in_threadpool(services.publishing.project_queue, session_id, request.deltas)


@router.get("/sessions/{session_id}/queue", response_model=ModerationQueueRecord)
async def get_queue(session_id: str, services: ContinuityServices = Depends(get_services)):
    record = await run_in_threadpool(services.queues.get_queue, session_id)
    if record is None:
        raise NotFoundError("moderation_queue_missing")
    return record


@router.delete("/sessions/{session_id}/queue", status_code=204)
async def delete_queue(session_id: str, services: ContinuityServices = Depends(get_services)):
    await run_in_threadpool(services.queues.delete_queue, session_id)
    return Response(status_code=204)


@router.get("/queues", response_model=list[ModerationQueueRecord])
async def list_queues(services: ContinuityServices = Depends(get_services)):
    """Stored queue snapshots, most recently updated first."""
    return await run_in_threadpool(services.queues.list_queues)
