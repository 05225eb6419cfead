from fastapi import APIRouter, Depends
from src.auth import AccessContext, require_super_admin
from src.models.access import AccessMetricsResponse
from src.observability import log_event, metrics_snapshot, reset_metrics

router = APIRouter(prefix="/api/super-admin", tags=["super-admin"])


@router.get("/access-metrics", response_model=AccessMetricsResponse)
async def get_access_metrics(_access: AccessContext = Depends(require_super_admin())):
    """In-process access decision counters."""
    return AccessMetricsResponse(counters=metrics_snapshot())


@router.post("/access-metrics/reset", response_model=AccessMetricsResponse)
async def reset_access_metrics(access: AccessContext = Depends(require_super_admin())):
    counters = metrics_snapshot()
    reset_metrics()
    log_event(
        "access_metrics_reset",
        user_id=access.principal.id,
        counter_count=len(counters),
    )
    return AccessMetricsResponse(counters=counters)
