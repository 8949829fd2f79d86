from fastapi import APIRouter, Request

router = APIRouter(prefix="", tags=["system"])


@router.get("/health")
async def health_check_v1(request: Request) -> dict:
    """API v1 health endpoint.

    Also reports how many transcription sessions are currently held in memory
    and how many are waiting for eviction.
    """

    store = request.app.state.session_store
    return {
        "status": "ok",
        "version": "v1",
        "active_sessions": len(store),
        "pending_evictions": len(store.scheduler.pending()),
    }
