from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from vidrelay.scheduler import RetentionScheduler
from vidrelay.storage import FileStore
from vidrelay.utils import run_in_threadpool

from .deps import get_scheduler, get_store

router = APIRouter()


@router.get("/health", response_class=JSONResponse)
async def health(
    store: FileStore = Depends(get_store),
    scheduler: RetentionScheduler = Depends(get_scheduler),
):
    next_sweep = scheduler.next_sweep_at()
    files = await run_in_threadpool(store.list_files)
    return {
        "status": "success",
        "data": {
            "scheduler_running": scheduler.running,
            "pending_deletions": len(scheduler.pending()),
            "next_sweep_at": next_sweep.isoformat() if next_sweep else None,
            "stored_files": len(files),
        },
    }
