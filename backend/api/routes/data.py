"""
Snapshot REST endpoints.

GET  /data          Current snapshot, verbatim from the store.
POST /force-update  Admin: re-run the update pipeline now.
POST /update        Admin: replace the snapshot with the request body and publish it.
"""
from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from shared.errors import LeagueFeedError
from shared.utils.logging import get_logger
from shared.utils.snapshot_store import SnapshotStore

from api.auth import require_admin
from api.dependencies import get_pipeline, get_scheduler, get_store
from scheduler.service import SchedulerService, UpdatePipeline

logger = get_logger(__name__)
router = APIRouter(tags=["data"])

NO_DATA_MESSAGE = "No data available yet"


def _reject_constant(name: str) -> Any:
    """parse_constant hook: NaN, Infinity and -Infinity are not JSON."""
    raise ValueError(f"{name} is not valid JSON")


@router.get("/data")
async def read_snapshot(store: SnapshotStore = Depends(get_store)) -> Response:
    """Return the stored snapshot as-is, or 500 when no update has succeeded yet."""
    text = store.read_text()
    if text is None:
        return JSONResponse(status_code=500, content={"error": NO_DATA_MESSAGE})
    return Response(content=text, media_type="application/json")


@router.post("/force-update", dependencies=[Depends(require_admin)])
async def force_update(
    scheduler: SchedulerService = Depends(get_scheduler),
) -> JSONResponse:
    """Run fetch → normalize → persist → publish and report the outcome."""
    try:
        await scheduler.trigger_now()
    except Exception as exc:
        # already logged by the scheduler
        return JSONResponse(status_code=500, content={"error": str(exc) or exc.__class__.__name__})
    return JSONResponse(content={"ok": True})


@router.post("/update", dependencies=[Depends(require_admin)])
async def replace_snapshot(
    request: Request,
    pipeline: UpdatePipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Store any well-formed JSON body as the snapshot and broadcast it; no schema check."""
    raw = await request.body()
    try:
        payload: Any = json.loads(raw, parse_constant=_reject_constant)
    except ValueError:  # JSONDecodeError, UnicodeDecodeError, NaN/Infinity
        return JSONResponse(status_code=400, content={"error": "Request body must be valid JSON"})

    try:
        delivered = await pipeline.replace(payload)
    except LeagueFeedError as exc:
        logger.error("snapshot_replace_failed", error=str(exc))
        return JSONResponse(status_code=500, content={"error": str(exc)})
    return JSONResponse(content={"ok": True, "delivered": delivered})
