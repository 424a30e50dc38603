from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..errors import SnapshotError
from ..fcfs import schedule_fcfs
from ..incremental import schedule_incremental_async
from ..io import result_to_dict
from ..reporting import collect_instructor_shortages, fulfilment_frame
from ..schemas import ScheduleOptions, ScheduleRequest, SnapshotModel, SnapshotRequest
from .config import SERVICE_NAME
from .snapshot_store import delete_snapshot, list_snapshots, load_snapshot, record_plan, save_snapshot

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title="Tutor Scheduler API", version=__version__)


def _parse_origins(value: str | None) -> list[str]:
    if not value:
        return []
    return [entry.strip() for entry in value.split(",") if entry.strip()]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_parse_origins(os.getenv("ALLOWED_ORIGINS")) or ["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _to_domain(model: SnapshotModel):
    try:
        return model.to_domain()
    except SnapshotError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@app.get("/health")
def health_check():
    return {"status": "healthy", "service": SERVICE_NAME, "version": __version__}


@app.post("/api/schedule/auto-assign")
async def auto_assign(req: ScheduleRequest) -> Dict[str, Any]:
    snapshot = _to_domain(req.snapshot)
    result = await schedule_incremental_async(snapshot, yield_every=req.options.yield_every)
    logger.info(
        "auto-assign: %d slots assigned, %d change log entries",
        len(result.assignments),
        len(result.change_log),
    )
    return result_to_dict(result)


@app.post("/api/schedule/interview-assign")
def interview_assign(req: ScheduleRequest) -> Dict[str, Any]:
    snapshot = _to_domain(req.snapshot)
    result = schedule_fcfs(snapshot)
    logger.info("interview-assign: %d requester(s) unassigned", len(result.unassigned))
    return result_to_dict(result)


@app.post("/api/schedule/shortages")
def shortages(req: SnapshotModel) -> Dict[str, Any]:
    snapshot = _to_domain(req)
    found = collect_instructor_shortages(snapshot, snapshot.assignments)
    fulfilment = fulfilment_frame(snapshot, snapshot.assignments)
    return {
        "shortages": [item.to_dict() for item in found],
        "num_shortages": len(found),
        # round-trip through JSON so numpy scalars become plain ints
        "fulfilment": json.loads(fulfilment.to_json(orient="records", force_ascii=False)),
    }


@app.get("/api/snapshots")
def get_snapshots():
    return [stored.summary() for stored in list_snapshots()]


@app.post("/api/snapshots")
def create_snapshot(req: SnapshotRequest):
    return save_snapshot(req.name, req.description, req.state).summary()


@app.get("/api/snapshots/{snapshot_id}")
def read_snapshot(snapshot_id: str):
    try:
        return load_snapshot(snapshot_id).to_dict()
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Snapshot not found")


@app.post("/api/snapshots/{snapshot_id}/auto-assign")
async def auto_assign_stored(
    snapshot_id: str, options: Optional[ScheduleOptions] = None
) -> Dict[str, Any]:
    """Schedule a stored snapshot and keep the new plan as its prior plan."""
    try:
        stored = load_snapshot(snapshot_id)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail="Snapshot not found")
    yield_every = options.yield_every if options else ScheduleOptions().yield_every
    result = await schedule_incremental_async(_to_domain(stored.state), yield_every=yield_every)
    updated = record_plan(snapshot_id, result)
    logger.info("auto-assign %s: %d change log entries recorded", snapshot_id, len(result.change_log))
    return {**result_to_dict(result), "snapshot": updated.summary()}


@app.delete("/api/snapshots/{snapshot_id}")
def remove_snapshot(snapshot_id: str):
    if not delete_snapshot(snapshot_id):
        raise HTTPException(status_code=404, detail="Snapshot not found")
    return {"status": "deleted"}
