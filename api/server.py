"""
UCIE Job Tracker API: FastAPI server.

Endpoints:
    GET    /                          Welcome + links
    GET    /health                    Status, boot time, tracked job counts
    GET    /kinds                     Configured job kinds and their cadence
    POST   /jobs/{kind}/{symbol}      Submit a job (body: optional context) and start polling
    GET    /jobs                      Every tracked job
    GET    /jobs/{tracking_id}        One tracked job
    POST   /jobs/{tracking_id}/retry  Stop and resubmit from scratch
    DELETE /jobs/{tracking_id}        Stop polling and forget the job
    GET    /docs                      Auto-generated OpenAPI docs
"""
from __future__ import annotations

import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, HTTPException, Request

from job_poller.kinds import available_kinds, build_controller, describe_kinds
from shared.errors import SubmissionError
from shared.job_registry import registry
from shared.job_view import present

# ---------------------------------------------------------------------------
# Globals: set on startup
# ---------------------------------------------------------------------------
_boot_time: Optional[str] = None

# Controllers poll on their own threads; tests switch this off and drive polls by hand.
BACKGROUND_POLLING = os.getenv("UCIE_BACKGROUND_POLLING", "1") != "0"


def _view(tracking_id: str) -> Dict[str, Any]:
    controller = registry.get(tracking_id)
    if controller is None:
        raise HTTPException(status_code=404, detail=f"Job '{tracking_id}' not found")
    return {"tracking_id": tracking_id, **present(controller)}


# ---------------------------------------------------------------------------
# Lifespan: startup / shutdown
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    global _boot_time

    _boot_time = datetime.now(timezone.utc).isoformat()
    print(f"Job tracker started (kinds={available_kinds()})")

    yield

    # Shutdown: no polling thread may outlive the app
    stopped = registry.stop_all()
    print(f"Job tracker stopped ({stopped} active jobs cancelled)")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="UCIE Job Tracker API",
    description=(
        "Tracks long-running UCIE analysis jobs (GPT summaries and Caesar deep research): "
        "submits them, polls their status on a fixed cadence, estimates progress and "
        "presents the final report or error."
    ),
    version="0.1.0",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# GET /
# ---------------------------------------------------------------------------
@app.get("/", tags=["info"])
async def root():
    return {
        "name": "UCIE Job Tracker API",
        "version": "0.1.0",
        "description": "Async job polling for UCIE AI analysis",
        "endpoints": {
            "/health": "Tracker status and job counts",
            "/kinds": "Configured job kinds",
            "/jobs/{kind}/{symbol}": "POST to submit a job (e.g. /jobs/caesar_research/BTC)",
            "/jobs": "All tracked jobs",
            "/jobs/{tracking_id}": "One tracked job; POST .../retry to resubmit, DELETE to stop",
            "/docs": "OpenAPI documentation",
        },
        "kinds": available_kinds(),
    }


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------
@app.get("/health", tags=["info"])
async def health():
    return {
        "status": "healthy",
        "boot_time": _boot_time,
        "tracked_jobs": len(registry),
        "jobs_by_state": registry.counts(),
    }


# ---------------------------------------------------------------------------
# GET /kinds
# ---------------------------------------------------------------------------
@app.get("/kinds", tags=["info"])
async def kinds():
    return {"kinds": describe_kinds()}


# ---------------------------------------------------------------------------
# POST /jobs/{tracking_id}/retry
# Registered before submit so "/jobs/<id>/retry" is not read as kind/symbol.
# ---------------------------------------------------------------------------
@app.post("/jobs/{tracking_id}/retry", tags=["jobs"])
def retry_job(tracking_id: str):
    controller = registry.get(tracking_id)
    if controller is None:
        raise HTTPException(status_code=404, detail=f"Job '{tracking_id}' not found")
    try:
        controller.retry()
    except SubmissionError as exc:
        raise HTTPException(status_code=502, detail=exc.reason)
    return _view(tracking_id)


# ---------------------------------------------------------------------------
# POST /jobs/{kind}/{symbol}: Submit
# ---------------------------------------------------------------------------
@app.post("/jobs/{kind}/{symbol}", tags=["jobs"], status_code=201)
def submit_job(kind: str, symbol: str, request: Request, context: Optional[Dict[str, Any]] = Body(None)):
    """
    Submit a job and track it. A cached backend answer comes back already completed.
    The caller's Cookie header is forwarded to the backend, else UCIE_SESSION_COOKIE.
    """
    if kind not in available_kinds():
        raise HTTPException(status_code=404, detail=f"Unknown job kind '{kind}'. Valid: {available_kinds()}")

    cookie = request.headers.get("cookie") or None
    controller = build_controller(kind, session_cookie=cookie)
    try:
        controller.start(symbol, context, background=BACKGROUND_POLLING)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except SubmissionError as exc:
        raise HTTPException(status_code=502, detail=exc.reason)

    tracking_id = registry.add(controller)
    return _view(tracking_id)


# ---------------------------------------------------------------------------
# GET /jobs: All tracked jobs
# ---------------------------------------------------------------------------
@app.get("/jobs", tags=["jobs"])
async def list_jobs():
    jobs = [{"tracking_id": tid, **present(controller)} for tid, controller in registry.items()]
    return {"total": len(jobs), "jobs": jobs}


# ---------------------------------------------------------------------------
# GET /jobs/{tracking_id}
# ---------------------------------------------------------------------------
@app.get("/jobs/{tracking_id}", tags=["jobs"])
async def get_job(tracking_id: str):
    return _view(tracking_id)


# ---------------------------------------------------------------------------
# DELETE /jobs/{tracking_id}
# ---------------------------------------------------------------------------
@app.delete("/jobs/{tracking_id}", tags=["jobs"])
async def delete_job(tracking_id: str):
    controller = registry.get(tracking_id)
    if controller is None:
        raise HTTPException(status_code=404, detail=f"Job '{tracking_id}' not found")
    was_polling = controller.is_active
    registry.remove(tracking_id)
    return {"tracking_id": tracking_id, "stopped": was_polling}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run("api.server:app", host="0.0.0.0", port=port, reload=False)
