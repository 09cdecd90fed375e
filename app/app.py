import logging
import threading
from fastapi import FastAPI, HTTPException
import uvicorn
from typing import List, Optional
from datetime import datetime
from prometheus_fastapi_instrumentator import Instrumentator
from app.modules.metrics import kubecost_export_http_requests_total

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create the FastAPI app
app = FastAPI(title="Kubecost Efficiency Exporter", description="Appends Kubecost allocation data to S3 datasets")

# Initialize and apply instrumentation BEFORE defining routes
instrumentator = Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/metrics"],
    inprogress_name="kubecost_export_inprogress",
    inprogress_labels=True,
)
instrumentator.instrument(app).expose(app)
logger.info("Application instrumented with Prometheus metrics at /metrics")

from app.modules.config import ALL_KINDS, Settings
from app.modules.errors import ConfigError
from app.modules.models import PipelineResult
from app.run import export

# Health check endpoint
@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}

# API version
@app.get("/version")
def version():
    """Return API version information"""
    return {"version": "0.1.0", "api": "Kubecost Efficiency Exporter", "kinds": ALL_KINDS}

def parse_kinds(kinds: Optional[str]) -> Optional[List[str]]:
    """Parse the comma separated kinds filter, None means every kind"""
    if not kinds:
        return None
    selected = [kind.strip() for kind in kinds.split(",") if kind.strip()]
    unknown = [kind for kind in selected if kind not in ALL_KINDS]
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown resource kinds: {', '.join(unknown)}")
    return selected

export_lock = threading.Lock()

# Run one export of yesterday's allocations
@app.post("/export", response_model=List[PipelineResult])
def run_export(kinds: Optional[str] = None):
    """Export allocations for all (or the selected) resource kinds and return the per-kind outcome"""
    selected = parse_kinds(kinds)
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        raise HTTPException(status_code=500, detail=f"Invalid configuration: {e}")

    # Datasets are rewritten whole, so only one export may run at a time
    if not export_lock.acquire(blocking=False):
        raise HTTPException(status_code=409, detail="An export is already running")
    try:
        return export(settings, selected)
    finally:
        export_lock.release()

@app.middleware("http")
async def metrics_middleware(request, call_next):
    response = await call_next(request)

    # Update request metrics
    kubecost_export_http_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code
    ).inc()

    return response


if __name__ == "__main__":
    uvicorn.run("app.app:app", host="0.0.0.0", port=8000, log_level="info")
