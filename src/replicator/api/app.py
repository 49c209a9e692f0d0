from __future__ import annotations
from pathlib import Path
import gc
import logging
from fastapi import FastAPI, status, HTTPException, Depends
from replicator.api.deps import get_service, teardown_service
from replicator.api.errors import value_error_handler, model_not_built_handler, unhandled_exception_handler
from contextlib import asynccontextmanager
from replicator.exceptions import ModelNotBuiltError
from replicator.inference.replicator_service import ReplicatorScoringService, ReplicatorServiceConfig
from replicator.api.schemas import ScoreRequest, ScoreResponse, BatchScoreRequest, BatchScoreResponse, ItemResult, ErrorDetail

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    #---Startup---
    try:
        repo_root = Path(__file__).resolve().parents[3]
        cfg = ReplicatorServiceConfig()
        app.state.service = ReplicatorScoringService(repo_root=repo_root, cfg=cfg)
        app.state.ready = True
        app.state.startup_error = None
    except Exception as e:
        # /health reports startup_error
        logger.exception("Failed to load replicator artifacts")
        app.state.service = None
        app.state.ready = False
        app.state.startup_error = str(e)
    yield
    #--shutdown--
    app.state.service = None
    teardown_service()
    gc.collect()

app = FastAPI(lifespan=lifespan)
app.add_exception_handler(ValueError, value_error_handler)
app.add_exception_handler(ModelNotBuiltError, model_not_built_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


@app.get("/health")
async def health_check():
    """Readiness + Liveness check: 200 only when artifacts loaded successfully, else 503"""
    if getattr(app.state, "ready", False):
        return {"ready": True, "startup_error": None}
    err = getattr(app.state, "startup_error", "Unknown startup error")
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"Replicator scoring service failed to load. Error: {err}")


@app.get("/model")
async def get_model(service: ReplicatorScoringService = Depends(get_service)):
    """Topology summary, options and training metrics of the loaded model"""
    return service.describe()


@app.post("/score")
async def single_score(input: ScoreRequest, service: ReplicatorScoringService = Depends(get_service)) -> ScoreResponse:
    # validation errors bubble up as ValueError and are mapped to 422 by value_error_handler
    return {
        "request_id": input.request_id,
        "result": service.score_features(input.features),
    }


@app.post("/score:batch")
# per-item errors are captured, the batch itself is rejected (422) above max_batch_size
async def batch_score(input: BatchScoreRequest, service: ReplicatorScoringService = Depends(get_service)) -> BatchScoreResponse:
    if len(input.items) > service.cfg.max_batch_size:
        raise ValueError(f"Batch size cannot exceed {service.cfg.max_batch_size}, found {len(input.items)} instead!")

    succeeded = 0
    failed = 0
    item_results = []

    for item in input.items:
        try:
            item_results.append(ItemResult(item_id=item.item_id, result=service.score_features(item.features), error=None))
            succeeded += 1
        except ValueError as e:
            item_results.append(ItemResult(item_id=item.item_id, result=None, error=ErrorDetail(type="ValidationError", message=str(e))))
            failed += 1

    return {
        "request_id": input.request_id,
        "results": item_results,
        "summary": {"total": len(input.items), "succeeded": succeeded, "failed": failed},
    }
