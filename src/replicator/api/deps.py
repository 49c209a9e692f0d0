# get_service() dependency: the service loaded at startup, else a lazily built singleton
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from fastapi import Request

from replicator.exceptions import ModelNotBuiltError
from replicator.inference.replicator_service import ReplicatorScoringService, ReplicatorServiceConfig


@lru_cache(maxsize=1)
def _build_service() -> ReplicatorScoringService:
    """Load artifacts from the repo root once per process."""
    repo_root = Path(__file__).resolve().parents[3]
    return ReplicatorScoringService(repo_root=repo_root, cfg=ReplicatorServiceConfig())


def get_service(request: Request) -> ReplicatorScoringService:
    """
    Prefer the service stored by lifespan in app.state.service.
    A startup that already failed is reported as ModelNotBuiltError (503) without reloading.
    Lifespan not run at all (no app.state.ready): fall back to the cached singleton.
    """
    state = request.app.state
    service = getattr(state, "service", None)
    if service is not None:
        return service
    if getattr(state, "ready", None) is False:
        err = getattr(state, "startup_error", None) or "unknown startup error"
        raise ModelNotBuiltError(f"Replicator model is not loaded: {err}")
    return _build_service()


def teardown_service():
    _build_service.cache_clear()
