import pytest
from fastapi.testclient import TestClient

import replicator.api.deps as deps_module
from replicator.api.app import app
from replicator.api.deps import get_service
from replicator.inference.classifier import ReplicatorClassifier
from replicator.inference.replicator_service import ReplicatorScoringService, ReplicatorServiceConfig


@pytest.fixture
def client_for():
    def _make(service: ReplicatorScoringService) -> TestClient:
        app.dependency_overrides[get_service] = lambda: service
        # no context manager: lifespan (artifact loading from repo root) is not run
        return TestClient(app, raise_server_exceptions=False)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def service(quick_classifier):
    return ReplicatorScoringService(cfg=ReplicatorServiceConfig(max_batch_size=3), classifier=quick_classifier)


def test_score_returns_score_pair(client_for, service):
    resp = client_for(service).post("/score", json={"request_id": "r1", "features": [5.0, 5.0, 5.0, 5.0]})

    assert resp.status_code == 200
    body = resp.json()
    assert body["request_id"] == "r1"
    result = body["result"]
    assert result["normalcy"] + result["anomaly_score"] == 1.0
    assert result["anomaly_score"] in (0.0, 1.0)
    assert result["distance"] >= 0.0
    assert result["distance_threshold"] == 0.1
    assert result["model_info"]["topology"] == "4 | 5 | 4"


def test_out_of_range_features_flagged(client_for, service):
    resp = client_for(service).post("/score", json={"features": [1000.0, 5.0, 5.0, 5.0]})
    assert resp.status_code == 200
    assert resp.json()["result"]["is_anomaly"] is True


def test_wrong_feature_count_is_422(client_for, service):
    resp = client_for(service).post("/score", json={"features": [1.0, 2.0]})
    assert resp.status_code == 422
    assert "Expected 4 features" in resp.json()["error"]["message"]


def test_batch_collects_per_item_errors(client_for, service):
    payload = {
        "request_id": "b1",
        "items": [
            {"item_id": "ok", "features": [5.0, 5.0, 5.0, 5.0]},
            {"item_id": "short", "features": [5.0]},
        ],
    }
    resp = client_for(service).post("/score:batch", json=payload)

    assert resp.status_code == 200
    body = resp.json()
    assert body["summary"] == {"total": 2, "succeeded": 1, "failed": 1}
    assert body["results"][0]["error"] is None
    assert body["results"][1]["error"]["type"] == "ValidationError"


def test_batch_over_limit_is_422(client_for, service):
    items = [{"features": [5.0, 5.0, 5.0, 5.0]}] * 4
    resp = client_for(service).post("/score:batch", json={"items": items})
    assert resp.status_code == 422


def test_model_endpoint_describes_topology(client_for, service):
    resp = client_for(service).get("/model")
    assert resp.status_code == 200
    body = resp.json()
    assert body["description"] == "Neural network: 4 | 5 | 4"
    assert body["options"] == ["-H", "-1", "-I", "5", "-D", "0.1", "-E", "0.001"]
    assert body["row_size"] == 4


def test_untrained_model_is_503(client_for):
    untrained = ReplicatorScoringService(classifier=ReplicatorClassifier())
    resp = client_for(untrained).post("/score", json={"features": [5.0, 5.0, 5.0, 5.0]})
    assert resp.status_code == 503


def test_health_reports_not_ready_without_artifacts(client_for, service, monkeypatch):
    monkeypatch.setattr(app.state, "ready", False, raising=False)
    monkeypatch.setattr(app.state, "startup_error", "artifacts missing", raising=False)
    resp = client_for(service).get("/health")
    assert resp.status_code == 503
    assert "artifacts missing" in resp.json()["detail"]


def test_failed_startup_scores_as_503_without_reloading(monkeypatch):
    monkeypatch.setattr(app.state, "service", None, raising=False)
    monkeypatch.setattr(app.state, "ready", False, raising=False)
    monkeypatch.setattr(app.state, "startup_error", "artifacts missing", raising=False)

    def reload_attempted():
        raise AssertionError("artifacts reloaded after a failed startup")

    monkeypatch.setattr(deps_module, "_build_service", reload_attempted)
    resp = TestClient(app, raise_server_exceptions=False).post("/score", json={"features": [5.0, 5.0, 5.0, 5.0]})

    assert resp.status_code == 503
    body = resp.json()
    assert body["error"]["type"] == "ModelNotBuilt"
    assert "artifacts missing" in body["error"]["message"]
