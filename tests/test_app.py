"""Tests for the exporter HTTP service."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from app.app import app, export_lock
from app.modules.models import PipelineResult


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


class TestServiceEndpoints:
    """Tests for the FastAPI routes."""

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_version_lists_kinds(self, client: TestClient) -> None:
        assert "controllerKind" in client.get("/version").json()["kinds"]

    def test_export_returns_per_kind_results(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BUCKET_NAME", "cost-datasets")
        monkeypatch.delenv("REPORT_WINDOW", raising=False)
        results = [
            PipelineResult(kind="pod", success=True, rows={"Pod": 3}),
            PipelineResult(kind="node", success=False, stage="fetch", error="connection refused"),
        ]

        with patch("app.app.export", return_value=results) as export:
            response = client.post("/export", params={"kinds": "pod,node"})

        assert response.status_code == 200
        assert response.json()[0]["rows"] == {"Pod": 3}
        assert response.json()[1]["stage"] == "fetch"
        settings, kinds = export.call_args.args
        assert settings.bucket_name == "cost-datasets"
        assert kinds == ["pod", "node"]

    def test_export_rejects_unknown_kind(self, client: TestClient) -> None:
        response = client.post("/export", params={"kinds": "statefulset"})
        assert response.status_code == 400

    def test_export_without_bucket_is_server_error(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("BUCKET_NAME", raising=False)
        monkeypatch.delenv("REPORT_WINDOW", raising=False)

        with patch("app.app.export") as export:
            response = client.post("/export")

        assert response.status_code == 500
        export.assert_not_called()

    def test_overlapping_export_is_rejected(
        self, client: TestClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("BUCKET_NAME", "cost-datasets")
        monkeypatch.delenv("REPORT_WINDOW", raising=False)

        with patch("app.app.export", return_value=[]) as export:
            assert export_lock.acquire(blocking=False)
            try:
                response = client.post("/export")
            finally:
                export_lock.release()
            assert client.post("/export").status_code == 200

        assert response.status_code == 409
        export.assert_called_once()

    def test_metrics_endpoint(self, client: TestClient) -> None:
        client.get("/health")
        body = client.get("/metrics").text
        assert "kubecost_export_http_requests_total" in body
