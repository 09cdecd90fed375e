"""Tests for settings and kind descriptors."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.modules.config import ALL_KINDS, Settings, default_window, parse_window
from app.modules.errors import ConfigError
from app.modules.kinds import build_descriptors, descriptors_by_kind


class TestWindow:
    """Tests for report window derivation."""

    def test_default_window_is_yesterday(self) -> None:
        now = datetime(2024, 7, 28, 15, 30, tzinfo=timezone.utc)
        assert default_window(now) == ("2024-07-27T00:00:00Z", "2024-07-28T00:00:00Z")

    def test_default_window_crosses_month(self) -> None:
        now = datetime(2024, 3, 1, 0, 5, tzinfo=timezone.utc)
        assert default_window(now) == ("2024-02-29T00:00:00Z", "2024-03-01T00:00:00Z")

    def test_parse_window(self) -> None:
        assert parse_window("2024-07-01T00:00:00Z, 2024-07-08T00:00:00Z") == (
            "2024-07-01T00:00:00Z",
            "2024-07-08T00:00:00Z",
        )

    @pytest.mark.parametrize("text", ["2024-07-01T00:00:00Z", "a,b,c", ",b"])
    def test_parse_window_rejects_malformed(self, text: str) -> None:
        with pytest.raises(ConfigError):
            parse_window(text)


class TestSettings:
    """Tests for Settings.from_env()."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in (
            "KUBECOST_ENDPOINT", "CLUSTER_NAME", "BUCKET_NAME", "BUCKET_REGION", "REPORT_WINDOW",
            "FETCH_MAX_ATTEMPTS", "SHARED_COST_KINDS", "LOCAL_COPY_KINDS", "PUSHGATEWAY_URL", "LOG_LEVEL",
        ):
            monkeypatch.delenv(name, raising=False)

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KUBECOST_ENDPOINT", "http://kubecost.example:9090")
        monkeypatch.setenv("CLUSTER_NAME", "prod-eks")
        monkeypatch.setenv("BUCKET_NAME", "cost-datasets")
        monkeypatch.setenv("BUCKET_REGION", "ap-south-1")
        monkeypatch.setenv("REPORT_WINDOW", "2024-07-27T00:00:00Z,2024-07-28T00:00:00Z")
        monkeypatch.setenv("SHARED_COST_KINDS", "node,pod")

        settings = Settings.from_env()

        assert settings.kubecost_endpoint == "http://kubecost.example:9090"
        assert settings.cluster_name == "prod-eks"
        assert settings.bucket_region == "ap-south-1"
        assert settings.window_param == "2024-07-27T00:00:00Z,2024-07-28T00:00:00Z"
        assert settings.shared_cost_kinds == ["node", "pod"]
        assert settings.fetch_max_attempts == 3
        assert settings.pushgateway_url is None

    def test_default_window_from_now(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BUCKET_NAME", "cost-datasets")
        settings = Settings.from_env(now=datetime(2024, 7, 28, 1, 0, tzinfo=timezone.utc))
        assert settings.window == ("2024-07-27T00:00:00Z", "2024-07-28T00:00:00Z")

    def test_bucket_is_required(self) -> None:
        with pytest.raises(ConfigError):
            Settings.from_env()

    def test_unknown_kind_is_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BUCKET_NAME", "cost-datasets")
        monkeypatch.setenv("LOCAL_COPY_KINDS", "controller,statefulset")
        with pytest.raises(ConfigError):
            Settings.from_env()

    def test_unknown_log_level_is_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BUCKET_NAME", "cost-datasets")
        monkeypatch.setenv("LOG_LEVEL", "verbose")
        with pytest.raises(ConfigError):
            Settings.from_env()

    def test_log_level_is_case_insensitive(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BUCKET_NAME", "cost-datasets")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert Settings.from_env().log_level == "DEBUG"

    def test_non_numeric_attempts_are_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BUCKET_NAME", "cost-datasets")
        monkeypatch.setenv("FETCH_MAX_ATTEMPTS", "three")
        with pytest.raises(ConfigError):
            Settings.from_env()


class TestKindDescriptors:
    """Tests for per-kind schemas."""

    def test_all_kinds_in_export_order(self) -> None:
        assert [d.kind for d in build_descriptors()] == ALL_KINDS

    def test_object_keys(self) -> None:
        keys = {d.kind: d.object_key for d in build_descriptors()}
        assert keys["cluster"] == "Cluster/Cluster.csv"
        assert keys["controllerKind"] == "ControllerKind/ControllerKind.csv"
        assert keys["service"] == "Service/Service.csv"

    def test_cluster_header(self) -> None:
        cluster = descriptors_by_kind(build_descriptors())["cluster"]
        assert cluster.header == [
            "Cluster", "Window Start", "Window End", "Cpu Cost", "Gpu Cost", "Ram Cost", "PV Cost",
            "Network Cost", "LoadBalancer Cost", "Shared Cost", "Total Cost", "Cpu Efficiency",
            "Ram Efficiency", "Total Efficiency",
        ]

    def test_controller_and_rollout_headers(self) -> None:
        controller = descriptors_by_kind(build_descriptors())["controller"]
        assert controller.header[:4] == ["Controller", "ClusterName", "Region", "Namespace"]
        assert "Shared Cost" not in controller.header
        assert controller.rollout_header == ["Rollout"] + controller.header[1:]

    def test_shared_cost_is_configurable(self) -> None:
        deployment = descriptors_by_kind(build_descriptors(shared_cost_kinds=["deployment"]))["deployment"]
        assert "Shared Cost" in deployment.header
        assert deployment.rollout_header is None

    def test_unknown_kind(self) -> None:
        with pytest.raises(KeyError):
            build_descriptors(kinds=["statefulset"])
