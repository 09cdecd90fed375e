"""Shared fixtures for exporter tests."""

from __future__ import annotations

import io
from typing import Any

import pytest
from botocore.exceptions import ClientError

from app.modules.config import Settings
from app.modules.kinds import build_descriptors, descriptors_by_kind

WINDOW = ("2024-07-27T00:00:00Z", "2024-07-28T00:00:00Z")


class FakeS3:
    """In-memory stand-in for the boto3 S3 client calls used by DatasetStore."""

    def __init__(self, objects: dict[str, bytes] | None = None) -> None:
        self.objects: dict[str, bytes] = dict(objects or {})
        self.puts: list[dict[str, Any]] = []
        self.head_error_code: str | None = None
        self.fail_put = False

    @staticmethod
    def _error(code: str, operation: str) -> ClientError:
        return ClientError({"Error": {"Code": code, "Message": code}}, operation)

    def head_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        if self.head_error_code:
            raise self._error(self.head_error_code, "HeadObject")
        if Key not in self.objects:
            raise self._error("404", "HeadObject")
        return {"ContentLength": len(self.objects[Key])}

    def get_object(self, Bucket: str, Key: str) -> dict[str, Any]:
        if Key not in self.objects:
            raise self._error("NoSuchKey", "GetObject")
        return {"Body": io.BytesIO(self.objects[Key])}

    def put_object(self, Bucket: str, Key: str, Body: bytes, ContentType: str | None = None) -> dict:
        if self.fail_put:
            raise self._error("AccessDenied", "PutObject")
        self.puts.append({"Bucket": Bucket, "Key": Key, "ContentType": ContentType})
        self.objects[Key] = Body
        return {}

    def text(self, key: str) -> str:
        return self.objects[key].decode("utf-8")


def make_item(name: str, properties: dict[str, Any] | None = None, **overrides: Any) -> dict[str, Any]:
    """Build a raw allocation item as returned by /model/allocation."""
    item: dict[str, Any] = {
        "name": name,
        "properties": properties if properties is not None else {},
        "window": {"start": WINDOW[0], "end": WINDOW[1]},
        "cpuCost": 1.5,
        "gpuCost": 0,
        "ramCost": 2.0,
        "pvCost": 0,
        "networkCost": 0.1,
        "loadBalancerCost": 0,
        "sharedCost": 0,
        "totalCost": 3.6,
        "cpuEfficiency": 0.5,
        "ramEfficiency": 0.6,
        "totalEfficiency": 0.55,
    }
    item.update(overrides)
    return item


@pytest.fixture
def fake_s3() -> FakeS3:
    return FakeS3()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        bucket_name="cost-datasets",
        cluster_name="prod-eks",
        window=WINDOW,
        local_output_dir=None,
    )


@pytest.fixture
def descriptors():
    return descriptors_by_kind(build_descriptors())
