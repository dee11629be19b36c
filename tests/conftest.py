"""Test configuration for pytest.

Provides an in-memory S3 client that behaves like the subset of the boto3 S3
API the plugin uses, raising real botocore ClientErrors, plus builders for
packaged chart archives and an isolated Helm environment.
"""

from __future__ import annotations

import io
import os
import tarfile
from typing import Any, Callable, Dict, Iterable, List, Optional

import pytest
import yaml
from botocore.exceptions import ClientError

from helm_oss.config import StorageConfig
from helm_oss.storage import Storage

TEST_BUCKET = "charts-bucket"


# ============================================================================
# Fake object store
# ============================================================================


def client_error(code: str, operation: str, status: int = 400) -> ClientError:
    return ClientError(
        {"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}},
        operation,
    )


class FakeBody:
    """Streaming body handed out by get_object."""

    def __init__(self, data: bytes) -> None:
        self._buf = io.BytesIO(data)
        self.closed = False

    def read(self, amt: Optional[int] = None) -> bytes:
        if amt is None or amt < 0:
            return self._buf.read()
        return self._buf.read(amt)

    def close(self) -> None:
        self.closed = True


class FakeS3Client:
    """In-memory stand-in for a boto3 S3 client.

    Object metadata keys are stored lowercased, as S3 returns them. page_size
    caps MaxKeys so pagination can be exercised with a handful of objects.
    """

    def __init__(self, buckets: Iterable[str] = (TEST_BUCKET,), page_size: Optional[int] = None) -> None:
        self.buckets: Dict[str, Dict[str, Dict[str, Any]]] = {b: {} for b in buckets}
        self.page_size = page_size
        self.calls: List[tuple] = []
        self.bodies: List[FakeBody] = []

    def _bucket(self, name: str, operation: str) -> Dict[str, Dict[str, Any]]:
        if name not in self.buckets:
            raise client_error("NoSuchBucket", operation, 404)
        return self.buckets[name]

    # Helpers for tests

    def add_object(
        self,
        key: str,
        data: bytes,
        metadata: Optional[Dict[str, str]] = None,
        bucket: str = TEST_BUCKET,
        content_type: Optional[str] = None,
    ) -> None:
        self.buckets[bucket][key] = {
            "Body": data,
            "Metadata": {k.lower(): v for k, v in (metadata or {}).items()},
            "ContentType": content_type,
        }

    def data(self, key: str, bucket: str = TEST_BUCKET) -> bytes:
        return self.buckets[bucket][key]["Body"]

    def metadata(self, key: str, bucket: str = TEST_BUCKET) -> Dict[str, str]:
        return self.buckets[bucket][key]["Metadata"]

    def keys(self, bucket: str = TEST_BUCKET) -> List[str]:
        return sorted(self.buckets[bucket])

    def call_count(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    # boto3 API

    def list_objects_v2(
        self,
        Bucket: str,
        MaxKeys: int = 1000,
        Prefix: str = "",
        ContinuationToken: Optional[str] = None,
        **kwargs: Any,
    ) -> Dict[str, Any]:
        self.calls.append(("list_objects_v2", {"Bucket": Bucket, "Prefix": Prefix, "ContinuationToken": ContinuationToken}))
        objects = self._bucket(Bucket, "ListObjectsV2")
        if self.page_size:
            MaxKeys = min(MaxKeys, self.page_size)

        keys = sorted(k for k in objects if k.startswith(Prefix))
        start = int(ContinuationToken) if ContinuationToken else 0
        page = keys[start:start + MaxKeys]
        truncated = start + MaxKeys < len(keys)

        response: Dict[str, Any] = {
            "Contents": [{"Key": k, "Size": len(objects[k]["Body"])} for k in page],
            "IsTruncated": truncated,
            "KeyCount": len(page),
        }
        if truncated:
            response["NextContinuationToken"] = str(start + MaxKeys)
        return response

    def head_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        self.calls.append(("head_object", {"Bucket": Bucket, "Key": Key}))
        objects = self._bucket(Bucket, "HeadObject")
        if Key not in objects:
            raise client_error("404", "HeadObject", 404)
        obj = objects[Key]
        return {"ContentLength": len(obj["Body"]), "Metadata": dict(obj["Metadata"])}

    def get_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        self.calls.append(("get_object", {"Bucket": Bucket, "Key": Key}))
        objects = self._bucket(Bucket, "GetObject")
        if Key not in objects:
            raise client_error("NoSuchKey", "GetObject", 404)
        body = FakeBody(objects[Key]["Body"])
        self.bodies.append(body)
        return {"Body": body, "Metadata": dict(objects[Key]["Metadata"])}

    def put_object(
        self,
        Bucket: str,
        Key: str,
        Body: bytes,
        ContentType: Optional[str] = None,
        Metadata: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        self.calls.append(("put_object", {"Bucket": Bucket, "Key": Key, "ContentType": ContentType, "Metadata": Metadata}))
        self._bucket(Bucket, "PutObject")
        self.add_object(Key, Body, Metadata, bucket=Bucket, content_type=ContentType)
        return {"ETag": '"fake"'}

    def delete_objects(self, Bucket: str, Delete: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append(("delete_objects", {"Bucket": Bucket, "Delete": Delete}))
        objects = self._bucket(Bucket, "DeleteObjects")
        deleted = []
        for item in Delete["Objects"]:
            objects.pop(item["Key"], None)
            deleted.append({"Key": item["Key"]})
        return {"Deleted": [] if Delete.get("Quiet") else deleted}


# ============================================================================
# Chart archives
# ============================================================================


def build_chart_archive(
    name: str,
    version: str,
    fields: Optional[Dict[str, Any]] = None,
    extra_files: Optional[Dict[str, bytes]] = None,
    chart_yaml: Optional[bytes] = None,
) -> bytes:
    """Build a packaged chart the way `helm package` lays it out: <name>/Chart.yaml."""
    descriptor = {"apiVersion": "v2", "name": name, "version": version, "description": "A Helm chart for Kubernetes"}
    descriptor.update(fields or {})

    files: Dict[str, bytes] = {}
    if chart_yaml is not None:
        files[f"{name}/Chart.yaml"] = chart_yaml
    else:
        files[f"{name}/Chart.yaml"] = yaml.safe_dump(descriptor).encode("utf-8")
    files[f"{name}/values.yaml"] = b"replicaCount: 1\n"
    files.update(extra_files or {})

    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as archive:
        for path, data in files.items():
            info = tarfile.TarInfo(path)
            info.size = len(data)
            info.mtime = 0
            archive.addfile(info, io.BytesIO(data))
    return buf.getvalue()


@pytest.fixture
def make_chart() -> Callable[..., bytes]:
    return build_chart_archive


@pytest.fixture
def write_chart(tmp_path) -> Callable[..., str]:
    """Write a packaged chart to disk and return its path, e.g. .../app-1.0.0.tgz."""

    def _write(name: str, version: str, directory: Optional[str] = None, **kwargs: Any) -> str:
        target = directory or str(tmp_path)
        path = os.path.join(target, f"{name}-{version}.tgz")
        with open(path, "wb") as f:
            f.write(build_chart_archive(name, version, **kwargs))
        return path

    return _write


# ============================================================================
# Storage and Helm environment
# ============================================================================


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def storage(s3_client) -> Storage:
    return Storage(StorageConfig(region="us-east-1"), client=s3_client)


class HelmEnv:
    """Isolated Helm configuration: repositories.yaml and the index cache directory."""

    def __init__(self, root) -> None:
        self.repository_config = os.path.join(str(root), "helm", "repositories.yaml")
        self.repository_cache = os.path.join(str(root), "helm", "cache", "repository")
        self._repos: List[Dict[str, str]] = []

    def add_repo(self, name: str, url: str) -> None:
        self._repos.append({"name": name, "url": url})
        os.makedirs(os.path.dirname(self.repository_config), exist_ok=True)
        with open(self.repository_config, "w", encoding="utf-8") as f:
            yaml.safe_dump({"apiVersion": "", "repositories": self._repos}, f)

    def cache_file(self, name: str) -> str:
        return os.path.join(self.repository_cache, f"{name}-index.yaml")


@pytest.fixture(autouse=True)
def helm_env(tmp_path, monkeypatch) -> HelmEnv:
    """Point Helm and plugin configuration at a temporary directory."""
    env = HelmEnv(tmp_path)
    monkeypatch.setenv("HELM_REPOSITORY_CONFIG", env.repository_config)
    monkeypatch.setenv("HELM_REPOSITORY_CACHE", env.repository_cache)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    for key in list(os.environ):
        if key.startswith("HELM_OSS_"):
            monkeypatch.delenv(key, raising=False)
    return env


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: mark test as slow-running test")
