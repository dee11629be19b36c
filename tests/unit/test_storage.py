"""Tests for URI handling, side-channel metadata and Storage object operations."""

from __future__ import annotations

import json
from unittest.mock import Mock

import pytest
from botocore.exceptions import EndpointConnectionError

from helm_oss.config import StorageConfig
from helm_oss.constants import METADATA_SOFT_LIMIT_BYTES
from helm_oss.context import Context
from helm_oss.exceptions import (
    BucketNotFoundError,
    InvalidURIError,
    ObjectNotFoundError,
    OperationCancelledError,
    StorageError,
)
from helm_oss.storage import (
    Storage,
    assemble_object_metadata,
    get_metadata_value,
    object_metadata_size,
    parse_uri,
)


class TestParseURI:
    @pytest.mark.parametrize(
        "uri, expected",
        [
            ("oss://bucket/charts/index.yaml", ("bucket", "charts/index.yaml")),
            ("oss://bucket", ("bucket", "")),
            ("oss://bucket/", ("bucket", "")),
            ("s3://bucket/a/b.tgz", ("bucket", "a/b.tgz")),
        ],
    )
    def test_splits_bucket_and_key(self, uri, expected):
        assert parse_uri(uri) == expected

    @pytest.mark.parametrize("uri", ["https://bucket/charts", "bucket/charts", "oss:///charts"])
    def test_rejects_non_storage_uris(self, uri):
        with pytest.raises(InvalidURIError):
            parse_uri(uri)


class TestObjectMetadata:
    def test_assembled_under_limit(self):
        meta = assemble_object_metadata('{"name":"app"}', "abc")

        assert meta == {"chart-metadata": '{"name":"app"}', "chart-digest": "abc"}

    def test_omitted_entirely_over_limit(self):
        big = json.dumps({"name": "app", "description": "x" * METADATA_SOFT_LIMIT_BYTES})

        assert assemble_object_metadata(big, "abc") == {}

    def test_limit_counts_keys_and_values(self):
        key_bytes = len("chart-metadata") + len("chart-digest")
        exact = "m" * (METADATA_SOFT_LIMIT_BYTES - key_bytes - 3)

        meta = assemble_object_metadata(exact, "abc")

        assert object_metadata_size(meta) == METADATA_SOFT_LIMIT_BYTES
        assert assemble_object_metadata(exact + "m", "abc") == {}

    def test_lookup_is_case_insensitive(self):
        meta = {"Chart-Digest": "abc"}

        assert get_metadata_value(meta, "chart-digest") == "abc"
        assert get_metadata_value(meta, "chart-metadata") == ""


class TestStorageObjects:
    def test_fetch_raw(self, storage, s3_client):
        s3_client.add_object("charts/index.yaml", b"apiVersion: v1\n")

        assert storage.fetch_raw("oss://charts-bucket/charts/index.yaml") == b"apiVersion: v1\n"
        assert all(body.closed for body in s3_client.bodies)

    def test_fetch_raw_missing_object(self, storage):
        with pytest.raises(ObjectNotFoundError) as exc_info:
            storage.fetch_raw("oss://charts-bucket/charts/index.yaml")

        assert exc_info.value.context["key"] == "charts/index.yaml"

    def test_fetch_raw_missing_bucket(self, storage):
        with pytest.raises(BucketNotFoundError):
            storage.fetch_raw("oss://other-bucket/index.yaml")

    def test_transport_failure_is_storage_error(self):
        client = Mock()
        client.get_object.side_effect = EndpointConnectionError(endpoint_url="https://oss.example.com")
        storage = Storage(StorageConfig(region="us-east-1"), client=client)

        with pytest.raises(StorageError):
            storage.fetch_raw("oss://charts-bucket/index.yaml")

    def test_exists(self, storage, s3_client):
        s3_client.add_object("charts/app-1.0.0.tgz", b"data")

        assert storage.exists("oss://charts-bucket/charts/app-1.0.0.tgz")
        assert not storage.exists("oss://charts-bucket/charts/app-2.0.0.tgz")

    def test_index_exists(self, storage, s3_client):
        assert not storage.index_exists("oss://charts-bucket/charts")

        s3_client.add_object("charts/index.yaml", b"")

        assert storage.index_exists("oss://charts-bucket/charts")
        assert storage.index_exists("oss://charts-bucket/charts/")

    def test_repository_uri_must_not_name_index_file(self, storage):
        with pytest.raises(InvalidURIError, match="suffix"):
            storage.index_exists("oss://charts-bucket/charts/index.yaml")
        with pytest.raises(InvalidURIError):
            storage.put_index("oss://charts-bucket/index.yaml", b"")

    def test_put_index(self, storage, s3_client):
        storage.put_index("oss://charts-bucket/charts", b"apiVersion: v1\n")

        assert s3_client.data("charts/index.yaml") == b"apiVersion: v1\n"
        assert s3_client.buckets["charts-bucket"]["charts/index.yaml"]["ContentType"] == "application/x-yaml"

    def test_put_index_at_bucket_root(self, storage, s3_client):
        storage.put_index("oss://charts-bucket", b"apiVersion: v1\n")

        assert s3_client.keys() == ["index.yaml"]


class TestPutChart:
    def test_uploads_archive_with_side_channel_metadata(self, storage, s3_client):
        storage.put_chart("oss://charts-bucket/charts/app-1.0.0.tgz", b"tgz", '{"name":"app"}', "abc", "application/gzip")

        assert s3_client.data("charts/app-1.0.0.tgz") == b"tgz"
        assert s3_client.metadata("charts/app-1.0.0.tgz") == {"chart-metadata": '{"name":"app"}', "chart-digest": "abc"}
        assert s3_client.keys() == ["charts/app-1.0.0.tgz"]

    def test_oversized_metadata_uploads_without_it(self, storage, s3_client):
        big = "x" * (METADATA_SOFT_LIMIT_BYTES + 1)

        storage.put_chart("oss://charts-bucket/app-1.0.0.tgz", b"tgz", big, "abc", "application/gzip")

        assert s3_client.metadata("app-1.0.0.tgz") == {}
        put = [params for op, params in s3_client.calls if op == "put_object"][0]
        assert put["Metadata"] is None

    def test_uploads_provenance_beside_archive(self, storage, s3_client):
        storage.put_chart(
            "oss://charts-bucket/charts/app-1.0.0.tgz",
            b"tgz",
            "{}",
            "abc",
            "application/gzip",
            prov_data=b"-----BEGIN PGP SIGNED MESSAGE-----",
        )

        assert s3_client.data("charts/app-1.0.0.tgz.prov") == b"-----BEGIN PGP SIGNED MESSAGE-----"

    def test_cancelled_context_prevents_upload(self, storage, s3_client):
        ctx = Context()
        ctx.cancel()

        with pytest.raises(OperationCancelledError):
            storage.put_chart("oss://charts-bucket/app-1.0.0.tgz", b"tgz", "{}", "abc", "application/gzip", ctx=ctx)

        assert s3_client.keys() == []


class TestDeleteChart:
    def test_deletes_archive_and_provenance_in_one_request(self, storage, s3_client):
        s3_client.add_object("charts/app-1.0.0.tgz", b"tgz")
        s3_client.add_object("charts/app-1.0.0.tgz.prov", b"prov")
        s3_client.add_object("charts/app-2.0.0.tgz", b"tgz")

        storage.delete_chart("oss://charts-bucket/charts/app-1.0.0.tgz")

        assert s3_client.keys() == ["charts/app-2.0.0.tgz"]
        assert s3_client.call_count("delete_objects") == 1

    def test_missing_provenance_is_not_an_error(self, storage, s3_client):
        s3_client.add_object("app-1.0.0.tgz", b"tgz")

        storage.delete_chart("oss://charts-bucket/app-1.0.0.tgz")

        assert s3_client.keys() == []

    def test_partial_failure_raises(self):
        client = Mock()
        client.delete_objects.return_value = {"Errors": [{"Key": "app-1.0.0.tgz", "Code": "AccessDenied"}]}
        storage = Storage(StorageConfig(region="us-east-1"), client=client)

        with pytest.raises(StorageError, match="AccessDenied"):
            storage.delete_chart("oss://charts-bucket/app-1.0.0.tgz")


class TestStorageConstruction:
    def test_builds_client_from_config(self, monkeypatch):
        created = {}

        def fake_create_client(session, config):
            created["config"] = config
            return "client"

        monkeypatch.setattr("helm_oss.storage.create_session", lambda config: "session")
        monkeypatch.setattr("helm_oss.storage.create_client", fake_create_client)
        config = StorageConfig(endpoint="oss-cn-hangzhou.aliyuncs.com")

        storage = Storage(config)

        assert storage.client == "client"
        assert created["config"] is config
