"""Chart repository storage on an S3-compatible object store.

Storage addresses objects by URI (oss://bucket/key or s3://bucket/key) and
implements the repository-level operations the workflows need: reading and
writing index.yaml, uploading and deleting chart archives with their
provenance files, and scanning a repository for chart archives.

Chart uploads attach the serialized chart metadata and digest as object
metadata so later scans can skip downloading the archive. When that metadata
would exceed METADATA_SOFT_LIMIT_BYTES it is omitted entirely and scans fall
back to downloading and parsing the archive.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

from botocore.exceptions import BotoCoreError, ClientError

from .config import StorageConfig
from .constants import (
    CHART_EXTENSION,
    INDEX_CONTENT_TYPE,
    INDEX_FILE_NAME,
    META_CHART_DIGEST,
    META_CHART_METADATA,
    METADATA_SOFT_LIMIT_BYTES,
    PROVENANCE_EXTENSION,
    STORAGE_SCHEMES,
)
from .context import Context
from .domain.chart import ChartMetadata, load_archive
from .exceptions import (
    ChartLoadError,
    HelmOSSError,
    InvalidChartMetadataError,
    InvalidURIError,
)
from .provenance import HashingReader
from .repository import index_file_url
from .traverse import ChartInfo, Emit, TraverseStream
from .utilities.aws import s3
from .utilities.aws.session import create_client, create_session

logger = logging.getLogger(__name__)


def parse_uri(uri: str) -> Tuple[str, str]:
    """Split a storage URI into bucket and key.

    Examples:
        >>> parse_uri("oss://bucket/charts/index.yaml")
        ('bucket', 'charts/index.yaml')

    Raises:
        InvalidURIError: When the URI does not use a storage scheme or names no bucket
    """
    if not uri.startswith(STORAGE_SCHEMES):
        raise InvalidURIError(f"uri {uri} protocol is not oss", {"uri": uri})
    try:
        parsed = urlparse(uri)
    except ValueError as e:
        raise InvalidURIError(f"parse uri {uri}: {e}", {"uri": uri}) from e
    if not parsed.netloc:
        raise InvalidURIError(f"uri {uri} has no bucket", {"uri": uri})
    return parsed.netloc, parsed.path.lstrip("/")


def object_metadata_size(meta: Dict[str, str]) -> int:
    return sum(len(k.encode("utf-8")) + len(v.encode("utf-8")) for k, v in meta.items())


def assemble_object_metadata(chart_meta: str, chart_digest: str) -> Dict[str, str]:
    """Object metadata for a chart upload; empty when it exceeds the soft limit."""
    meta = {META_CHART_METADATA: chart_meta, META_CHART_DIGEST: chart_digest}
    if object_metadata_size(meta) > METADATA_SOFT_LIMIT_BYTES:
        return {}
    return meta


def get_metadata_value(meta: Dict[str, str], key: str) -> str:
    """Case-insensitive object metadata lookup; "" when absent."""
    if key in meta:
        return meta[key] or ""
    wanted = key.lower()
    for k, v in meta.items():
        if k.lower() == wanted:
            return v or ""
    return ""


class Storage:
    """Repository operations against one object store.

    Args:
        config: Connection settings used to build the S3 client
        client: Pre-built S3 client; when given, config only supplies defaults
    """

    def __init__(self, config: Optional[StorageConfig] = None, client: Any = None) -> None:
        self.config = config or StorageConfig()
        if client is None:
            client = create_client(create_session(self.config), self.config)
        self.client = client

    def fetch_raw(self, uri: str, ctx: Optional[Context] = None) -> bytes:
        """Download an object.

        Raises:
            ObjectNotFoundError / BucketNotFoundError: When the object or bucket is missing
            StorageError: On any other storage failure
        """
        bucket, key = parse_uri(uri)
        _check(ctx)
        logger.debug(f"Fetching {uri}")
        return s3.read_object(self.client, bucket, key)

    def exists(self, uri: str, ctx: Optional[Context] = None) -> bool:
        bucket, key = parse_uri(uri)
        _check(ctx)
        return s3.object_exists(self.client, bucket, key)

    def index_exists(self, repo_uri: str, ctx: Optional[Context] = None) -> bool:
        """Whether the repository at repo_uri has an index file."""
        return self.exists(index_file_url(_repo_root(repo_uri)), ctx)

    def put_index(self, repo_uri: str, data: bytes, ctx: Optional[Context] = None) -> None:
        """Upload index.yaml into the repository at repo_uri."""
        bucket, key = parse_uri(index_file_url(_repo_root(repo_uri)))
        _check(ctx)
        logger.debug(f"Uploading index to {bucket}/{key}")
        s3.put_object(self.client, bucket, key, data, content_type=INDEX_CONTENT_TYPE)

    def put_chart(
        self,
        uri: str,
        data: bytes,
        chart_meta: str,
        chart_digest: str,
        content_type: str,
        prov_data: Optional[bytes] = None,
        ctx: Optional[Context] = None,
    ) -> None:
        """Upload a chart archive, and its provenance file when prov_data is given."""
        bucket, key = parse_uri(uri)
        metadata = assemble_object_metadata(chart_meta, chart_digest)
        if not metadata:
            logger.info(f"Chart metadata for {key} exceeds {METADATA_SOFT_LIMIT_BYTES} bytes; uploading without it")

        _check(ctx)
        s3.put_object(self.client, bucket, key, data, content_type=content_type, metadata=metadata)

        if prov_data is not None:
            _check(ctx)
            s3.put_object(self.client, bucket, key + PROVENANCE_EXTENSION, prov_data)

    def delete_chart(self, uri: str, ctx: Optional[Context] = None) -> None:
        """Delete a chart archive and its provenance file, if any."""
        bucket, key = parse_uri(uri)
        _check(ctx)
        s3.delete_objects(self.client, bucket, [key, key + PROVENANCE_EXTENSION])

    def traverse(self, repo_uri: str, ctx: Optional[Context] = None) -> TraverseStream:
        """Scan the repository for chart archives in a background thread.

        Only top-level objects ending in .tgz are reported. The first
        unrecoverable error (listing, metadata, download or parse failure, or
        cancellation) ends the stream and is raised to the consumer.
        """
        return TraverseStream(lambda emit, c: self._traverse(repo_uri, emit, c), ctx)

    def _traverse(self, repo_uri: str, emit: Emit, ctx: Context) -> None:
        bucket, prefix = parse_uri(repo_uri)
        prefix = prefix.rstrip("/")
        list_prefix = f"{prefix}/" if prefix else ""

        continuation_token: Optional[str] = None
        while True:
            ctx.check()
            page = s3.list_objects(self.client, bucket, prefix=list_prefix, continuation_token=continuation_token)

            for obj in page["objects"]:
                full_key = obj["key"]
                key = full_key[len(list_prefix):] if full_key.startswith(list_prefix) else full_key
                if key.startswith("/"):
                    key = key[1:]

                if "/" in key:
                    # Subfolder
                    continue
                if not key.endswith(CHART_EXTENSION):
                    continue

                emit(self._chart_info(bucket, full_key, key, ctx))

            if not page["truncated"] or not page["next_token"]:
                break
            continuation_token = page["next_token"]

    def _chart_info(self, bucket: str, full_key: str, filename: str, ctx: Context) -> ChartInfo:
        ctx.check()
        meta = s3.head_object(self.client, bucket, full_key)

        serialized = get_metadata_value(meta, META_CHART_METADATA)
        digest = get_metadata_value(meta, META_CHART_DIGEST)
        if serialized and digest:
            try:
                metadata = ChartMetadata.from_json(serialized)
            except InvalidChartMetadataError as e:
                raise InvalidChartMetadataError(
                    f"unserialize chart meta for {filename!r}: {e}", {"key": full_key}
                ) from e
            return ChartInfo(metadata=metadata, filename=filename, digest=digest)

        logger.debug(f"No chart metadata on {filename}; downloading archive")
        ctx.check()
        body = s3.get_object(self.client, bucket, full_key)
        reader = HashingReader(body)
        try:
            chart = load_archive(reader)
            reader.drain()
        except (ClientError, BotoCoreError) as e:
            raise s3.translate_error(e, "read object body", bucket, full_key) from e
        except HelmOSSError as e:
            raise ChartLoadError(f"load archive from object {filename!r}: {e}", {"key": full_key}) from e
        finally:
            body.close()

        return ChartInfo(metadata=chart.metadata, filename=filename, digest=reader.hexdigest())


def _repo_root(repo_uri: str) -> str:
    if repo_uri.rstrip("/").endswith(INDEX_FILE_NAME):
        raise InvalidURIError(
            f'uri must not contain "{INDEX_FILE_NAME}" suffix, it appends automatically', {"uri": repo_uri}
        )
    return repo_uri


def _check(ctx: Optional[Context]) -> None:
    if ctx is not None:
        ctx.check()
