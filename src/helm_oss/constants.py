"""Constants used throughout the helm-oss plugin."""

# Repository URI schemes handled by the storage layer
OSS_SCHEME = "oss://"
S3_SCHEME = "s3://"
STORAGE_SCHEMES = (OSS_SCHEME, S3_SCHEME)

INDEX_FILE_NAME = "index.yaml"
CHART_EXTENSION = ".tgz"
PROVENANCE_EXTENSION = ".prov"
CHART_CONTENT_TYPE = "application/gzip"
INDEX_CONTENT_TYPE = "application/x-yaml"

INDEX_API_VERSION = "v1"
CHART_API_VERSION_V1 = "v1"

# Object metadata keys carrying the serialized chart metadata and digest.
META_CHART_METADATA = "chart-metadata"
META_CHART_DIGEST = "chart-digest"

# Soft limit for the summed byte size of object metadata keys and values.
# Past this size the metadata is omitted rather than truncated.
METADATA_SOFT_LIMIT_BYTES = 1900

DEFAULT_INDEX_FILE_PERM = 0o644
DEFAULT_TIMEOUT_SECONDS = 300.0
