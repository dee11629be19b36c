"""Shared exception types for the helm-oss plugin.

Every error raised by the plugin derives from HelmOSSError so the CLI can
report it uniformly. Each exception carries a machine-readable error_code and
an optional context dictionary naming the offending object, chart or version.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class HelmOSSError(RuntimeError):
    """Base exception for helm-oss errors."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        *,
        error_code: str = "helm_oss_error",
    ) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}


class ConfigurationError(HelmOSSError):
    """Raised when storage configuration is missing or invalid."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, context, error_code="CONFIGURATION_ERROR")


class NotFoundError(HelmOSSError):
    """Raised when a requested resource does not exist.

    Subclasses distinguish a missing object from a missing bucket, a missing
    chart version in the index, and an unknown repository name so that callers
    can give actionable guidance.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        *,
        error_code: str = "NOT_FOUND",
    ) -> None:
        super().__init__(message, context, error_code=error_code)


class ObjectNotFoundError(NotFoundError):
    def __init__(self, message: str = "object not found", context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, context, error_code="OBJECT_NOT_FOUND")


class BucketNotFoundError(NotFoundError):
    def __init__(self, message: str = "bucket not found", context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, context, error_code="BUCKET_NOT_FOUND")


class IndexNotFoundError(ObjectNotFoundError):
    """Raised when a repository has no index.yaml, i.e. it was never initialized."""


class ChartNotFoundError(NotFoundError):
    """Raised when a chart version is absent from the repository index."""

    def __init__(self, name: str, version: str) -> None:
        super().__init__(
            f"chart {name} version {version} not found in index",
            {"chart": name, "version": version},
            error_code="CHART_NOT_FOUND",
        )


class RepositoryNotFoundError(NotFoundError):
    """Raised when a repository name is not registered with Helm."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"repo with name {name} not found, try `helm repo add {name} <uri>`",
            {"repository": name},
            error_code="REPOSITORY_NOT_FOUND",
        )


class MalformedIndexError(HelmOSSError):
    """Raised when an index document cannot be parsed."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, context, error_code="MALFORMED_INDEX")


class InvalidVersionError(HelmOSSError):
    """Raised when a chart version is not a valid semantic version."""

    def __init__(self, version: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            f"invalid semantic version: {version!r}",
            {"version": version, **(context or {})},
            error_code="INVALID_VERSION",
        )
        self.version = version


class InvalidChartMetadataError(HelmOSSError):
    """Raised when chart metadata cannot be interpreted."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, context, error_code="INVALID_CHART_METADATA")


class ChartLoadError(HelmOSSError):
    """Raised when a chart archive cannot be read."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, context, error_code="CHART_LOAD_ERROR")


class ConflictError(HelmOSSError):
    """Raised when a write would overwrite existing state without explicit intent."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        *,
        error_code: str = "CONFLICT",
    ) -> None:
        super().__init__(message, context, error_code=error_code)


class ChartExistsError(ConflictError):
    def __init__(self, chart_path: str, repo_or_uri: str) -> None:
        super().__init__(
            "The chart already exists in the repository and cannot be overwritten without an explicit intent.\n\n"
            "If you want to replace existing chart, use --force flag:\n\n"
            f"  helm oss push --force {chart_path} {repo_or_uri}\n",
            {"chart_path": chart_path, "repository": repo_or_uri},
            error_code="CHART_EXISTS",
        )


class RepositoryExistsError(ConflictError):
    def __init__(self, uri: str) -> None:
        super().__init__(
            "The index file already exists in the remote storage at the provided URI.",
            {"uri": uri},
            error_code="REPOSITORY_EXISTS",
        )


class StorageError(HelmOSSError):
    """Raised when an object storage call fails for any reason other than not-found."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, context, error_code="STORAGE_ERROR")


class OperationCancelledError(HelmOSSError):
    """Raised when an operation is cancelled or its deadline expires."""

    def __init__(self, message: str = "operation cancelled", context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, context, error_code="OPERATION_CANCELLED")


class InvalidURIError(HelmOSSError):
    """Raised when a repository or object URI does not use a storage scheme."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, context, error_code="INVALID_URI")
