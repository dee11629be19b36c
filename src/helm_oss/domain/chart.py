"""Chart domain objects and archive loading.

This module defines:
- ChartMetadata: the contents of a chart's Chart.yaml
- Chart: backend-agnostic chart interface exposing name, version and metadata
- ChartV3: the Helm v3 chart implementation loaded from a packaged archive
- load_chart / load_archive: read a packaged chart (.tgz) from disk or a stream

Only the chart descriptor is read from an archive; templates and values are
not interpreted.
"""

from __future__ import annotations

import json
import logging
import os
import tarfile
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Dict, List, Optional

import yaml

from ..constants import CHART_API_VERSION_V1
from ..exceptions import ChartLoadError, InvalidChartMetadataError
from ..versions import is_valid_version

logger = logging.getLogger(__name__)

CHART_FILE_NAME = "Chart.yaml"

# Python attribute name -> Chart.yaml / index key, in Helm's field order.
_FIELD_KEYS = (
    ("name", "name"),
    ("home", "home"),
    ("sources", "sources"),
    ("version", "version"),
    ("description", "description"),
    ("keywords", "keywords"),
    ("maintainers", "maintainers"),
    ("icon", "icon"),
    ("api_version", "apiVersion"),
    ("condition", "condition"),
    ("tags", "tags"),
    ("app_version", "appVersion"),
    ("deprecated", "deprecated"),
    ("annotations", "annotations"),
    ("kube_version", "kubeVersion"),
    ("dependencies", "dependencies"),
    ("type", "type"),
)

METADATA_KEYS = frozenset(key for _, key in _FIELD_KEYS)

# Non-string fields; every other field must decode to a string.
_FIELD_TYPES = {
    "sources": list,
    "keywords": list,
    "maintainers": list,
    "dependencies": list,
    "annotations": dict,
    "deprecated": bool,
}

_TYPE_NAMES = {str: "string", list: "list", dict: "mapping", bool: "boolean"}

# YAML may decode unquoted versions such as 1.0 as numbers
_VERSION_ATTRS = ("version", "app_version", "kube_version")


@dataclass
class ChartMetadata:
    """Chart descriptor, as found in Chart.yaml.

    Values are carried through unchanged between Chart.yaml, object metadata
    and index records. Empty fields are omitted when serialized.
    """

    name: str = ""
    version: str = ""
    api_version: str = ""
    description: str = ""
    home: str = ""
    sources: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    maintainers: List[Dict[str, Any]] = field(default_factory=list)
    icon: str = ""
    condition: str = ""
    tags: str = ""
    app_version: str = ""
    deprecated: bool = False
    annotations: Dict[str, str] = field(default_factory=dict)
    kube_version: str = ""
    dependencies: List[Dict[str, Any]] = field(default_factory=list)
    type: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for attr, key in _FIELD_KEYS:
            value = getattr(self, attr)
            if value in ("", None, False) or value == [] or value == {}:
                continue
            data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ChartMetadata:
        """Build metadata from a Chart.yaml or index record mapping.

        Unknown keys are ignored.

        Raises:
            InvalidChartMetadataError: When data is not a mapping or a field
                has the wrong type
        """
        if not isinstance(data, dict):
            raise InvalidChartMetadataError(
                f"chart metadata must be a mapping, got {type(data).__name__}"
            )

        kwargs: Dict[str, Any] = {}
        for attr, key in _FIELD_KEYS:
            if key not in data or data[key] is None:
                continue
            value = data[key]
            if attr in _VERSION_ATTRS and isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            expected = _FIELD_TYPES.get(attr, str)
            if not isinstance(value, expected):
                raise InvalidChartMetadataError(
                    f"chart.metadata.{key} must be a {_TYPE_NAMES[expected]}, got {type(value).__name__}",
                    {"field": key},
                )
            kwargs[attr] = value
        return cls(**kwargs)

    def to_json(self) -> str:
        """Compact, ASCII-only JSON form used for object metadata."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json(cls, payload: str | bytes) -> ChartMetadata:
        try:
            data = json.loads(payload)
        except (ValueError, TypeError) as e:
            raise InvalidChartMetadataError(f"unserialize chart metadata: {e}") from e
        return cls.from_dict(data)

    def validate(self) -> None:
        """Check the fields Helm requires of every chart.

        Raises:
            InvalidChartMetadataError: When a required field is missing or invalid
        """
        if not self.api_version:
            raise InvalidChartMetadataError("chart.metadata.apiVersion is required")
        if not self.name:
            raise InvalidChartMetadataError("chart.metadata.name is required")
        if "/" in self.name or "\\" in self.name or self.name in (".", ".."):
            raise InvalidChartMetadataError(
                f"chart.metadata.name {self.name!r} is not a valid chart name",
                {"chart": self.name},
            )
        if not self.version:
            raise InvalidChartMetadataError(
                "chart.metadata.version is required", {"chart": self.name}
            )
        if not is_valid_version(self.version):
            raise InvalidChartMetadataError(
                f"chart.metadata.version {self.version!r} is invalid",
                {"chart": self.name, "version": self.version},
            )


class Chart(ABC):
    """A Helm chart, independent of the Helm major version that packaged it."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Chart name, e.g. "foo"."""

    @property
    @abstractmethod
    def version(self) -> str:
        """Chart version, e.g. "0.1.0"."""

    @property
    @abstractmethod
    def metadata(self) -> ChartMetadata:
        """Chart descriptor."""


class ChartV3(Chart):
    """Chart packaged by Helm v3."""

    def __init__(self, metadata: ChartMetadata) -> None:
        self._metadata = metadata

    @property
    def name(self) -> str:
        return self._metadata.name

    @property
    def version(self) -> str:
        return self._metadata.version

    @property
    def metadata(self) -> ChartMetadata:
        return self._metadata

    def __repr__(self) -> str:
        return f"ChartV3(name={self.name!r}, version={self.version!r})"


def load_chart(path: str) -> Chart:
    """Load a packaged chart from the file system.

    Raises:
        ChartLoadError: When the path is missing, is a directory or is not a chart archive
    """
    if os.path.isdir(path):
        raise ChartLoadError(f"failed to load chart file: cannot load a directory: {path}", {"path": path})
    try:
        with open(path, "rb") as f:
            return load_archive(f)
    except OSError as e:
        raise ChartLoadError(f"failed to load chart file: {e}", {"path": path}) from e


def load_archive(stream: BinaryIO) -> Chart:
    """Load a chart from a gzip tarball stream.

    The stream is read sequentially and does not need to be seekable.

    Raises:
        ChartLoadError: When the archive is unreadable or has no Chart.yaml
        InvalidChartMetadataError: When Chart.yaml is missing required fields
    """
    raw: Optional[bytes] = None
    try:
        with tarfile.open(fileobj=stream, mode="r|gz") as archive:
            for member in archive:
                parts = [p for p in member.name.split("/") if p not in ("", ".")]
                if len(parts) != 2 or parts[1] != CHART_FILE_NAME or not member.isfile():
                    continue
                extracted = archive.extractfile(member)
                if extracted is None:
                    continue
                raw = extracted.read()
                break
    except (tarfile.TarError, EOFError, OSError) as e:
        raise ChartLoadError(f"failed to load chart archive: {e}") from e

    if raw is None:
        raise ChartLoadError(f"failed to load chart archive: {CHART_FILE_NAME} file is missing")

    try:
        data = yaml.safe_load(raw) or {}
    except yaml.YAMLError as e:
        raise ChartLoadError(f"failed to load chart archive: cannot load {CHART_FILE_NAME}: {e}") from e

    metadata = ChartMetadata.from_dict(data)
    if not metadata.api_version:
        metadata.api_version = CHART_API_VERSION_V1
    metadata.validate()

    logger.debug(f"Loaded chart {metadata.name} {metadata.version} from archive")
    return ChartV3(metadata)
