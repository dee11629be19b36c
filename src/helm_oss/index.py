"""Helm chart repository index (index.yaml).

The Index maps chart names to lists of ChartVersion entries and implements the
three mutations used by the push, delete and reindex workflows:

- add: append unconditionally (reindex)
- add_or_replace: replace a semver-equal version in place, or append (push)
- delete: remove an exact version string and return its URL (delete)

Encoding does not sort or stamp. Callers producing a document meant to be
uploaded call sort_entries() and update_generated_time() first, which lets the
reindex workflow build incrementally and sort once at the end.
"""

from __future__ import annotations

import logging
import os
import posixpath
from datetime import datetime
from typing import Any, Dict, List
from urllib.parse import urlsplit, urlunsplit

import yaml

from .constants import CHART_API_VERSION_V1, DEFAULT_INDEX_FILE_PERM, INDEX_API_VERSION
from .domain.chart import ChartMetadata
from .domain.chart_version import ChartVersion, format_timestamp, parse_timestamp, utc_now
from .exceptions import ChartNotFoundError, InvalidChartMetadataError, MalformedIndexError
from .versions import parse_version, try_parse_version

logger = logging.getLogger(__name__)


def url_join(base_url: str, filename: str) -> str:
    """Join a repository base URL and a chart file name.

    Falls back to a plain path join when base_url cannot be parsed as a URL.
    """
    try:
        parts = urlsplit(base_url)
    except ValueError:
        return posixpath.join(base_url, filename)
    path = posixpath.join(parts.path or "/", filename)
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, parts.fragment))


def chart_url(filename: str, base_url: str) -> str:
    """Location recorded for a chart: the file name, or base_url + its base name."""
    if not base_url:
        return filename
    return url_join(base_url, posixpath.basename(filename.replace(os.sep, "/")))


def _sort_key(entry: ChartVersion) -> tuple:
    parsed = try_parse_version(entry.version)
    # Unparseable versions sort below every valid one and keep their relative order.
    return (0,) if parsed is None else (1, parsed)


class Index:
    """In-memory repository index."""

    def __init__(self) -> None:
        self.api_version: str = INDEX_API_VERSION
        self.entries: Dict[str, List[ChartVersion]] = {}
        self.generated: datetime = utc_now()
        self.annotations: Dict[str, str] = {}

    # ------------------------------------------------------------------
    # Codec
    # ------------------------------------------------------------------

    @classmethod
    def from_bytes(cls, data: bytes | str) -> Index:
        """Decode an index document into a fresh, sorted Index.

        Raises:
            MalformedIndexError: When the document cannot be parsed
        """
        try:
            doc = yaml.safe_load(data)
        except yaml.YAMLError as e:
            raise MalformedIndexError(f"parse index: {e}") from e

        idx = cls()
        if doc is None:
            return idx
        if not isinstance(doc, dict):
            raise MalformedIndexError(f"index document must be a mapping, got {type(doc).__name__}")

        idx.api_version = str(doc.get("apiVersion") or INDEX_API_VERSION)
        if doc.get("generated"):
            idx.generated = parse_timestamp(doc["generated"])
        annotations = doc.get("annotations") or {}
        if not isinstance(annotations, dict):
            raise MalformedIndexError("index annotations must be a mapping")
        idx.annotations = {str(k): str(v) for k, v in annotations.items()}

        entries = doc.get("entries") or {}
        if not isinstance(entries, dict):
            raise MalformedIndexError("index entries must be a mapping")
        for name, records in entries.items():
            if records is None:
                records = []
            if not isinstance(records, list):
                raise MalformedIndexError(f"versions of chart {name} must be a list", {"chart": name})
            idx.entries[str(name)] = [ChartVersion.from_dict(r) for r in records]

        idx.sort_entries()
        return idx

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "apiVersion": self.api_version,
            "entries": {
                name: [entry.to_dict() for entry in versions]
                for name, versions in self.entries.items()
            },
            "generated": format_timestamp(self.generated),
        }
        if self.annotations:
            data["annotations"] = dict(self.annotations)
        return data

    def to_bytes(self) -> bytes:
        """Encode the index as YAML, as-is."""
        text = yaml.safe_dump(self.to_dict(), default_flow_style=False, sort_keys=True, allow_unicode=True)
        return text.encode("utf-8")

    @classmethod
    def load(cls, path: str) -> Index:
        with open(path, "rb") as f:
            return cls.from_bytes(f.read())

    def write_file(self, path: str, mode: int = DEFAULT_INDEX_FILE_PERM) -> None:
        """Write the index to a local file, e.g. Helm's repository cache."""
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        data = self.to_bytes()
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as f:
            f.write(data)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has(self, name: str, version: str) -> bool:
        """Whether the index holds a version of the chart.

        An exact string match wins; otherwise versions are compared by
        semantic version, skipping stored versions that do not parse. An empty
        version matches any entry.
        """
        versions = self.entries.get(name)
        if not versions:
            return False
        if not version:
            return True
        if any(entry.version == version for entry in versions):
            return True

        wanted = try_parse_version(version)
        if wanted is None:
            return False
        for entry in versions:
            parsed = try_parse_version(entry.version)
            if parsed is not None and parsed.compare(wanted) == 0:
                return True
        return False

    def sort_entries(self) -> None:
        """Sort chart names alphabetically and versions newest first.

        Never raises: versions that are not semver sink to the end of their list.
        """
        self.entries = {
            name: sorted(self.entries[name], key=_sort_key, reverse=True)
            for name in sorted(self.entries)
        }

    def update_generated_time(self) -> None:
        self.generated = utc_now()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, metadata: ChartMetadata, filename: str, base_url: str, digest: str) -> None:
        """Append a chart version unconditionally.

        Raises:
            InvalidChartMetadataError: When metadata is not valid chart metadata
        """
        if not isinstance(metadata, ChartMetadata):
            raise InvalidChartMetadataError(f"metadata is not ChartMetadata: {type(metadata).__name__}")
        if not metadata.api_version:
            metadata.api_version = CHART_API_VERSION_V1
        try:
            metadata.validate()
        except InvalidChartMetadataError as e:
            raise InvalidChartMetadataError(
                f"validate failed for {filename}: {e}", {"filename": filename, **e.context}
            ) from e

        entry = ChartVersion(
            metadata=metadata,
            urls=[chart_url(filename, base_url)],
            digest=digest,
            created=utc_now(),
        )
        self.entries.setdefault(metadata.name, []).append(entry)

    def add_or_replace(self, metadata: ChartMetadata, filename: str, base_url: str, digest: str) -> None:
        """Add a chart version, replacing a semver-equal version in place.

        Raises:
            InvalidChartMetadataError: When metadata is not ChartMetadata
            InvalidVersionError: When the new version or any stored version of
                the same chart is not a semantic version
        """
        if not isinstance(metadata, ChartMetadata):
            raise InvalidChartMetadataError(f"metadata is not ChartMetadata: {type(metadata).__name__}")

        entry = ChartVersion(
            metadata=metadata,
            urls=[chart_url(filename, base_url)],
            digest=digest,
            created=utc_now(),
        )

        versions = self.entries.get(metadata.name)
        if versions is None:
            self.entries[metadata.name] = [entry]
            return

        wanted = parse_version(metadata.version)
        for i, existing in enumerate(versions):
            if parse_version(existing.version).compare(wanted) == 0:
                logger.debug(f"Replacing {metadata.name} {existing.version} in index")
                versions[i] = entry
                return

        versions.append(entry)

    def delete(self, name: str, version: str) -> str:
        """Remove the entry with this exact version string.

        The chart key is kept, possibly with an empty list.

        Returns:
            The entry's first URL, or "" when it had none

        Raises:
            ChartNotFoundError: When no entry has this name and version string
        """
        versions = self.entries.get(name, [])
        for i, entry in enumerate(versions):
            if entry.version == version:
                del versions[i]
                return entry.urls[0] if entry.urls else ""
        raise ChartNotFoundError(name, version)

    def __len__(self) -> int:
        return sum(len(v) for v in self.entries.values())

    def __repr__(self) -> str:
        return f"Index(charts={len(self.entries)}, versions={len(self)})"
