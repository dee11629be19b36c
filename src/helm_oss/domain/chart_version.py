"""ChartVersion domain object: one published version of one chart in an index."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List

from ..exceptions import InvalidChartMetadataError, MalformedIndexError
from .chart import ChartMetadata

_FRACTION_RE = re.compile(r"\.(\d+)")

# Written for records that carry no timestamp, as Helm does.
ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a timestamp as RFC 3339, using a "Z" suffix for UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    text = value.isoformat()
    if text.endswith("+00:00"):
        text = text[:-6] + "Z"
    return text


def parse_timestamp(value: Any) -> datetime:
    """Parse an RFC 3339 timestamp as written by Helm.

    Helm writes nanosecond precision; digits past microseconds are dropped.
    YAML loaders may already have produced a datetime, which is passed through.

    Raises:
        MalformedIndexError: When the value is not a timestamp
    """
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value:
        raise MalformedIndexError(f"invalid timestamp: {value!r}")

    text = value.strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise MalformedIndexError(f"invalid timestamp: {value!r}") from e
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=timezone.utc)


@dataclass
class ChartVersion:
    """A chart version entry in a repository index.

    Attributes:
        metadata: Chart descriptor, carried through unchanged
        urls: Download locations; the first one is authoritative for deletion
        digest: Hex SHA-256 digest of the chart archive
        created: When the entry was created (UTC)
        removed: Helm's soft-removal flag, carried through unchanged
    """

    metadata: ChartMetadata
    urls: List[str] = field(default_factory=list)
    digest: str = ""
    created: datetime = field(default_factory=utc_now)
    removed: bool = False

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def version(self) -> str:
        return self.metadata.version

    def to_dict(self) -> Dict[str, Any]:
        data = self.metadata.to_dict()
        data["urls"] = list(self.urls)
        data["created"] = format_timestamp(self.created)
        if self.removed:
            data["removed"] = True
        if self.digest:
            data["digest"] = self.digest
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ChartVersion:
        if not isinstance(data, dict):
            raise MalformedIndexError(f"chart version record must be a mapping, got {type(data).__name__}")

        try:
            metadata = ChartMetadata.from_dict(data)
        except InvalidChartMetadataError as e:
            raise MalformedIndexError(f"invalid chart version record: {e}") from e

        urls = data.get("urls") or []
        if isinstance(urls, str):
            urls = [urls]

        created = data.get("created")
        return cls(
            metadata=metadata,
            urls=[str(u) for u in urls],
            digest=str(data.get("digest") or ""),
            created=parse_timestamp(created) if created else ZERO_TIME,
            removed=bool(data.get("removed", False)),
        )
