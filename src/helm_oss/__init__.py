"""helm-oss - Helm chart repositories on Alibaba Cloud OSS and S3-compatible storage.

This package keeps a repository's index.yaml consistent with the chart
archives stored in a bucket: pushing, deleting and reindexing charts.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .context import Context
from .domain import Chart, ChartMetadata, ChartVersion, load_archive, load_chart
from .index import Index
from .storage import Storage

__all__ = [
    "Chart",
    "ChartMetadata",
    "ChartVersion",
    "Context",
    "Index",
    "Storage",
    "__version__",
    "load_archive",
    "load_chart",
]
