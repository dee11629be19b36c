"""Domain objects for charts and chart index entries."""

from .chart import Chart, ChartMetadata, ChartV3, load_archive, load_chart
from .chart_version import ChartVersion

__all__ = ["Chart", "ChartMetadata", "ChartV3", "ChartVersion", "load_archive", "load_chart"]
