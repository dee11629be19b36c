"""Repository workflows: init, push, delete, reindex and download.

Each workflow is a synchronous sequence of storage calls; only reindex runs a
background scan. All of them take an explicit Storage and an optional Context
for cancellation.
"""

from .delete import delete_chart
from .download import download
from .init import init_repository
from .push import PushResult, push_chart
from .reindex import build_index, reindex_repository

__all__ = [
    "PushResult",
    "build_index",
    "delete_chart",
    "download",
    "init_repository",
    "push_chart",
    "reindex_repository",
]
