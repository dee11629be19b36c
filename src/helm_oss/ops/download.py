"""Helm downloader plugin entry point."""

from __future__ import annotations

from typing import Optional

from ..constants import INDEX_FILE_NAME
from ..context import Context
from ..exceptions import IndexNotFoundError, ObjectNotFoundError
from ..storage import Storage
from .common import init_hint


def download(storage: Storage, url: str, ctx: Optional[Context] = None) -> bytes:
    """Fetch the raw bytes Helm asked for, e.g. index.yaml or a chart archive.

    Raises:
        IndexNotFoundError: When the requested index.yaml does not exist
        ObjectNotFoundError: When any other requested object does not exist
    """
    try:
        return storage.fetch_raw(url, ctx)
    except ObjectNotFoundError as e:
        if not url.endswith(INDEX_FILE_NAME):
            raise
        repo_url = url[: -len(INDEX_FILE_NAME)].rstrip("/")
        raise IndexNotFoundError(
            f"The index file does not exist by the path {url}. {init_hint(repo_url)}",
            {"uri": url},
        ) from e
