"""Helpers shared by the repository workflows."""

from __future__ import annotations

import logging
from typing import Optional

from ..context import Context
from ..exceptions import IndexNotFoundError, ObjectNotFoundError
from ..index import Index
from ..repository import Repository
from ..storage import Storage

logger = logging.getLogger(__name__)


def init_hint(repo_url: str) -> str:
    return f"If you haven't initialized the repository yet, try running `helm oss init {repo_url}`"


def fetch_index(storage: Storage, repo: Repository, ctx: Optional[Context] = None) -> Index:
    """Download and decode the repository's current index.

    Raises:
        IndexNotFoundError: When the repository has no index.yaml
        MalformedIndexError: When the index cannot be parsed
    """
    try:
        raw = storage.fetch_raw(repo.index_url, ctx)
    except ObjectNotFoundError as e:
        raise IndexNotFoundError(
            f"fetch current repo index: {repo.index_url} does not exist. {init_hint(repo.url)}",
            {"uri": repo.index_url},
        ) from e
    return Index.from_bytes(raw)


def update_cache(repo: Repository, idx: Index) -> None:
    """Write the index to Helm's local cache for registered repositories."""
    if not repo.should_update_cache:
        return
    idx.write_file(repo.cache_file)
    logger.debug(f"Updated local index cache {repo.cache_file}")
