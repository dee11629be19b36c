"""Delete a chart version from a repository."""

from __future__ import annotations

import logging
from typing import Optional

from ..context import Context
from ..repository import new_repository
from ..storage import Storage
from .common import fetch_index, update_cache

logger = logging.getLogger(__name__)


def delete_chart(
    storage: Storage,
    name: str,
    version: str,
    repo_or_uri: str,
    ctx: Optional[Context] = None,
) -> str:
    """Remove a chart version from the index and delete its archive.

    The version is matched by exact string. Index mutation happens before any
    object is touched, so a missing version leaves the repository unchanged.

    Returns:
        The URL recorded for the deleted version ("" when it had none)

    Raises:
        ChartNotFoundError: When the index has no such name and version
        IndexNotFoundError: When the repository has not been initialized
    """
    repo = new_repository(repo_or_uri)

    idx = fetch_index(storage, repo, ctx)
    url = idx.delete(name, version)
    idx.update_generated_time()
    payload = idx.to_bytes()

    if url:
        chart_uri = url
        if not chart_uri.startswith(repo.url):
            chart_uri = repo.url.rstrip("/") + "/" + url
        storage.delete_chart(chart_uri, ctx)
        logger.debug(f"Deleted {chart_uri}")
    else:
        logger.warning(f"Index entry for {name} {version} has no URL; no chart object deleted")

    storage.put_index(repo.url, payload, ctx)
    update_cache(repo, idx)

    logger.info(f"Deleted {name} {version} from {repo.url}")
    return url
