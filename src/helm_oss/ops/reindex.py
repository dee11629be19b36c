"""Rebuild a repository index from the chart archives in the bucket."""

from __future__ import annotations

import logging
from typing import Optional

from ..context import Context
from ..exceptions import InvalidChartMetadataError
from ..index import Index
from ..repository import new_repository
from ..storage import Storage
from ..traverse import TraverseStream
from .common import update_cache

logger = logging.getLogger(__name__)


def build_index(charts: TraverseStream) -> Index:
    """Consume a scan into a fresh index, sorted and stamped.

    Charts whose metadata the index rejects are logged and skipped. A scan
    failure propagates from the stream and no index is returned.
    """
    idx = Index()
    for info in charts:
        logger.debug(f"Adding {info.filename} to index")
        try:
            idx.add(info.metadata, info.filename, "", info.digest)
        except InvalidChartMetadataError as e:
            logger.error(f"Failed to add chart to the index: {e}")
    idx.sort_entries()
    idx.update_generated_time()
    return idx


def reindex_repository(storage: Storage, repo_or_uri: str, ctx: Optional[Context] = None) -> Index:
    """Replace the repository index with one built from a full bucket scan.

    The existing index is ignored. Nothing is uploaded unless the whole scan
    succeeds.
    """
    repo = new_repository(repo_or_uri)
    ctx = ctx or Context.background()

    charts = storage.traverse(repo.url, ctx)
    try:
        idx = build_index(charts)
    finally:
        charts.close()
        if not charts.join(ctx.remaining()):
            logger.warning(f"Scan of {repo.url} still running after the deadline")

    storage.put_index(repo.url, idx.to_bytes(), ctx)
    update_cache(repo, idx)

    logger.info(f"Reindexed {repo.url}: {len(idx)} chart versions")
    return idx
