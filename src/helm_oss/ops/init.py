"""Initialize an empty repository."""

from __future__ import annotations

import logging
from typing import Optional

from ..context import Context
from ..exceptions import RepositoryExistsError
from ..index import Index
from ..storage import Storage

logger = logging.getLogger(__name__)


def init_repository(storage: Storage, uri: str, ctx: Optional[Context] = None) -> Index:
    """Upload an empty index to uri.

    Raises:
        RepositoryExistsError: When the location already holds an index
    """
    if storage.index_exists(uri, ctx):
        raise RepositoryExistsError(uri)

    idx = Index()
    idx.update_generated_time()
    storage.put_index(uri, idx.to_bytes(), ctx)
    logger.info(f"Initialized empty repository at {uri}")
    return idx
