"""Push a packaged chart to a repository."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from ..constants import CHART_CONTENT_TYPE, PROVENANCE_EXTENSION
from ..context import Context
from ..domain.chart import Chart, load_chart
from ..exceptions import ChartExistsError, ChartLoadError, HelmOSSError
from ..index import Index
from ..provenance import digest_bytes
from ..repository import Repository, new_repository
from ..storage import Storage
from .common import fetch_index, update_cache

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushResult:
    chart: Chart
    url: str
    digest: str
    has_provenance: bool
    dry_run: bool


def _exists_in_cache(repo: Repository, chart: Chart) -> bool:
    if not repo.should_update_cache:
        return False
    try:
        cached = Index.load(repo.cache_file)
    except (OSError, HelmOSSError) as e:
        logger.debug(f"Ignoring local index cache {repo.cache_file}: {e}")
        return False
    return cached.has(chart.name, chart.version)


def _read_provenance(chart_path: str) -> Optional[bytes]:
    prov_path = chart_path + PROVENANCE_EXTENSION
    try:
        with open(prov_path, "rb") as f:
            return f.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise ChartLoadError(f"open prov file: {e}", {"path": prov_path}) from e


def push_chart(
    storage: Storage,
    chart_path: str,
    repo_or_uri: str,
    *,
    force: bool = False,
    dry_run: bool = False,
    ctx: Optional[Context] = None,
) -> PushResult:
    """Upload a chart archive and record it in the repository index.

    The chart is uploaded before the index is fetched so that the window
    between reading and writing index.yaml is as short as possible. Concurrent
    pushes can still race and one index update may be lost; the store offers no
    conditional write.

    Raises:
        ChartExistsError: When the chart version is already published and force is False
        IndexNotFoundError: When the repository has not been initialized
        InvalidVersionError: When the index holds versions that are not semver
    """
    chart = load_chart(chart_path)
    repo = new_repository(repo_or_uri)

    if _exists_in_cache(repo, chart) and not force:
        raise ChartExistsError(chart_path, repo_or_uri)

    prov_data = _read_provenance(chart_path)

    fname = os.path.basename(chart_path)
    chart_uri = repo.url.rstrip("/") + "/" + fname

    if storage.exists(chart_uri, ctx) and not force:
        raise ChartExistsError(chart_path, repo_or_uri)

    try:
        with open(chart_path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ChartLoadError(f"open chart file: {e}", {"path": chart_path}) from e
    digest = digest_bytes(data)

    if not dry_run:
        storage.put_chart(
            chart_uri,
            data,
            chart.metadata.to_json(),
            digest,
            CHART_CONTENT_TYPE,
            prov_data=prov_data,
            ctx=ctx,
        )
        logger.debug(f"Uploaded {chart_uri}")

    idx = fetch_index(storage, repo, ctx)
    # Relative URLs work for both the plugin and plain HTTP access.
    idx.add_or_replace(chart.metadata, fname, "", digest)
    idx.sort_entries()
    idx.update_generated_time()
    payload = idx.to_bytes()

    if not dry_run:
        storage.put_index(repo.url, payload, ctx)
        update_cache(repo, idx)

    logger.info(f"Pushed {chart.name} {chart.version} to {repo.url}")
    return PushResult(
        chart=chart,
        url=chart_uri,
        digest=digest,
        has_provenance=prov_data is not None,
        dry_run=dry_run,
    )
