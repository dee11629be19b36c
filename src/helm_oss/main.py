#!/usr/bin/env python3
"""Command-line entry point for the helm-oss plugin.

Environment variables:

- HELM_OSS_ENDPOINT, HELM_OSS_REGION, HELM_OSS_ACCESS_KEY_ID,
  HELM_OSS_ACCESS_KEY_SECRET, HELM_OSS_SESSION_TOKEN: storage settings,
  overriding ~/.config/helm_plugin_oss.yaml
- LOG_LEVEL: Logging level (default: 'WARNING'; --verbose forces 'DEBUG')

Usage:
    helm oss init oss://bucket-name/charts
    helm repo add mynewrepo oss://bucket-name/charts
    helm oss push ./epicservice-0.7.2.tgz mynewrepo
    helm oss delete epicservice --version 0.7.2 mynewrepo
    helm oss reindex mynewrepo
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Callable, List, Optional

from dotenv import load_dotenv

from . import __version__
from .config import StorageConfig
from .constants import DEFAULT_TIMEOUT_SECONDS
from .context import Context
from .exceptions import ConflictError, HelmOSSError, IndexNotFoundError
from .ops import delete_chart, download, init_repository, push_chart, reindex_repository
from .storage import Storage

logger = logging.getLogger(__name__)

StorageFactory = Callable[[StorageConfig], Storage]

DESCRIPTION = """Manage chart repositories on Alibaba Cloud OSS and other S3-compatible storage.

Basic usage:

  $ helm oss init oss://bucket-name/charts
  $ helm repo add mynewrepo oss://bucket-name/charts
  $ helm oss push ./epicservice-0.7.2.tgz mynewrepo
  $ helm search repo mynewrepo
  $ helm fetch mynewrepo/epicservice --version 0.7.2
  $ helm oss delete epicservice --version 0.7.2 mynewrepo
"""


def configure_logging(verbose: bool) -> None:
    log_level = "DEBUG" if verbose else os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="helm-oss",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output.")
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT_SECONDS,
        help="Timeout in seconds for the whole operation (default: %(default)s).",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        metavar="{init,push,delete,reindex,version}",
    )
    subparsers.required = True

    init = subparsers.add_parser("init", help="Initialize empty repository on object storage.")
    init.add_argument("uri", metavar="URI", help="URI of the repository, e.g. oss://bucket/charts")

    push = subparsers.add_parser("push", help="Push chart to the repository.")
    push.add_argument("chart_path", metavar="PATH", help="Path to the packaged chart file.")
    push.add_argument("repo_or_uri", metavar="REPO_OR_URI", help="Target repository name or storage URI.")
    push.add_argument("--dry-run", action="store_true", help="Simulate push operation, but don't actually touch anything.")
    push.add_argument(
        "--force",
        action="store_true",
        help="Replace the chart if it already exists. This can cause the repository to lose existing chart; use it with care.",
    )

    delete = subparsers.add_parser("delete", aliases=["del"], help="Delete chart from the repository.")
    delete.add_argument("name", metavar="NAME", help="Name of the chart to delete.")
    delete.add_argument("repo_or_uri", metavar="REPO_OR_URI", help="Target repository name or storage URI.")
    delete.add_argument("--version", required=True, help="Version of the chart to delete.")

    reindex = subparsers.add_parser("reindex", help="Reindex the repository.")
    reindex.add_argument("repo_or_uri", metavar="REPO_OR_URI", help="Target repository name or storage URI.")

    # Downloader plugin protocol; Helm calls it, users do not.
    dl = subparsers.add_parser("download")
    dl.add_argument("cert_file", metavar="CERT")
    dl.add_argument("key_file", metavar="KEY")
    dl.add_argument("ca_file", metavar="CA")
    dl.add_argument("url", metavar="URL")

    subparsers.add_parser("version", help="Print plugin version.")

    return parser


def _default_storage(config: StorageConfig) -> Storage:
    config.validate_or_raise()
    return Storage(config)


def run(args: argparse.Namespace, storage_factory: StorageFactory) -> None:
    if args.command == "version":
        print(__version__)
        return

    config = StorageConfig.load()
    config.timeout = args.timeout
    storage = storage_factory(config)
    ctx = Context(timeout=args.timeout)

    if args.command == "init":
        init_repository(storage, args.uri, ctx)
        print(f"Initialized empty repository at {args.uri}\n")
        print("To add this repository to your local Helm configuration, run:\n")
        print(f"  helm repo add <name> {args.uri}\n")
        print("Replace <name> with your preferred repository name.")
    elif args.command == "push":
        push_chart(storage, args.chart_path, args.repo_or_uri, force=args.force, dry_run=args.dry_run, ctx=ctx)
        print("Successfully uploaded the chart to the repository.")
    elif args.command in ("delete", "del"):
        delete_chart(storage, args.name, args.version, args.repo_or_uri, ctx)
        print("Successfully deleted the chart from the repository.")
    elif args.command == "reindex":
        reindex_repository(storage, args.repo_or_uri, ctx)
        print(f"Repository {args.repo_or_uri} was successfully reindexed.")
    elif args.command == "download":
        data = download(storage, args.url, ctx)
        # Helm reads the payload from stdout.
        sys.stdout.buffer.write(data)
        sys.stdout.flush()


def main(argv: Optional[List[str]] = None, storage_factory: Optional[StorageFactory] = None) -> int:
    """Main entry point for the plugin; returns the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    load_dotenv()
    configure_logging(args.verbose)

    try:
        run(args, storage_factory or _default_storage)
    except (ConflictError, IndexNotFoundError) as e:
        # These carry their own guidance for the user.
        print(str(e), file=sys.stderr)
        return 1
    except HelmOSSError as e:
        logger.debug(f"{args.command} failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
