"""Repository identification.

A repository is named either by a storage URI (oss://bucket/path), which is
used as-is, or by the name it was registered under with `helm repo add`, which
is resolved through Helm's repositories.yaml. Only named repositories have a
local index cache that push, delete and reindex keep up to date.
"""

from __future__ import annotations

import logging
import os
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

import yaml

from .constants import INDEX_FILE_NAME, STORAGE_SCHEMES
from .exceptions import ConfigurationError, RepositoryNotFoundError

logger = logging.getLogger(__name__)


def index_file_url(repo_url: str) -> str:
    """URL of a repository's index file.

    Examples:
        >>> index_file_url("oss://bucket/charts/")
        'oss://bucket/charts/index.yaml'
    """
    return repo_url.rstrip("/") + "/" + INDEX_FILE_NAME


def repo_cache_file_name(name: str) -> str:
    return f"{name}-index.yaml"


def _helm_home(env_var: str, xdg_var: str, xdg_default: str, darwin_default: str) -> str:
    if os.environ.get(env_var):
        return os.environ[env_var]
    if os.environ.get(xdg_var):
        return os.path.join(os.environ[xdg_var], "helm")
    if sys.platform == "darwin":
        return os.path.join(os.path.expanduser("~"), darwin_default, "helm")
    return os.path.join(os.path.expanduser("~"), xdg_default, "helm")


def repository_config_path() -> str:
    """Path of Helm's repositories.yaml, honoring Helm's environment overrides."""
    if os.environ.get("HELM_REPOSITORY_CONFIG"):
        return os.environ["HELM_REPOSITORY_CONFIG"]
    home = _helm_home("HELM_CONFIG_HOME", "XDG_CONFIG_HOME", ".config", os.path.join("Library", "Preferences"))
    return os.path.join(home, "repositories.yaml")


def repository_cache_path() -> str:
    """Directory holding Helm's cached repository indexes."""
    if os.environ.get("HELM_REPOSITORY_CACHE"):
        return os.environ["HELM_REPOSITORY_CACHE"]
    home = _helm_home("HELM_CACHE_HOME", "XDG_CACHE_HOME", ".cache", os.path.join("Library", "Caches"))
    return os.path.join(home, "repository")


@dataclass(frozen=True)
class RepoEntry:
    """A repository registered with `helm repo add`.

    Attributes:
        name: Repository name, e.g. "my-charts"
        url: Repository URL, e.g. "oss://my-charts"
    """

    name: str
    url: str

    @property
    def cache_file(self) -> str:
        return os.path.join(repository_cache_path(), repo_cache_file_name(self.name))


def load_repo_entries(path: Optional[str] = None) -> List[RepoEntry]:
    """Read the repositories registered in Helm's repositories.yaml.

    Raises:
        ConfigurationError: When the file is missing or unreadable
    """
    path = path or repository_config_path()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"load repo file: {e}", {"path": path}) from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"load repo file: {path} must contain a mapping", {"path": path})

    entries = []
    for item in data.get("repositories") or []:
        if isinstance(item, dict) and item.get("name"):
            entries.append(RepoEntry(name=str(item["name"]), url=str(item.get("url") or "")))
    return entries


def lookup_repo_entry(name: str, path: Optional[str] = None) -> RepoEntry:
    """Find a registered repository by name.

    Raises:
        RepositoryNotFoundError: When no repository has that name
    """
    for entry in load_repo_entries(path):
        if entry.name == name:
            return entry
    raise RepositoryNotFoundError(name)


class Repository(ABC):
    """Target repository of a workflow."""

    @property
    @abstractmethod
    def url(self) -> str:
        """Repository URL."""

    @property
    def index_url(self) -> str:
        return index_file_url(self.url)

    @property
    @abstractmethod
    def cache_file(self) -> str:
        """Local index cache path; "" when the repository has no cache."""

    @property
    def should_update_cache(self) -> bool:
        return bool(self.cache_file)


class LocalRepository(Repository):
    """Repository registered with `helm repo add`."""

    def __init__(self, entry: RepoEntry) -> None:
        self.entry = entry

    @property
    def url(self) -> str:
        return self.entry.url

    @property
    def cache_file(self) -> str:
        return self.entry.cache_file

    def __repr__(self) -> str:
        return f"LocalRepository(name={self.entry.name!r}, url={self.url!r})"


class RemoteRepository(Repository):
    """Repository addressed directly by storage URI, without local configuration."""

    def __init__(self, uri: str) -> None:
        self.uri = uri

    @property
    def url(self) -> str:
        return self.uri

    @property
    def cache_file(self) -> str:
        return ""

    def __repr__(self) -> str:
        return f"RemoteRepository(uri={self.uri!r})"


def new_repository(repo_or_uri: str, path: Optional[str] = None) -> Repository:
    """Resolve a repository name or storage URI."""
    if repo_or_uri.startswith(STORAGE_SCHEMES):
        return RemoteRepository(repo_or_uri)
    entry = lookup_repo_entry(repo_or_uri, path)
    logger.debug(f"Resolved repository {repo_or_uri} to {entry.url}")
    return LocalRepository(entry)
