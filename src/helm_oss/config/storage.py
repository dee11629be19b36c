"""Object storage configuration.

StorageConfig holds everything needed to build a storage client: endpoint,
region, credentials and the per-call timeout. It is resolved once, at startup,
and passed explicitly to Storage; there is no process-wide client.

Resolution order (later wins):
1. ~/.config/helm_plugin_oss.yaml
2. HELM_OSS_* environment variables
3. Explicit constructor arguments / CLI flags
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml

from ..constants import DEFAULT_TIMEOUT_SECONDS
from ..exceptions import ConfigurationError
from .base import Configuration, ConfigValidationResult

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "helm_plugin_oss.yaml"

# Config file key -> attribute name
_FILE_KEYS = {
    "endpoint": "endpoint",
    "region": "region",
    "accessKeyID": "access_key_id",
    "accessKeySecret": "access_key_secret",
    "sessionToken": "session_token",
}

# Environment variable -> attribute name
_ENV_KEYS = {
    "HELM_OSS_ENDPOINT": "endpoint",
    "HELM_OSS_REGION": "region",
    "HELM_OSS_ACCESS_KEY_ID": "access_key_id",
    "HELM_OSS_ACCESS_KEY_SECRET": "access_key_secret",
    "HELM_OSS_SESSION_TOKEN": "session_token",
}


def default_config_path() -> str:
    return os.path.join(os.path.expanduser("~"), ".config", CONFIG_FILE_NAME)


class StorageConfig(Configuration):
    """Connection settings for an S3-compatible object store.

    Example usage:
        config = StorageConfig.load()
        result = config.validate()
        if not result.success:
            for error in result.errors:
                print(f"Configuration error: {error}")
    """

    def __init__(
        self,
        endpoint: str = "",
        region: str = "",
        access_key_id: str = "",
        access_key_secret: str = "",
        session_token: str = "",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.endpoint = endpoint
        self.region = region
        self.access_key_id = access_key_id
        self.access_key_secret = access_key_secret
        self.session_token = session_token
        self.timeout = timeout

    @property
    def endpoint_url(self) -> Optional[str]:
        """Endpoint with a scheme, as boto3 expects it; None when unset."""
        if not self.endpoint:
            return None
        if "://" in self.endpoint:
            return self.endpoint
        return f"https://{self.endpoint}"

    @property
    def has_static_credentials(self) -> bool:
        return bool(self.access_key_id and self.access_key_secret)

    def validate(self) -> ConfigValidationResult:
        result = ConfigValidationResult.success_result()

        if not self.endpoint and not self.region:
            result.add_error(
                "Either an endpoint or a region is required "
                "(set HELM_OSS_ENDPOINT or HELM_OSS_REGION, or 'endpoint' in ~/.config/helm_plugin_oss.yaml)"
            )

        if self.endpoint:
            parsed = urlparse(self.endpoint_url or "")
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                result.add_error(f"Endpoint {self.endpoint!r} is not a valid host or http(s) URL")

        if bool(self.access_key_id) != bool(self.access_key_secret):
            result.add_error("Access key ID and access key secret must be set together")

        if self.session_token and not self.has_static_credentials:
            result.add_error("A session token requires an access key ID and secret")

        if self.timeout is not None and self.timeout <= 0:
            result.add_error("Timeout must be a positive number of seconds")

        return result

    def to_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "region": self.region,
            "access_key_id": self.access_key_id,
            "access_key_secret": self.access_key_secret,
            "session_token": self.session_token,
            "timeout": self.timeout,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> StorageConfig:
        if not isinstance(data, dict):
            raise ConfigurationError(f"storage configuration must be a mapping, got {type(data).__name__}")
        known = {k: data[k] for k in cls().to_dict() if k in data and data[k] is not None}
        return cls(**known)

    @classmethod
    def from_file(cls, path: Optional[str] = None) -> StorageConfig:
        """Load settings from the plugin config file.

        A missing file yields an empty configuration; an unreadable one raises.

        Raises:
            ConfigurationError: When the file exists but is not valid YAML
        """
        path = path or default_config_path()
        config = cls()
        if not os.path.exists(path):
            return config

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"read config file {path}: {e}", {"path": path}) from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"config file {path} must contain a mapping", {"path": path})

        for key, attr in _FILE_KEYS.items():
            value = data.get(key)
            if value:
                setattr(config, attr, str(value))
        logger.debug(f"Loaded storage configuration from {path}")
        return config

    def apply_environment(self, environ: Optional[Dict[str, str]] = None) -> StorageConfig:
        """Override settings with non-empty HELM_OSS_* environment variables."""
        environ = os.environ if environ is None else environ
        for env_key, attr in _ENV_KEYS.items():
            value = environ.get(env_key)
            if value:
                setattr(self, attr, value)
        return self

    @classmethod
    def load(cls, path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> StorageConfig:
        """Resolve configuration from the config file, then the environment."""
        return cls.from_file(path).apply_environment(environ)

    def __repr__(self) -> str:
        return (
            f"StorageConfig(endpoint={self.endpoint!r}, region={self.region!r}, "
            f"static_credentials={self.has_static_credentials}, timeout={self.timeout!r})"
        )
