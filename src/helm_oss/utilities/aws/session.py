"""AWS session and client creation from an explicit StorageConfig.

Sessions use the static credentials from the configuration when present and
otherwise fall back to boto3's default credential chain (environment,
shared credentials file, instance role).
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config

from ...config import StorageConfig
from ...exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_SECONDS = 10


def create_session(config: StorageConfig) -> boto3.Session:
    """Create a boto3 session for the configured credentials and region.

    Raises:
        ConfigurationError: When the session cannot be created
    """
    kwargs = {}
    if config.region:
        kwargs["region_name"] = config.region
    if config.has_static_credentials:
        kwargs["aws_access_key_id"] = config.access_key_id
        kwargs["aws_secret_access_key"] = config.access_key_secret
        if config.session_token:
            kwargs["aws_session_token"] = config.session_token
        logger.debug("Using static credentials from storage configuration")
    else:
        logger.debug("Using default AWS credential chain")

    try:
        return boto3.Session(**kwargs)
    except Exception as e:
        raise ConfigurationError(f"Failed to create storage session: {e}") from e


def client_config(config: StorageConfig) -> Config:
    """botocore client settings: virtual-host addressing, bounded timeouts, no retries."""
    read_timeout = config.timeout if config.timeout else 60
    return Config(
        s3={"addressing_style": "virtual"},
        connect_timeout=min(CONNECT_TIMEOUT_SECONDS, read_timeout),
        read_timeout=read_timeout,
        retries={"total_max_attempts": 1, "mode": "standard"},
    )


def create_client(session: boto3.Session, config: StorageConfig, region: Optional[str] = None) -> Any:
    """Create an S3 client for the configured endpoint.

    Args:
        session: A boto3 session
        config: Storage configuration supplying endpoint and timeouts
        region: AWS region for the client (overrides session region)
    """
    kwargs = {"config": client_config(config)}
    if config.endpoint_url:
        kwargs["endpoint_url"] = config.endpoint_url
    if region:
        kwargs["region_name"] = region
    return session.client("s3", **kwargs)
