"""Configuration for helm-oss."""

from .base import Configuration, ConfigValidationResult
from .storage import StorageConfig, default_config_path

__all__ = ["Configuration", "ConfigValidationResult", "StorageConfig", "default_config_path"]
