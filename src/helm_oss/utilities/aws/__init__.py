"""AWS operations utilities.

This module provides composable utilities for S3-compatible object storage:
- Session and client creation from an explicit StorageConfig
- Object listing, metadata lookup, download, upload and batch deletion

All utilities take the client as their first argument so they can be used
with any boto3-compatible client, including test doubles.
"""

from __future__ import annotations

from .session import (
    client_config,
    create_client,
    create_session,
)
from .s3 import (
    delete_objects,
    get_object,
    head_object,
    list_objects,
    object_exists,
    put_object,
    read_object,
    translate_error,
)

__all__ = [
    # Session management
    "create_session",
    "create_client",
    "client_config",
    # S3 operations
    "list_objects",
    "head_object",
    "get_object",
    "read_object",
    "put_object",
    "delete_objects",
    "object_exists",
    "translate_error",
]
