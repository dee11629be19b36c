"""S3 object operations.

Thin wrappers over an S3 client that:
- List objects one page at a time with continuation tokens
- Read object metadata and bodies (streaming)
- Upload objects with user metadata
- Batch-delete objects
- Translate botocore errors into the helm-oss error taxonomy

No call is retried; transport errors surface to the caller as StorageError.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ...exceptions import BucketNotFoundError, HelmOSSError, ObjectNotFoundError, StorageError

logger = logging.getLogger(__name__)

_OBJECT_NOT_FOUND_CODES = frozenset({"NoSuchKey", "NotFound", "404"})
_BUCKET_NOT_FOUND_CODES = frozenset({"NoSuchBucket"})


def translate_error(e: Exception, action: str, bucket: str, key: Optional[str] = None) -> HelmOSSError:
    """Map a boto error onto ObjectNotFoundError, BucketNotFoundError or StorageError."""
    context = {"bucket": bucket, "action": action}
    if key is not None:
        context["key"] = key

    if isinstance(e, ClientError):
        error = e.response.get("Error", {})
        code = str(error.get("Code", ""))
        status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        context["code"] = code
        if code in _BUCKET_NOT_FOUND_CODES:
            return BucketNotFoundError(f"bucket {bucket!r} not found", context)
        if code in _OBJECT_NOT_FOUND_CODES or status == 404:
            target = f"{bucket}/{key}" if key else bucket
            return ObjectNotFoundError(f"object {target!r} not found", context)

    target = f"'{key}' in bucket '{bucket}'" if key else f"bucket '{bucket}'"
    return StorageError(f"Failed to {action} {target}: {e}", context)


def list_objects(
    client: Any,
    bucket: str,
    prefix: str = "",
    max_keys: int = 1000,
    continuation_token: Optional[str] = None,
    **kwargs: Any,
) -> Dict[str, Any]:
    """List one page of objects in a bucket.

    Args:
        client: S3 client instance
        bucket: S3 bucket name
        prefix: Filter objects by prefix (default: "")
        max_keys: Maximum number of objects to return (default: 1000)
        continuation_token: Token for pagination (default: None)
        **kwargs: Additional parameters to pass to list_objects_v2

    Returns:
        Dict with objects list and pagination information

    Raises:
        BucketNotFoundError: When the bucket does not exist
        StorageError: When listing objects fails

    Examples:
        >>> result = list_objects(s3_client, 'my-bucket', prefix='charts/')
        >>> for obj in result['objects']:
        ...     print(obj['key'])
    """
    params: Dict[str, Any] = {"Bucket": bucket, "MaxKeys": max_keys, **kwargs}

    if prefix:
        params["Prefix"] = prefix
    if continuation_token:
        params["ContinuationToken"] = continuation_token

    try:
        response = client.list_objects_v2(**params)
    except (ClientError, BotoCoreError) as e:
        raise translate_error(e, "list objects in", bucket) from e

    objects = [
        {"key": item.get("Key"), "size": item.get("Size")}
        for item in response.get("Contents", [])
    ]

    return {
        "bucket": bucket,
        "prefix": prefix,
        "objects": objects,
        "truncated": response.get("IsTruncated", False),
        "next_token": response.get("NextContinuationToken"),
    }


def head_object(client: Any, bucket: str, key: str) -> Dict[str, str]:
    """Return the user metadata attached to an object.

    Raises:
        ObjectNotFoundError: When the object does not exist
        StorageError: When the request fails
    """
    try:
        response = client.head_object(Bucket=bucket, Key=key)
    except (ClientError, BotoCoreError) as e:
        raise translate_error(e, "head object", bucket, key) from e
    return dict(response.get("Metadata") or {})


def get_object(client: Any, bucket: str, key: str) -> Any:
    """Open an object for reading.

    Returns:
        The streaming body; the caller must close it

    Raises:
        ObjectNotFoundError / BucketNotFoundError: When the object or bucket is missing
        StorageError: When the request fails
    """
    try:
        response = client.get_object(Bucket=bucket, Key=key)
    except (ClientError, BotoCoreError) as e:
        raise translate_error(e, "get object", bucket, key) from e
    return response["Body"]


def read_object(client: Any, bucket: str, key: str) -> bytes:
    """Download a whole object into memory."""
    body = get_object(client, bucket, key)
    try:
        return body.read()
    except (ClientError, BotoCoreError) as e:
        raise translate_error(e, "read object body", bucket, key) from e
    finally:
        body.close()


def put_object(
    client: Any,
    bucket: str,
    key: str,
    data: bytes,
    content_type: Optional[str] = None,
    metadata: Optional[Dict[str, str]] = None,
) -> None:
    """Upload an object with optional content type and user metadata.

    Raises:
        BucketNotFoundError: When the bucket does not exist
        StorageError: When the upload fails
    """
    params: Dict[str, Any] = {"Bucket": bucket, "Key": key, "Body": data}

    if content_type:
        params["ContentType"] = content_type
    if metadata:
        params["Metadata"] = metadata

    try:
        client.put_object(**params)
    except (ClientError, BotoCoreError) as e:
        raise translate_error(e, "put object", bucket, key) from e


def delete_objects(client: Any, bucket: str, keys: Iterable[str]) -> None:
    """Delete several objects in one request. Missing keys are not an error.

    Raises:
        StorageError: When the request fails or any key could not be deleted
    """
    objects: List[Dict[str, str]] = [{"Key": k} for k in keys]
    if not objects:
        return

    try:
        response = client.delete_objects(Bucket=bucket, Delete={"Objects": objects, "Quiet": True})
    except (ClientError, BotoCoreError) as e:
        raise translate_error(e, "delete objects from", bucket) from e

    errors = response.get("Errors") or []
    if errors:
        failed = ", ".join(f"{err.get('Key')} ({err.get('Code')})" for err in errors)
        raise StorageError(
            f"Failed to delete objects from bucket '{bucket}': {failed}",
            {"bucket": bucket, "errors": errors},
        )


def object_exists(client: Any, bucket: str, key: str) -> bool:
    """Check if an object exists.

    Raises:
        BucketNotFoundError: When the bucket does not exist
        StorageError: When the check fails for a reason other than not-found
    """
    try:
        head_object(client, bucket, key)
    except ObjectNotFoundError:
        return False
    return True
