"""R2/S3-compatible object store client."""

import asyncio
from dataclasses import dataclass
from typing import Optional, Protocol

import boto3
from botocore.exceptions import ClientError

# Error codes S3 and R2 use for an absent object
_MISSING_CODES = {"NoSuchKey", "404", "NotFound"}


@dataclass
class StoredObject:
    """An object read from the bucket.

    Attributes:
        key: Object key within the bucket
        body: Raw object bytes
        etag: ETag reported by the store, if any
        content_type: Content type reported by the store, if any
    """

    key: str
    body: bytes
    etag: Optional[str] = None
    content_type: Optional[str] = None


class ObjectStore(Protocol):
    """Read-only view of a bucket used by the proxy."""

    async def get(self, key: str) -> Optional[StoredObject]:
        ...


class R2Client:
    """R2 storage client for subtitle objects.

    Attributes:
        bucket: R2 bucket name
        endpoint_url: R2 endpoint URL
    """

    def __init__(
        self,
        bucket: str,
        endpoint_url: str,
        access_key_id: str,
        secret_access_key: str,
        region: str = "auto",
    ):
        """Initialize R2 client.

        Args:
            bucket: R2 bucket name
            endpoint_url: R2 endpoint URL
            access_key_id: R2 access key id
            secret_access_key: R2 secret access key
            region: R2 region

        Raises:
            ValueError: If either credential is empty
        """
        if not access_key_id or not secret_access_key:
            raise ValueError(
                "R2 credentials not set. "
                "Set DEEPSRT_R2_ACCESS_KEY_ID and DEEPSRT_R2_SECRET_ACCESS_KEY."
            )

        self.bucket = bucket
        self.endpoint_url = endpoint_url
        self.s3 = boto3.client(
            "s3",
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            region_name=region,
        )

    def _get_object(self, key: str) -> Optional[StoredObject]:
        try:
            response = self.s3.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in _MISSING_CODES:
                return None
            raise

        return StoredObject(
            key=key,
            body=response["Body"].read(),
            etag=response.get("ETag"),
            content_type=response.get("ContentType"),
        )

    async def get(self, key: str) -> Optional[StoredObject]:
        """Fetch an object from R2.

        Args:
            key: Object key within the bucket

        Returns:
            The object, or None if it does not exist

        Raises:
            ClientError: For any failure other than a missing object
        """
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self._get_object, key)

    async def exists(self, key: str) -> bool:
        """Check if an object exists in R2.

        Args:
            key: Object key within the bucket

        Returns:
            True if object exists, False otherwise
        """
        loop = asyncio.get_event_loop()

        try:
            await loop.run_in_executor(
                None, lambda: self.s3.head_object(Bucket=self.bucket, Key=key)
            )
            return True
        except ClientError:
            return False
