"""
Blob storage for profile archives.

The service only needs put/locate/delete on opaque keys, expressed by the
BlobStorage protocol. S3BlobStorage implements it on any S3-compatible bucket
using boto3; its blocking calls run in a worker thread so they never stall the
event loop.
"""
import asyncio
import logging
from typing import Any, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from core.config import Settings
from services.exceptions import UpstreamUnavailableError

logger = logging.getLogger(__name__)

ARCHIVE_CONTENT_TYPE = "application/zip"
PRESIGNED_URL_EXPIRY_SECONDS = 3600


class BlobStorage(Protocol):
    """Key-addressable storage for archive bytes."""

    async def put(self, key: str, data: bytes) -> str:
        """Store data under key and return the reference to persist."""
        ...

    async def get_location(self, reference: str) -> str:
        """Return a URL the client can fetch the blob from."""
        ...

    async def delete(self, reference: str) -> None:
        """Remove the blob. Deleting a missing blob is not an error."""
        ...


class S3BlobStorage:
    """BlobStorage backed by an S3-compatible bucket."""

    def __init__(
        self,
        *,
        bucket: str,
        client: Any,
        public_url: str | None = None,
    ) -> None:
        self._bucket = bucket
        self._client = client
        self._public_url = public_url.rstrip("/") if public_url else None

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3BlobStorage":
        """
        Build a storage client from settings.

        Connect/read timeouts bound every call and retries are disabled; retrying
        is the API caller's decision.
        """
        config = Config(
            connect_timeout=settings.storage_timeout_seconds,
            read_timeout=settings.storage_timeout_seconds,
            retries={"total_max_attempts": 1},
        )
        client = boto3.client(
            "s3",
            region_name=settings.s3_region,
            endpoint_url=settings.s3_endpoint,
            config=config,
        )
        return cls(bucket=settings.s3_bucket, client=client, public_url=settings.storage_public_url)

    async def put(self, key: str, data: bytes) -> str:
        """Upload the archive and return its key."""
        await self._call(
            "put_object",
            Bucket=self._bucket,
            Key=key,
            Body=data,
            ContentType=ARCHIVE_CONTENT_TYPE,
        )
        return key

    async def get_location(self, reference: str) -> str:
        """Return the CDN URL when configured, otherwise a presigned GET URL."""
        if self._public_url:
            return f"{self._public_url}/{reference}"
        return await self._call(
            "generate_presigned_url",
            "get_object",
            Params={"Bucket": self._bucket, "Key": reference},
            ExpiresIn=PRESIGNED_URL_EXPIRY_SECONDS,
        )

    async def delete(self, reference: str) -> None:
        """Delete the archive object."""
        await self._call("delete_object", Bucket=self._bucket, Key=reference)

    async def _call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(getattr(self._client, method), *args, **kwargs)
        except (BotoCoreError, ClientError) as e:
            logger.error("Blob storage %s failed: %s", method, e, exc_info=True)
            raise UpstreamUnavailableError("Profile storage is unavailable.") from e


# Global storage state using a container to avoid global statement
class _StorageState:
    """Container for the global blob storage instance."""

    storage: BlobStorage | None = None


_state = _StorageState()


def get_blob_storage() -> BlobStorage:
    """
    Dependency returning the configured blob storage.

    Raises:
        UpstreamUnavailableError: If storage was not configured at startup.
    """
    if _state.storage is None:
        raise UpstreamUnavailableError("Profile storage is not configured.")
    return _state.storage


def set_blob_storage(storage: BlobStorage | None) -> None:
    """Set the global blob storage instance."""
    _state.storage = storage
