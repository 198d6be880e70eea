"""Object storage abstraction. S3-compatible bucket for production, local disk for dev."""
import asyncio
import logging
import os
from pathlib import Path
from urllib.parse import quote

import aiofiles
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from upload_gallery.config import Settings
from upload_gallery.errors import StorageConflictError, StorageError, StorageNotFoundError

logger = logging.getLogger(__name__)

# Error codes S3-compatible stores return when IfNoneMatch="*" finds an existing key.
_CONFLICT_CODES = {"PreconditionFailed", "ConditionalRequestConflict", "Duplicate"}
_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class ObjectStorage:
    """Handles blob write/read against an S3-compatible bucket or a local directory.

    Keys are never overwritten: a second write to an existing key raises
    StorageConflictError.
    """

    def __init__(self, settings: Settings, s3_client=None):
        self.storage_type = settings.STORAGE_TYPE
        self.bucket = settings.STORAGE_BUCKET
        self.public_base_url = settings.STORAGE_PUBLIC_URL.rstrip("/")

        if self.storage_type == "local":
            self.base_path = Path(settings.FILE_STORAGE_PATH) / self.bucket
            self.base_path.mkdir(parents=True, exist_ok=True)

        elif self.storage_type == "s3":
            self.endpoint_url = settings.STORAGE_ENDPOINT_URL.rstrip("/")
            self.region = settings.STORAGE_REGION
            self.client = s3_client or _build_s3_client(settings)

        else:
            raise ValueError(f"Unknown storage type: {self.storage_type}")

    async def save(self, key: str, data: bytes, content_type: str) -> None:
        """Write a new blob. Raises StorageConflictError if the key is taken."""
        logger.info("Uploading %d bytes to %s/%s", len(data), self.bucket, key)

        if self.storage_type == "local":
            path = self._local_path(key)
            try:
                async with aiofiles.open(path, "xb") as f:
                    await f.write(data)
            except FileExistsError as e:
                raise StorageConflictError("The resource already exists") from e
            except OSError as e:
                raise StorageError(str(e)) from e
            return

        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                IfNoneMatch="*",
            )
        except ClientError as e:
            raise _translate_client_error(e) from e
        except BotoCoreError as e:
            raise StorageError(str(e)) from e

    async def read(self, key: str) -> bytes:
        """Read a whole blob into memory."""
        if self.storage_type == "local":
            try:
                async with aiofiles.open(self._local_path(key), "rb") as f:
                    return await f.read()
            except FileNotFoundError as e:
                raise StorageNotFoundError(f"Object not found: {key}") from e
            except OSError as e:
                raise StorageError(str(e)) from e

        try:
            response = await asyncio.to_thread(self.client.get_object, Bucket=self.bucket, Key=key)
            return await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            raise _translate_client_error(e) from e
        except BotoCoreError as e:
            raise StorageError(str(e)) from e

    async def delete(self, key: str) -> None:
        """Delete a blob. Missing keys are not an error."""
        logger.info("Deleting %s/%s", self.bucket, key)
        if self.storage_type == "local":
            path = self._local_path(key)
            if path.exists():
                os.remove(path)
            return

        try:
            await asyncio.to_thread(self.client.delete_object, Bucket=self.bucket, Key=key)
        except ClientError as e:
            raise _translate_client_error(e) from e
        except BotoCoreError as e:
            raise StorageError(str(e)) from e

    async def rollback_upload(self, key: str) -> None:
        """Best-effort delete of a blob whose metadata could not be recorded.

        Failures are logged, not raised: the request is already failing and
        the blob is left for manual cleanup.
        """
        try:
            logger.warning("Rolling back upload, deleting object: %s", key)
            await self.delete(key)
        except StorageError:
            logger.exception("Failed to roll back upload, orphaned object: %s", key)

    def public_url(self, key: str) -> str | None:
        """Public retrieval URL for a key, or None if one cannot be produced."""
        if self.storage_type == "local":
            path = self._local_path(key)
            if not path.exists():
                return None
            return path.resolve().as_uri()

        quoted = quote(key)
        if self.public_base_url:
            return f"{self.public_base_url}/{quoted}"
        if self.endpoint_url:
            return f"{self.endpoint_url}/{self.bucket}/{quoted}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{quoted}"

    async def ensure_bucket(self) -> None:
        """Create the bucket if it does not exist yet."""
        if self.storage_type == "local":
            self.base_path.mkdir(parents=True, exist_ok=True)
            return

        try:
            await asyncio.to_thread(self.client.head_bucket, Bucket=self.bucket)
            return
        except ClientError:
            logger.info("Bucket %s not found, creating it", self.bucket)

        kwargs = {"Bucket": self.bucket}
        if self.region and self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            await asyncio.to_thread(self.client.create_bucket, **kwargs)
        except ClientError as e:
            raise _translate_client_error(e) from e

    def _local_path(self, key: str) -> Path:
        path = self.base_path / key
        if path.parent != self.base_path:
            raise StorageError(f"Invalid object key: {key}")
        return path


def _build_s3_client(settings: Settings):
    kwargs = {"region_name": settings.STORAGE_REGION}
    if settings.STORAGE_ENDPOINT_URL:
        kwargs["endpoint_url"] = settings.STORAGE_ENDPOINT_URL
        # MinIO and Supabase serve buckets under the path, not a subdomain.
        kwargs["config"] = Config(s3={"addressing_style": "path"})
    if settings.STORAGE_ACCESS_KEY_ID:
        kwargs["aws_access_key_id"] = settings.STORAGE_ACCESS_KEY_ID
        kwargs["aws_secret_access_key"] = settings.STORAGE_SECRET_ACCESS_KEY
    return boto3.client("s3", **kwargs)


def _translate_client_error(error: ClientError) -> StorageError:
    details = error.response.get("Error", {})
    code = str(details.get("Code", ""))
    message = details.get("Message") or str(error)
    status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")

    if code in _CONFLICT_CODES or status in (409, 412):
        return StorageConflictError(message)
    if code in _NOT_FOUND_CODES or status == 404:
        return StorageNotFoundError(message)
    return StorageError(message)
