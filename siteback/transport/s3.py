# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
S3 transport - AWS S3 and S3-compatible services.

Backblaze B2 and DigitalOcean Spaces speak the S3 protocol, so they are
the same transport pointed at a provider-specific endpoint.
"""

from pathlib import Path
from typing import Any, AsyncIterator, List

import aiofiles
import structlog

from siteback.config import RemoteProvider
from siteback.exceptions import TransferError
from siteback.transport import Transport

logger = structlog.get_logger()

_CHUNK_SIZE = 1024 * 1024

# S3 rejects multipart parts under 5 MiB, except the last one
PART_SIZE = 8 * 1024 * 1024

_ENDPOINTS = {
    RemoteProvider.BACKBLAZE: "https://s3.{region}.backblazeb2.com",
    RemoteProvider.DIGITALOCEAN: "https://{region}.digitaloceanspaces.com",
}


class S3Transport(Transport):
    """Store artifacts as objects under `prefix` in an S3 bucket."""

    name = "aws"

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        prefix: str = "",
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        session: Any = None,
        list_batch_size: int = 1000,
        part_size: int = PART_SIZE,
    ):
        self.bucket = bucket
        self.region = region
        self.prefix = prefix.strip("/") + "/" if prefix.strip("/") else ""
        self.endpoint_url = endpoint_url
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.list_batch_size = list_batch_size
        self.part_size = part_size
        self._session = session

    @classmethod
    def for_provider(
        cls,
        provider: RemoteProvider,
        *,
        bucket: str,
        region: str,
        prefix: str = "",
        endpoint_url: str | None = None,
        **kwargs: Any,
    ) -> "S3Transport":
        """
        Build a transport for an S3-compatible provider.

        An explicit endpoint_url wins over the provider's default endpoint.
        """
        template = _ENDPOINTS.get(provider)
        if endpoint_url is None and template is not None:
            endpoint_url = template.format(region=region)

        transport = cls(
            bucket=bucket,
            region=region,
            prefix=prefix,
            endpoint_url=endpoint_url,
            **kwargs,
        )
        transport.name = provider.value
        return transport

    def is_configured(self) -> bool:
        return bool(self.bucket and self.region)

    def _client(self):
        if self._session is None:
            from aiobotocore.session import get_session

            self._session = get_session()

        options: dict = {"region_name": self.region, "endpoint_url": self.endpoint_url}
        if self.access_key_id and self.secret_access_key:
            options["aws_access_key_id"] = self.access_key_id
            options["aws_secret_access_key"] = self.secret_access_key
        return self._session.create_client("s3", **options)

    def _key(self, remote_key: str) -> str:
        return self.prefix + Path(remote_key).name

    async def is_authenticated(self) -> bool:
        try:
            async with self._client() as s3_client:
                await s3_client.head_bucket(Bucket=self.bucket)
            return True
        except Exception as e:
            logger.warning("s3_auth_check_failed", bucket=self.bucket, error=str(e))
            return False

    async def list(self, filter_extension: str) -> List[str]:
        keys: List[str] = []
        try:
            async with self._client() as s3_client:
                paginator = s3_client.get_paginator("list_objects_v2")
                async for page in paginator.paginate(
                    Bucket=self.bucket,
                    Prefix=self.prefix,
                    MaxKeys=self.list_batch_size,
                ):
                    for obj in page.get("Contents", []):
                        keys.append(obj["Key"])
        except Exception as e:
            raise TransferError(
                f"Failed to list remote artifacts: {e}",
                details={"bucket": self.bucket, "prefix": self.prefix},
            )
        return self.filter_by_extension(keys, filter_extension)

    async def push(self, local_path: Path) -> None:
        local_path = Path(local_path)
        key = self._key(local_path.name)
        try:
            async with self._client() as s3_client:
                size = await upload_stream(
                    s3_client, self.bucket, key, _read_chunks(local_path), self.part_size
                )
        except Exception as e:
            raise TransferError(
                f"Failed to push artifact: {e}",
                details={"bucket": self.bucket, "key": key},
            )
        logger.debug("s3_artifact_pushed", bucket=self.bucket, key=key, size=size)

    async def pull(self, remote_key: str, local_path: Path) -> None:
        key = self._key(remote_key)
        local_path = Path(local_path)
        try:
            local_path.parent.mkdir(parents=True, exist_ok=True)
            async with self._client() as s3_client:
                response = await s3_client.get_object(Bucket=self.bucket, Key=key)
                async with response["Body"] as stream, aiofiles.open(local_path, "wb") as f:
                    while True:
                        chunk = await stream.read(_CHUNK_SIZE)
                        if not chunk:
                            break
                        await f.write(chunk)
        except Exception as e:
            raise TransferError(
                f"Failed to pull artifact: {e}",
                details={"bucket": self.bucket, "key": key},
            )
        logger.debug("s3_artifact_pulled", bucket=self.bucket, key=key)

    async def delete(self, remote_key: str) -> None:
        key = self._key(remote_key)
        try:
            async with self._client() as s3_client:
                await s3_client.delete_object(Bucket=self.bucket, Key=key)
        except Exception as e:
            raise TransferError(
                f"Failed to delete artifact: {e}",
                details={"bucket": self.bucket, "key": key},
            )
        logger.debug("s3_artifact_deleted", bucket=self.bucket, key=key)


async def _read_chunks(path: Path) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk


async def upload_stream(
    s3_client: Any,
    bucket: str,
    key: str,
    chunks: AsyncIterator[bytes],
    part_size: int = PART_SIZE,
) -> int:
    """
    Upload a byte stream to bucket/key, holding at most one part in memory.

    A stream that fits in one part is sent with put_object. Anything larger
    becomes a multipart upload, which is aborted if a part fails.

    Returns:
        Number of bytes uploaded
    """
    buffer = bytearray()
    parts: List[dict] = []
    upload_id = None
    total = 0

    async def send_part(data: bytes) -> None:
        number = len(parts) + 1
        response = await s3_client.upload_part(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            PartNumber=number,
            Body=data,
        )
        parts.append({"ETag": response["ETag"], "PartNumber": number})

    try:
        async for chunk in chunks:
            buffer += chunk
            total += len(chunk)
            while len(buffer) >= part_size:
                if upload_id is None:
                    response = await s3_client.create_multipart_upload(Bucket=bucket, Key=key)
                    upload_id = response["UploadId"]
                await send_part(bytes(buffer[:part_size]))
                del buffer[:part_size]

        if upload_id is None:
            await s3_client.put_object(Bucket=bucket, Key=key, Body=bytes(buffer))
            return total

        if buffer:
            await send_part(bytes(buffer))
        await s3_client.complete_multipart_upload(
            Bucket=bucket,
            Key=key,
            UploadId=upload_id,
            MultipartUpload={"Parts": parts},
        )
    except BaseException:
        if upload_id is not None:
            try:
                await s3_client.abort_multipart_upload(
                    Bucket=bucket, Key=key, UploadId=upload_id
                )
            except Exception as abort_error:
                logger.warning(
                    "s3_multipart_abort_failed",
                    bucket=bucket,
                    key=key,
                    error=str(abort_error),
                )
        raise

    logger.debug("s3_multipart_upload_completed", bucket=bucket, key=key, parts=len(parts))
    return total
