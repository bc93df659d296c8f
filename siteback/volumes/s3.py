# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
S3 volume - media files stored under a prefix of an S3 bucket.

S3 has no real directories; keys ending in '/' (as created by some
consoles) are reported as directory entries, everything else as files.
"""

from typing import Any, AsyncIterator, List

import structlog

from siteback.exceptions import VolumeIOError
from siteback.transport.s3 import PART_SIZE, upload_stream
from siteback.volumes import VolumeEntry

logger = structlog.get_logger()

_CHUNK_SIZE = 1024 * 1024


class S3Volume:
    """A volume backed by objects under `prefix` in an S3 bucket."""

    def __init__(
        self,
        handle: str,
        bucket: str,
        prefix: str = "",
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        session: Any = None,
        list_batch_size: int = 1000,
        part_size: int = PART_SIZE,
    ):
        self.handle = handle
        self.bucket = bucket
        self.prefix = prefix.strip("/") + "/" if prefix.strip("/") else ""
        self.region = region
        self.endpoint_url = endpoint_url
        self.list_batch_size = list_batch_size
        self.part_size = part_size
        self._session = session

    def __repr__(self) -> str:
        return f"S3Volume(handle={self.handle!r}, bucket={self.bucket!r}, prefix={self.prefix!r})"

    def _client(self):
        if self._session is None:
            from aiobotocore.session import get_session

            self._session = get_session()
        return self._session.create_client(
            "s3",
            region_name=self.region,
            endpoint_url=self.endpoint_url,
        )

    def _key(self, relative_path: str) -> str:
        return self.prefix + relative_path.lstrip("/")

    async def list_entries(self) -> List[VolumeEntry]:
        """List every object below the prefix."""
        entries: List[VolumeEntry] = []
        try:
            async with self._client() as s3_client:
                paginator = s3_client.get_paginator("list_objects_v2")
                async for page in paginator.paginate(
                    Bucket=self.bucket,
                    Prefix=self.prefix,
                    MaxKeys=self.list_batch_size,
                ):
                    for obj in page.get("Contents", []):
                        relative = obj["Key"][len(self.prefix):]
                        if not relative:
                            continue
                        if relative.endswith("/"):
                            entries.append(VolumeEntry(relative.rstrip("/"), is_directory=True))
                        else:
                            entries.append(VolumeEntry(relative))
        except Exception as e:
            raise VolumeIOError(
                f"Failed to list S3 volume: {e}",
                details={"handle": self.handle, "bucket": self.bucket},
            )
        return entries

    async def read_file(self, relative_path: str) -> AsyncIterator[bytes]:
        key = self._key(relative_path)
        try:
            async with self._client() as s3_client:
                response = await s3_client.get_object(Bucket=self.bucket, Key=key)
                async with response["Body"] as stream:
                    while True:
                        chunk = await stream.read(_CHUNK_SIZE)
                        if not chunk:
                            break
                        yield chunk
        except Exception as e:
            raise VolumeIOError(
                f"Failed to read S3 volume file: {e}",
                details={"handle": self.handle, "key": key},
            )

    async def write_file(self, relative_path: str, chunks: AsyncIterator[bytes]) -> None:
        key = self._key(relative_path)
        try:
            async with self._client() as s3_client:
                size = await upload_stream(
                    s3_client, self.bucket, key, chunks, self.part_size
                )
        except Exception as e:
            raise VolumeIOError(
                f"Failed to write S3 volume file: {e}",
                details={"handle": self.handle, "key": key},
            )
        logger.debug("volume_file_written", handle=self.handle, key=key, size=size)
