# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Test fixtures for siteback tests.

Provides in-memory volumes, a recording transport and database, a fake
aiobotocore session, and test configuration helpers.
"""

import io
import os
import tempfile
from pathlib import Path
from typing import AsyncIterator, Dict, Generator, List

import pytest
import pytest_asyncio

from siteback.config import BackupConfig
from siteback.exceptions import DumpRestoreError, TransferError, VolumeIOError
from siteback.transport import Transport
from siteback.volumes import VolumeEntry

# Set test environment variables
os.environ["SITEBACK_ADMIN_API_KEY"] = "test-api-key-12345"


# ============================================================================
# Collaborator fakes
# ============================================================================

class MemoryVolume:
    """A volume held in a dict of relative path -> bytes."""

    def __init__(
        self,
        handle: str,
        files: Dict[str, bytes] | None = None,
        directories: List[str] | None = None,
        fail_on_read: str | None = None,
        fail_on_write: str | None = None,
    ):
        self.handle = handle
        self.files: Dict[str, bytes] = dict(files or {})
        self.directories = list(directories or [])
        self.fail_on_read = fail_on_read
        self.fail_on_write = fail_on_write
        self.writes: List[str] = []

    async def list_entries(self) -> List[VolumeEntry]:
        dirs = set(self.directories)
        for path in self.files:
            parts = path.split("/")[:-1]
            for i in range(1, len(parts) + 1):
                dirs.add("/".join(parts[:i]))
        entries = [VolumeEntry(d, is_directory=True) for d in sorted(dirs)]
        entries += [VolumeEntry(p) for p in sorted(self.files)]
        return entries

    async def read_file(self, relative_path: str) -> AsyncIterator[bytes]:
        if relative_path == self.fail_on_read:
            raise VolumeIOError("read failed", details={"path": relative_path})
        data = self.files[relative_path]
        half = len(data) // 2
        yield data[:half]
        yield data[half:]

    async def write_file(self, relative_path: str, chunks: AsyncIterator[bytes]) -> None:
        if relative_path == self.fail_on_write:
            raise OSError("disk full")
        self.files[relative_path] = b"".join([chunk async for chunk in chunks])
        self.writes.append(relative_path)

    def snapshot(self) -> set:
        return {(self.handle, path, data) for path, data in self.files.items()}


class RecordingTransport(Transport):
    """In-memory remote that records every call in a shared event list."""

    name = "memory"

    def __init__(self, events: List[str]):
        self.objects: Dict[str, bytes] = {}
        self.events = events
        self.fail_push = False
        self.fail_pull = False
        self.fail_delete = False

    def is_configured(self) -> bool:
        return True

    async def list(self, filter_extension: str) -> List[str]:
        self.events.append(f"list:{filter_extension}")
        return self.filter_by_extension(sorted(self.objects), filter_extension)

    async def push(self, local_path: Path) -> None:
        self.events.append(f"push:{Path(local_path).name}")
        if self.fail_push:
            raise TransferError("push failed")
        self.objects[Path(local_path).name] = Path(local_path).read_bytes()

    async def pull(self, remote_key: str, local_path: Path) -> None:
        self.events.append(f"pull:{remote_key}")
        if self.fail_pull:
            # Leave a partial download behind, like an interrupted transfer
            Path(local_path).write_bytes(b"partial")
            raise TransferError("pull failed")
        if remote_key not in self.objects:
            raise TransferError("not found", details={"remote_key": remote_key})
        Path(local_path).write_bytes(self.objects[remote_key])

    async def delete(self, remote_key: str) -> None:
        self.events.append(f"delete:{remote_key}")
        if self.fail_delete:
            raise TransferError("delete failed")
        self.objects.pop(remote_key, None)


class RecordingDatabase:
    """Database whose contents are a single bytes value."""

    def __init__(self, events: List[str], content: bytes = b"CREATE TABLE entries (id INTEGER);\n"):
        self.content = content
        self.events = events
        self.fail_dump = False
        self.fail_restore = False
        self.restored: List[bytes] = []

    async def dump_to(self, path: Path) -> None:
        self.events.append(f"dump:{Path(path).name}")
        Path(path).write_bytes(self.content)
        if self.fail_dump:
            raise DumpRestoreError("dump failed")

    async def restore_from(self, path: Path) -> None:
        self.events.append(f"restore:{Path(path).name}")
        if self.fail_restore:
            raise DumpRestoreError("restore failed")
        self.restored.append(Path(path).read_bytes())
        self.content = self.restored[-1]


class RecordingQueue:
    def __init__(self, events: List[str]):
        self.events = events

    async def release_all(self) -> None:
        self.events.append("queue:release_all")


# ============================================================================
# Fake aiobotocore
# ============================================================================

class FakeBody:
    def __init__(self, data: bytes):
        self._buffer = io.BytesIO(data)

    async def read(self, amt: int | None = None) -> bytes:
        return self._buffer.read() if amt is None else self._buffer.read(amt)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakePaginator:
    def __init__(self, store: Dict[tuple, bytes]):
        self.store = store

    async def paginate(self, Bucket: str, Prefix: str = "", MaxKeys: int = 1000):
        keys = sorted(k for (b, k) in self.store if b == Bucket and k.startswith(Prefix))
        for i in range(0, len(keys), MaxKeys):
            yield {"Contents": [{"Key": k} for k in keys[i:i + MaxKeys]]}
        if not keys:
            yield {}


class FakeS3Client:
    def __init__(self, session: "FakeSession"):
        self.session = session
        self.store = session.store

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def put_object(self, Bucket: str, Key: str, Body: bytes):
        self.session.calls.append("put_object")
        self.store[(Bucket, Key)] = bytes(Body)

    async def create_multipart_upload(self, Bucket: str, Key: str):
        self.session.calls.append("create_multipart_upload")
        upload_id = f"upload-{len(self.session.uploads) + 1}"
        self.session.uploads[upload_id] = {}
        return {"UploadId": upload_id}

    async def upload_part(self, Bucket: str, Key: str, UploadId: str, PartNumber: int, Body: bytes):
        self.session.calls.append("upload_part")
        if PartNumber == self.session.fail_on_part:
            raise Exception("part upload failed")
        self.session.part_sizes.append(len(Body))
        self.session.uploads[UploadId][PartNumber] = bytes(Body)
        return {"ETag": f'"etag-{PartNumber}"'}

    async def complete_multipart_upload(
        self, Bucket: str, Key: str, UploadId: str, MultipartUpload: dict
    ):
        self.session.calls.append("complete_multipart_upload")
        parts = self.session.uploads.pop(UploadId)
        numbers = [part["PartNumber"] for part in MultipartUpload["Parts"]]
        assert numbers == sorted(parts)
        self.store[(Bucket, Key)] = b"".join(parts[n] for n in numbers)

    async def abort_multipart_upload(self, Bucket: str, Key: str, UploadId: str):
        self.session.calls.append("abort_multipart_upload")
        self.session.uploads.pop(UploadId, None)

    async def get_object(self, Bucket: str, Key: str):
        if (Bucket, Key) not in self.store:
            raise Exception("NoSuchKey")
        return {"Body": FakeBody(self.store[(Bucket, Key)])}

    async def delete_object(self, Bucket: str, Key: str):
        self.store.pop((Bucket, Key), None)

    async def head_bucket(self, Bucket: str):
        if Bucket not in self.session.buckets:
            raise Exception("NoSuchBucket")

    def get_paginator(self, name: str) -> FakePaginator:
        assert name == "list_objects_v2"
        return FakePaginator(self.store)


class FakeSession:
    """Stands in for aiobotocore.session.AioSession."""

    def __init__(self, buckets: tuple = ("test-bucket",)):
        self.buckets = set(buckets)
        self.store: Dict[tuple, bytes] = {}
        self.client_kwargs: List[dict] = []
        self.calls: List[str] = []
        self.uploads: Dict[str, dict] = {}
        self.part_sizes: List[int] = []
        self.fail_on_part: int | None = None

    def create_client(self, service: str, **kwargs) -> FakeS3Client:
        assert service == "s3"
        self.client_kwargs.append(kwargs)
        return FakeS3Client(self)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def events() -> List[str]:
    """Shared call log for transport, database and queue fakes."""
    return []


@pytest.fixture
def transport(events) -> RecordingTransport:
    return RecordingTransport(events)


@pytest.fixture
def database(events) -> RecordingDatabase:
    return RecordingDatabase(events)


@pytest.fixture
def queue(events) -> RecordingQueue:
    return RecordingQueue(events)


@pytest.fixture
def images_volume() -> MemoryVolume:
    return MemoryVolume(
        "images",
        files={"a.png": b"\x89PNG-a", "sub/b.png": b"\x89PNG-b"},
        directories=["empty"],
    )


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def test_config(temp_dir: Path) -> BackupConfig:
    """Create a test configuration."""
    return BackupConfig(
        storage_path=temp_dir / "storage",
        remote_path=temp_dir / "remote",
        system_name="My Site",
        environment="production",
        version="4.5.1",
    )


@pytest_asyncio.fixture
async def test_state(test_config, transport, database, queue, images_volume):
    """Create initialized backup state wired to the recording fakes."""
    from siteback.core import initialize_backup_state

    state = await initialize_backup_state(
        test_config,
        transport=transport,
        database=database,
        volumes=[images_volume],
        queue=queue,
    )
    yield state


def local_files(config: BackupConfig) -> List[str]:
    """Names of files in the local artifact directory."""
    if not config.local_dir.exists():
        return []
    return sorted(p.name for p in config.local_dir.iterdir())


def temp_entries(config: BackupConfig) -> List[str]:
    """Names of entries left under the temp root."""
    if not config.temp_root.exists():
        return []
    return sorted(p.name for p in config.temp_root.iterdir())
