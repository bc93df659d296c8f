# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for volumes and the collector that mirrors them into workspaces.
"""

from pathlib import Path

import pytest

from conftest import MemoryVolume
from siteback.exceptions import VolumeIOError
from siteback.packaging import pack, unpack
from siteback.volumes import (
    LocalVolume,
    S3Volume,
    VolumeEntry,
    mirror_volumes_to,
    restore_volumes_from,
)


async def _collect(chunks) -> bytes:
    return b"".join([chunk async for chunk in chunks])


# ============================================================================
# Collector
# ============================================================================

@pytest.mark.asyncio
async def test_mirror_without_volumes_writes_nothing(temp_dir: Path):
    result = await mirror_volumes_to([], temp_dir)

    assert result is None
    assert list(temp_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_mirror_lays_out_files_by_handle(temp_dir: Path, images_volume):
    docs = MemoryVolume("docs", files={"guide.pdf": b"pdf"})

    result = await mirror_volumes_to([images_volume, docs], temp_dir, max_concurrent=1)

    assert result == temp_dir
    assert (temp_dir / "images" / "a.png").read_bytes() == b"\x89PNG-a"
    assert (temp_dir / "images" / "sub" / "b.png").read_bytes() == b"\x89PNG-b"
    assert (temp_dir / "images" / "empty").is_dir()
    assert (temp_dir / "docs" / "guide.pdf").read_bytes() == b"pdf"


@pytest.mark.asyncio
async def test_mirror_volume_with_no_files_creates_handle_dir(temp_dir: Path):
    await mirror_volumes_to([MemoryVolume("blank")], temp_dir)

    assert (temp_dir / "blank").is_dir()


@pytest.mark.asyncio
async def test_mirror_failure_propagates(temp_dir: Path):
    volume = MemoryVolume("images", files={"a.png": b"a"}, fail_on_read="a.png")

    with pytest.raises(VolumeIOError):
        await mirror_volumes_to([volume], temp_dir)


@pytest.mark.asyncio
async def test_mirror_rejects_escaping_entries(temp_dir: Path):
    class EscapingVolume(MemoryVolume):
        async def list_entries(self):
            return [VolumeEntry("../outside.txt")]

    with pytest.raises(VolumeIOError):
        await mirror_volumes_to([EscapingVolume("bad")], temp_dir / "ws")

    assert not (temp_dir / "outside.txt").exists()


@pytest.mark.asyncio
async def test_listing_error_is_wrapped(temp_dir: Path):
    class BrokenVolume(MemoryVolume):
        async def list_entries(self):
            raise RuntimeError("listing exploded")

    with pytest.raises(VolumeIOError, match="listing exploded"):
        await mirror_volumes_to([BrokenVolume("broken")], temp_dir)


@pytest.mark.asyncio
async def test_restore_skips_unknown_handles(temp_dir: Path):
    (temp_dir / "images").mkdir()
    (temp_dir / "images" / "a.png").write_bytes(b"a")
    (temp_dir / "retired").mkdir()
    (temp_dir / "retired" / "old.txt").write_bytes(b"old")
    images = MemoryVolume("images")

    written = await restore_volumes_from([images], temp_dir)

    assert written == 1
    assert images.files == {"a.png": b"a"}


@pytest.mark.asyncio
async def test_restore_write_failure_is_wrapped(temp_dir: Path):
    (temp_dir / "images").mkdir()
    (temp_dir / "images" / "a.png").write_bytes(b"a")
    images = MemoryVolume("images", fail_on_write="a.png")

    with pytest.raises(VolumeIOError, match="disk full"):
        await restore_volumes_from([images], temp_dir)


@pytest.mark.asyncio
async def test_mirror_pack_unpack_restore_round_trip(temp_dir: Path, images_volume):
    """The triple set (handle, path, bytes) survives the whole pipeline."""
    before = images_volume.snapshot()

    await mirror_volumes_to([images_volume], temp_dir / "ws1")
    archive = await pack(temp_dir / "ws1", temp_dir / "volumes.zip")

    images_volume.files.clear()
    await unpack(archive, temp_dir / "ws2")
    assert (temp_dir / "ws2" / "images" / "empty").is_dir()

    await restore_volumes_from([images_volume], temp_dir / "ws2")

    assert images_volume.snapshot() == before


# ============================================================================
# LocalVolume
# ============================================================================

@pytest.mark.asyncio
async def test_local_volume_lists_files_and_directories(temp_dir: Path):
    root = temp_dir / "uploads"
    (root / "sub").mkdir(parents=True)
    (root / "empty").mkdir()
    (root / "a.txt").write_bytes(b"a")
    (root / "sub" / "b.txt").write_bytes(b"b")

    entries = await LocalVolume("uploads", root).list_entries()

    assert set(entries) == {
        VolumeEntry("a.txt"),
        VolumeEntry("empty", is_directory=True),
        VolumeEntry("sub", is_directory=True),
        VolumeEntry("sub/b.txt"),
    }


@pytest.mark.asyncio
async def test_local_volume_missing_root_is_empty(temp_dir: Path):
    assert await LocalVolume("uploads", temp_dir / "missing").list_entries() == []


@pytest.mark.asyncio
async def test_local_volume_write_then_read(temp_dir: Path):
    volume = LocalVolume("uploads", temp_dir / "uploads")

    async def chunks():
        yield b"hello "
        yield b"world"

    await volume.write_file("deep/nested/file.txt", chunks())

    assert await _collect(volume.read_file("deep/nested/file.txt")) == b"hello world"


@pytest.mark.asyncio
async def test_local_volume_rejects_parent_paths(temp_dir: Path):
    volume = LocalVolume("uploads", temp_dir / "uploads")

    with pytest.raises(VolumeIOError):
        await _collect(volume.read_file("../secret"))


@pytest.mark.asyncio
async def test_local_volume_read_missing_file(temp_dir: Path):
    volume = LocalVolume("uploads", temp_dir)

    with pytest.raises(VolumeIOError):
        await _collect(volume.read_file("nope.txt"))


@pytest.mark.asyncio
async def test_local_volumes_full_round_trip(temp_dir: Path):
    """Mirror a real directory, wipe it, and restore it from the archive."""
    root = temp_dir / "uploads"
    (root / "sub").mkdir(parents=True)
    (root / "a.png").write_bytes(b"a")
    (root / "sub" / "b.png").write_bytes(b"b")
    volume = LocalVolume("uploads", root)

    await mirror_volumes_to([volume], temp_dir / "ws1")
    archive = await pack(temp_dir / "ws1", temp_dir / "out.zip")

    (root / "a.png").unlink()
    (root / "sub" / "b.png").write_bytes(b"changed")

    await unpack(archive, temp_dir / "ws2")
    await restore_volumes_from([volume], temp_dir / "ws2")

    assert (root / "a.png").read_bytes() == b"a"
    assert (root / "sub" / "b.png").read_bytes() == b"b"


# ============================================================================
# S3Volume
# ============================================================================

@pytest.mark.asyncio
async def test_s3_volume_lists_relative_entries(fake_session):
    fake_session.store[("test-bucket", "media/a.png")] = b"a"
    fake_session.store[("test-bucket", "media/sub/")] = b""
    fake_session.store[("test-bucket", "media/sub/b.png")] = b"b"
    fake_session.store[("test-bucket", "other/c.png")] = b"c"
    volume = S3Volume("media", "test-bucket", prefix="media", session=fake_session)

    entries = await volume.list_entries()

    assert entries == [
        VolumeEntry("a.png"),
        VolumeEntry("sub", is_directory=True),
        VolumeEntry("sub/b.png"),
    ]


@pytest.mark.asyncio
async def test_s3_volume_listing_paginates(fake_session):
    for i in range(5):
        fake_session.store[("test-bucket", f"media/{i}.png")] = b"x"
    volume = S3Volume(
        "media", "test-bucket", prefix="media/", session=fake_session, list_batch_size=2
    )

    entries = await volume.list_entries()

    assert [e.relative_path for e in entries] == [f"{i}.png" for i in range(5)]


@pytest.mark.asyncio
async def test_s3_volume_write_then_read(fake_session):
    volume = S3Volume("media", "test-bucket", prefix="media", session=fake_session)

    async def chunks():
        yield b"part1-"
        yield b"part2"

    await volume.write_file("sub/file.bin", chunks())

    assert fake_session.store[("test-bucket", "media/sub/file.bin")] == b"part1-part2"
    assert await _collect(volume.read_file("sub/file.bin")) == b"part1-part2"


@pytest.mark.asyncio
async def test_s3_volume_large_write_is_streamed_in_parts(fake_session):
    volume = S3Volume("media", "test-bucket", prefix="media", session=fake_session, part_size=6)

    async def chunks():
        for _ in range(5):
            yield b"abcd"

    await volume.write_file("video.mp4", chunks())

    assert fake_session.store[("test-bucket", "media/video.mp4")] == b"abcd" * 5
    assert fake_session.part_sizes == [6, 6, 6, 2]
    assert "put_object" not in fake_session.calls


@pytest.mark.asyncio
async def test_s3_volume_failed_write_aborts_upload(fake_session):
    volume = S3Volume("media", "test-bucket", session=fake_session, part_size=4)
    fake_session.fail_on_part = 1

    async def chunks():
        yield b"0123456789"

    with pytest.raises(VolumeIOError):
        await volume.write_file("video.mp4", chunks())

    assert fake_session.calls[-1] == "abort_multipart_upload"
    assert fake_session.store == {}


@pytest.mark.asyncio
async def test_s3_volume_read_missing_key(fake_session):
    volume = S3Volume("media", "test-bucket", session=fake_session)

    with pytest.raises(VolumeIOError):
        await _collect(volume.read_file("missing.png"))
