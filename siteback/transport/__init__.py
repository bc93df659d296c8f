# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Remote Transport Layer - Where artifacts go after they are packaged.

Every backend implements the Transport interface. The orchestrator only
ever talks to that interface, so new backends are purely additive.
"""

from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Iterable, List

from siteback.config import BackupConfig, RemoteProvider


class Transport(ABC):
    """
    Base class for remote storage backends.

    push/pull/delete move whole files; there is no partial or resumable
    transfer. Failures are raised as TransferError.
    """

    name: str = "transport"

    def is_configured(self) -> bool:
        """Whether this backend has everything it needs to connect."""
        return False

    async def is_authenticated(self) -> bool:
        """Whether the configured credentials are accepted."""
        return True

    @abstractmethod
    async def list(self, filter_extension: str) -> List[str]:
        """Return remote artifact names ending with filter_extension."""

    @abstractmethod
    async def push(self, local_path: Path) -> None:
        """Upload a local file, keyed by its basename."""

    @abstractmethod
    async def pull(self, remote_key: str, local_path: Path) -> None:
        """Download remote_key to local_path."""

    @abstractmethod
    async def delete(self, remote_key: str) -> None:
        """Remove remote_key."""

    @staticmethod
    def filter_by_extension(filenames: Iterable[str], extension: str) -> List[str]:
        """Keep names ending with extension, reduced to their basenames."""
        return [
            PurePosixPath(name).name
            for name in filenames
            if name.endswith(extension)
        ]


def create_transport(config: BackupConfig) -> Transport:
    """
    Build the transport selected by config.provider.

    Args:
        config: Backup configuration

    Returns:
        Transport instance for the configured provider
    """
    if config.provider == RemoteProvider.LOCAL:
        from siteback.transport.local import LocalTransport

        return LocalTransport(config.remote_path)

    from siteback.transport.s3 import S3Transport

    return S3Transport.for_provider(
        config.provider,
        bucket=config.bucket or "",
        region=config.region,
        prefix=config.remote_prefix,
        endpoint_url=config.endpoint_url,
        access_key_id=config.access_key_id,
        secret_access_key=config.secret_access_key,
    )


__all__ = [
    "Transport",
    "create_transport",
]
