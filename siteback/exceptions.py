# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Siteback Exceptions - Custom exceptions for the siteback package.
"""


class SiteBackError(Exception):
    """Base exception for all siteback errors."""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(SiteBackError):
    """Raised when configuration is invalid."""

    pass


class PackagingError(SiteBackError):
    """Raised when an artifact cannot be archived or extracted."""

    pass


class StagingError(SiteBackError):
    """Raised when a staging workspace cannot be created or removed."""

    pass


class TransferError(SiteBackError):
    """Raised when a remote push, pull, list or delete fails."""

    pass


class DumpRestoreError(SiteBackError):
    """Raised when the database engine fails to dump or restore."""

    pass


class VolumeIOError(SiteBackError):
    """Raised when reading from or writing to volume storage fails."""

    pass
