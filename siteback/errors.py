# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Human-friendly error message helpers for siteback.

These helpers centralize wording for common configuration errors so that
all modules present consistent, actionable messages.
"""


def explain_missing_bucket_env(provider: str) -> str:
    """
    Explain that a bucket is required for an object-storage provider.
    """

    return (
        f"Remote provider {provider!r} needs a bucket. "
        "Set the S3_BUCKET environment variable or pass bucket=... to create_config()."
    )


def explain_missing_remote_path_env() -> str:
    """
    Explain that the local provider needs a destination directory.
    """

    return (
        "Remote provider 'local' needs a destination directory. "
        "Set SITEBACK_REMOTE_PATH or pass remote_path=... to create_config()."
    )


def explain_invalid_provider_env(value: str | None) -> str:
    """
    Explain that SITEBACK_PROVIDER is invalid.
    """

    return (
        f"Invalid SITEBACK_PROVIDER value: {value!r}. "
        "Expected one of: 'local', 'aws', 'backblaze', or 'digitalocean'."
    )


def explain_invalid_bool_env(name: str, value: str | None) -> str:
    """
    Explain that a boolean flag could not be parsed.
    """

    return (
        f"Invalid {name} value: {value!r}. "
        "Use one of: 1/0, true/false, yes/no, on/off."
    )


def explain_invalid_int_env(name: str, value: str | None) -> str:
    """
    Explain that an integer setting could not be parsed.
    """

    return f"Invalid {name} value: {value!r}. It must be a non-negative integer."


def explain_unsupported_database_url(url: str) -> str:
    """
    Explain that DATABASE_URL uses a scheme siteback cannot dump.
    """

    scheme = url.split(":", 1)[0] if ":" in url else url
    return (
        f"Unsupported database URL scheme: {scheme!r}. "
        "Expected sqlite:///path, postgresql://... or mysql://..."
    )


def explain_missing_database() -> str:
    """
    Explain that database operations need a configured database.
    """

    return (
        "No database is configured. "
        "Set DATABASE_URL or pass database=... to initialize_backup_state()."
    )
