# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Artifact naming - generate, parse and present backup filenames.

Filenames are the only metadata an artifact carries, so the layout is
fixed:

    [system_][env_]YYMMDD_HHMMSS_<token>_v<version>

all lower-cased. Operators (and prune_*) parse names back with
parse_filename().
"""

import re
import secrets
import string
import unicodedata
from dataclasses import dataclass
from datetime import datetime, UTC
from typing import Iterable, List

TOKEN_LENGTH = 10
TIMESTAMP_FORMAT = "%y%m%d_%H%M%S"

_TOKEN_ALPHABET = string.ascii_letters + string.digits

# Characters dropped from system names before they become part of a filename
_DISALLOWED_CHARS = set("?[]/\\=<>:;,'\"&$#*()|~`!{}%+’‘“”«»")

_FILENAME_RE = re.compile(
    r"^(?:(?P<prefix>.+)_)?"
    r"(?P<stamp>\d{6}_\d{6})_"
    r"(?P<token>[a-z0-9]{%d})_"
    r"v(?P<version>[^/]*?)"
    r"(?P<extension>\.(?:sql|zip))?$" % TOKEN_LENGTH
)


def random_token(length: int = TOKEN_LENGTH) -> str:
    """Lower-case random alphanumeric token (collision guard)."""
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length)).lower()


def sanitize_filename(name: str, separator: str = "-") -> str:
    """
    Make a free-form name safe for use inside a filename.

    Non-ASCII characters are transliterated where possible and dropped
    otherwise, punctuation that is unsafe on common filesystems is removed,
    runs of whitespace and dashes collapse to the separator.
    """
    ascii_name = (
        unicodedata.normalize("NFKD", name or "")
        .encode("ascii", "ignore")
        .decode("ascii")
    )
    cleaned = "".join(ch for ch in ascii_name if ch not in _DISALLOWED_CHARS)
    cleaned = re.sub(r"[\s-]+", separator, cleaned)
    return cleaned.strip(".-_")


def create_filename(
    system_name: str = "",
    environment: str = "",
    version: str = "",
    now: datetime | None = None,
) -> str:
    """
    Create a unique artifact filename (without extension).

    Args:
        system_name: Site name, sanitized before use
        environment: Deployment environment tag
        version: Host application version
        now: Timestamp to encode (default: current UTC time)

    Returns:
        Lower-cased filename, e.g. 'my-site_production_240105_101112_ab12cd34ef_v4.5.1'
    """
    stamp = (now or datetime.now(UTC)).astimezone(UTC).strftime(TIMESTAMP_FORMAT)
    system = sanitize_filename(system_name)

    parts: List[str] = []
    if system:
        parts.append(system)
    if environment:
        parts.append(environment)
    parts.extend([stamp, random_token(), f"v{version}"])

    return "_".join(parts).lower()


@dataclass(frozen=True)
class ParsedFilename:
    """Metadata recovered from an artifact filename."""

    prefix: str  # "<system>_<env>", "<system>", "<env>" or ""
    created_at: datetime
    token: str
    version: str
    extension: str


def parse_filename(name: str) -> ParsedFilename | None:
    """
    Parse an artifact filename produced by create_filename().

    Returns None for names that do not follow the layout (for example
    'emergency-backup.sql' or files uploaded by hand).
    """
    match = _FILENAME_RE.match(name.rsplit("/", 1)[-1])
    if not match:
        return None
    try:
        created_at = datetime.strptime(match["stamp"], TIMESTAMP_FORMAT).replace(tzinfo=UTC)
    except ValueError:
        return None
    return ParsedFilename(
        prefix=match["prefix"] or "",
        created_at=created_at,
        token=match["token"],
        version=match["version"],
        extension=match["extension"] or "",
    )


@dataclass(frozen=True)
class RemoteFile:
    """A remote artifact as presented to operators: display label + filename."""

    label: str
    filename: str

    @classmethod
    def from_filename(cls, filename: str) -> "RemoteFile":
        parsed = parse_filename(filename)
        if parsed is None:
            return cls(label=filename, filename=filename)

        details = [p for p in (parsed.prefix, f"v{parsed.version}") if p]
        label = f"{parsed.created_at:%Y-%m-%d %H:%M:%S} ({', '.join(details)})"
        return cls(label=label, filename=filename)


def sort_newest_first(filenames: Iterable[str]) -> List[str]:
    """
    Order filenames by encoded timestamp, newest first.

    Names that cannot be parsed sort after every parseable name.
    """

    def key(name: str) -> tuple:
        parsed = parse_filename(name)
        if parsed is None:
            return (0, datetime.min.replace(tzinfo=UTC), name)
        return (1, parsed.created_at, name)

    return sorted(filenames, key=key, reverse=True)


def create_remote_files(filenames: Iterable[str]) -> List[RemoteFile]:
    """Wrap remote names into label/filename pairs, newest first."""
    return [RemoteFile.from_filename(name) for name in sort_newest_first(filenames)]
