"""
Zip archive transport for spec folders.

A spec folder is packed into a single zip whose entries all sit under
one top-level folder named after the source directory, so unpacking
into the parent directory recreates the folder in place.

The commit the archive was built from is recorded as a JSON manifest in
the zip *comment*. Keeping it out of the entry list means a pack/unpack
round trip reproduces exactly the files that were packed. Archives
without a readable comment have an unknown base commit.
"""

from __future__ import annotations

import itertools
import logging
import os
import re
import tempfile
import time
import zipfile
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, Field, ValidationError, field_validator

from openspec_sync import __version__
from openspec_sync.core.exceptions import ArchiveError

logger = logging.getLogger(__name__)

_temp_counter = itertools.count()

# Zip comments are limited to 65535 bytes
MAX_COMMENT_BYTES = 0xFFFF

# Full sha-1 or sha-256 object name
COMMIT_SHA_PATTERN = re.compile(r"^[0-9a-f]{40}(?:[0-9a-f]{24})?$")


class ArchiveManifest(BaseModel):
    """
    Provenance recorded inside a spec archive.

    Example:
        >>> manifest = ArchiveManifest(base_commit="9fceb02d0ae598e95dc970b74767f19372d61af8")
        >>> manifest.model_dump_json()
    """

    base_commit: str | None = Field(
        default=None,
        description="Full sha of HEAD when the archive was packed",
    )
    branch: str | None = Field(default=None, description="Branch the archive was packed on")
    ticket: str | None = Field(default=None, description="Ticket the archive belongs to")
    dirty: bool = Field(
        default=False,
        description="Whether the folder had uncommitted changes when packed",
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    tool_version: str = Field(default=__version__)

    @field_validator("base_commit")
    @classmethod
    def only_full_sha(cls, v: str | None) -> str | None:
        """
        Keep only full commit shas.

        Symbolic revisions such as ``HEAD`` or a branch name resolve
        differently in every clone, so they are dropped and the archive
        has an unknown base.
        """
        if v is None:
            return None
        sha = v.strip().lower()
        if not COMMIT_SHA_PATTERN.match(sha):
            logger.debug("Ignoring base commit that is not a full sha: %r", v)
            return None
        return sha


def pack(source_dir: Path, out_file: Path, manifest: ArchiveManifest | None = None) -> Path:
    """
    Pack a directory into a zip archive at maximum compression.

    Every entry is nested under ``source_dir.name``. Entries are written
    in sorted order so the same tree always yields the same entry list.

    Args:
        source_dir: Directory to pack
        out_file: Destination archive path (overwritten if present)
        manifest: Optional provenance stored in the zip comment

    Returns:
        Path to the written archive

    Raises:
        ArchiveError: If the source is missing or writing fails. A partial
            archive may be left at ``out_file``.
    """
    source_dir = Path(source_dir).resolve()
    if not source_dir.is_dir():
        raise ArchiveError(f"Not a directory: {source_dir}", path=str(source_dir))

    root = PurePosixPath(source_dir.name)
    entry_count = 0

    try:
        with zipfile.ZipFile(
            out_file, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9
        ) as zf:
            zf.write(source_dir, arcname=f"{root}/")
            for dirpath, dirnames, filenames in os.walk(source_dir):
                dirnames.sort()
                current = Path(dirpath)
                rel_dir = PurePosixPath(current.relative_to(source_dir).as_posix())
                if current != source_dir and not filenames and not dirnames:
                    # Keep empty folders
                    zf.write(current, arcname=f"{root / rel_dir}/")
                for name in sorted(filenames):
                    zf.write(current / name, arcname=str(root / rel_dir / name))
                    entry_count += 1

            if manifest is not None:
                comment = manifest.model_dump_json().encode("utf-8")
                if len(comment) > MAX_COMMENT_BYTES:
                    raise ArchiveError("Archive manifest is too large for a zip comment")
                zf.comment = comment
    except OSError as e:
        raise ArchiveError(
            f"Failed to pack {source_dir}: {e}", source=str(source_dir), out=str(out_file)
        ) from e

    logger.debug("Packed %d files from %s into %s", entry_count, source_dir, out_file)
    return Path(out_file)


def _check_member(dest_dir: Path, name: str) -> None:
    """Reject entries that would land outside dest_dir."""
    target = (dest_dir / name).resolve()
    if target != dest_dir and dest_dir not in target.parents:
        raise ArchiveError(f"Archive entry escapes destination: {name}", entry=name)


def unpack(archive_file: Path, dest_dir: Path) -> Path:
    """
    Extract an archive into a directory.

    Creates ``dest_dir`` if needed. Existing files at colliding paths are
    overwritten; files that are not in the archive are left alone.

    Args:
        archive_file: Zip archive to read
        dest_dir: Directory to extract into

    Returns:
        The destination directory

    Raises:
        ArchiveError: On a malformed archive, unsafe entry paths, or I/O failure.
    """
    dest_dir = Path(dest_dir).resolve()

    try:
        dest_dir.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive_file) as zf:
            members = zf.namelist()
            for name in members:
                _check_member(dest_dir, name)
            zf.extractall(dest_dir)
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"Not a valid zip archive: {archive_file}", path=str(archive_file)) from e
    except OSError as e:
        raise ArchiveError(f"Failed to unpack {archive_file}: {e}", path=str(archive_file)) from e

    logger.debug("Unpacked %d entries from %s into %s", len(members), archive_file, dest_dir)
    return dest_dir


def read_manifest(archive_file: Path) -> ArchiveManifest | None:
    """
    Read the provenance manifest from an archive's comment.

    Returns:
        The manifest, or None if the archive has no readable manifest.

    Raises:
        ArchiveError: If the file is not a zip archive.
    """
    try:
        with zipfile.ZipFile(archive_file) as zf:
            comment = zf.comment
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"Not a valid zip archive: {archive_file}", path=str(archive_file)) from e
    except OSError as e:
        raise ArchiveError(f"Failed to read {archive_file}: {e}", path=str(archive_file)) from e

    if not comment:
        return None

    try:
        return ArchiveManifest.model_validate_json(comment)
    except ValidationError as e:
        logger.debug("Ignoring unreadable manifest in %s: %s", archive_file, e)
        return None


def archive_root(archive_file: Path) -> str | None:
    """
    Get the single top-level folder name of an archive.

    Returns:
        The folder name, or None if entries do not share exactly one root.
    """
    try:
        with zipfile.ZipFile(archive_file) as zf:
            names = zf.namelist()
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"Not a valid zip archive: {archive_file}", path=str(archive_file)) from e

    roots = {PurePosixPath(name).parts[0] for name in names if name}
    if len(roots) != 1:
        return None
    root = roots.pop()
    # A lone file at the top level is not a folder
    if root in names:
        return None
    return root


def temp_archive_path() -> Path:
    """Path for a scratch archive in the system temp directory."""
    name = f"openspec-{os.getpid()}-{time.time_ns()}-{next(_temp_counter)}.zip"
    return Path(tempfile.gettempdir()) / name


def cleanup_temp_file(path: Path) -> None:
    """Remove a scratch file. Failures are logged and ignored."""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.debug("Failed to remove temp file %s: %s", path, e)


__all__ = [
    "ArchiveManifest",
    "archive_root",
    "cleanup_temp_file",
    "pack",
    "read_manifest",
    "temp_archive_path",
    "unpack",
]
