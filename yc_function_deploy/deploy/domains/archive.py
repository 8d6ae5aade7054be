"""Source archive builder.

Resolves include globs against the source root, expands matched
directories, applies exclusion patterns and writes the result into an
in-memory zip archive.
"""
import fnmatch
import glob
import io
import logging
import os
import posixpath
import zipfile
from typing import Callable, Iterator, List, Optional

from .errors import ArchiveTooLargeError, InputValidationError
from .models import ArchiveEntry
from .parsing import parse_glob_patterns

logger = logging.getLogger(__name__)

# Inline function package limit (3.5 MiB); bigger packages go through a bucket
INLINE_PAYLOAD_LIMIT = 3670016
COMPRESSION_LEVEL = 9

EntryObserver = Callable[[ArchiveEntry], None]


def resolve_source_root(source_root: str = ".", workspace: Optional[str] = None) -> str:
    """
    Join the workspace directory with the configured source root.

    Args:
        source_root: Directory with function sources, relative to the workspace
        workspace: Base directory (GITHUB_WORKSPACE, then current directory)

    Returns:
        Absolute, normalized path of the source root
    """
    if workspace is None:
        workspace = os.getenv("GITHUB_WORKSPACE", "")
    return os.path.abspath(os.path.join(workspace, source_root or "."))


def _archive_name(root: str, path: str) -> str:
    return os.path.relpath(path, root).replace(os.sep, posixpath.sep)


def _split(path: str) -> List[str]:
    return [part for part in path.split(posixpath.sep) if part and part != "."]


def _match_parts(parts: List[str], pattern_parts: List[str]) -> bool:
    if not pattern_parts:
        return not parts
    head, rest = pattern_parts[0], pattern_parts[1:]
    if head == "**":
        return any(_match_parts(parts[i:], rest) for i in range(len(parts) + 1))
    return bool(parts) and fnmatch.fnmatchcase(parts[0], head) and _match_parts(parts[1:], rest)


def glob_match(name: str, pattern: str) -> bool:
    """
    Match an archive name against a glob, one path segment at a time.

    `*`, `?` and `[...]` never cross a `/`; a `**` segment matches any
    number of directories, including none.
    """
    return _match_parts(_split(name), _split(pattern))


def is_excluded(name: str, patterns: List[str]) -> bool:
    """
    Check an archive name against exclusion globs.

    A pattern with a `/` is matched against the whole name; a pattern
    without one is matched against the last component, at any depth.
    """
    base = posixpath.basename(name)
    for pattern in patterns:
        pattern = pattern.strip()
        if posixpath.sep in pattern:
            if glob_match(name, pattern):
                return True
        elif fnmatch.fnmatchcase(base, pattern):
            return True
    return False


def _check_include(include: str) -> None:
    parts = include.replace(os.sep, posixpath.sep).split(posixpath.sep)
    if os.path.isabs(include) or ".." in parts:
        raise InputValidationError(f"Include pattern must stay inside the source root: {include}")


def _walk_files(directory: str) -> Iterator[str]:
    for current, dirs, files in os.walk(directory, onerror=_raise):
        dirs.sort()
        for filename in sorted(files):
            yield os.path.join(current, filename)


def _raise(error: OSError) -> None:
    raise error


def iter_archive_entries(root: str, includes: List[str], excludes: List[str]) -> Iterator[ArchiveEntry]:
    """
    Resolve include and exclude globs into archive entries.

    Exclusions only filter files found by expanding a matched directory.
    A file matched directly by an include pattern is always kept.

    Args:
        root: Absolute source root; entry names are relative to it
        includes: Glob patterns relative to root; blank patterns are ignored
        excludes: Glob patterns matched against entry names

    Raises:
        InputValidationError: If an include pattern points outside the root

    Yields:
        ArchiveEntry in include order, then traversal order
    """
    patterns = parse_glob_patterns(excludes)
    escaped_root = glob.escape(root)
    for include in parse_glob_patterns(includes):
        include = include.strip()
        _check_include(include)
        pattern = os.path.join(escaped_root, include)
        for match in glob.glob(pattern, recursive=True):
            if os.path.isdir(match):
                logger.debug(f"match:  dir {match}")
                for path in _walk_files(match):
                    name = _archive_name(root, path)
                    if is_excluded(name, patterns):
                        logger.debug(f"skip: {name}")
                        continue
                    yield ArchiveEntry(source_path=os.path.abspath(path), name=name)
            else:
                logger.debug(f"match: file {match}")
                yield ArchiveEntry(source_path=os.path.abspath(match), name=_archive_name(root, match))


def _log_entry(entry: ArchiveEntry) -> None:
    logger.info(f"add: {entry.name}")


def build_archive(
    root: str,
    includes: List[str],
    excludes: List[str],
    on_entry: Optional[EntryObserver] = None,
) -> bytes:
    """
    Build a zip archive of the sources in memory.

    Args:
        root: Absolute source root
        includes: Include glob patterns
        excludes: Exclude glob patterns
        on_entry: Called for every entry written; logs it by default

    Returns:
        Contents of the finished archive

    Raises:
        OSError: If a matched path cannot be read
    """
    observer = on_entry or _log_entry
    buffer = io.BytesIO()
    logger.info("Archive initialize")
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESSION_LEVEL) as archive:
        for entry in iter_archive_entries(root, includes, excludes):
            archive.write(entry.source_path, arcname=entry.name)
            observer(entry)
    logger.info("Archive finalized")
    return buffer.getvalue()


def ensure_inline_size(contents: bytes, limit: int = INLINE_PAYLOAD_LIMIT) -> None:
    """Raise ArchiveTooLargeError if the archive cannot be sent inline."""
    if len(contents) > limit:
        raise ArchiveTooLargeError(len(contents), limit)
