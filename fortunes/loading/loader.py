"""
Location Loader for Fortunes.

Turns one location string into zero or more text sources, and those
sources into Jars. Three kinds of location are understood:

    embed:<prefix>   — quotes bundled inside the package (fortunes/cookies)
    <file>           — a single fortune text file
    <directory>      — every fortune file below it

Design principles:
- Reads are eager; the hierarchy only ever sees in-memory text
- ``.dat`` sidecars and dot files are never treated as sources
- A file is "offensive" if it sits under an ``off/`` directory or its
  name ends in ``-o``; callers choose which kind they want
"""

from __future__ import annotations

import locale
import logging
from dataclasses import dataclass
from importlib import resources
from pathlib import Path, PurePosixPath
from typing import Iterator, Optional

from ..domain import (
    DEFAULT_DELIMITER,
    Jar,
    MalformedHeaderError,
    NotFoundError,
    TruncatedDataError,
    parse_text,
)
from ..strfile.codec import DAT_SUFFIX, index_path, read_index


logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

EMBED_PREFIX = "embed:"
DEFAULT_LANGUAGE = "en"
EMBEDDED_PACKAGE = "fortunes"
EMBEDDED_DIRECTORY = "cookies"

OFFENSIVE_DIRECTORY = "off"
OFFENSIVE_SUFFIX = "-o"

# Bundled files that are documentation, not quotes
EMBEDDED_EXCLUDED_SUFFIXES = (".md",)


# =============================================================================
# SOURCES
# =============================================================================

@dataclass(frozen=True)
class Source:
    """
    One text source handed to the hierarchy.

    ``path`` is set for filesystem sources so a ``.dat`` sidecar can be
    found next to them; embedded sources have none.
    """
    content: str
    label: str
    path: Optional[Path] = None


def is_offensive(relative_path: str) -> bool:
    """Whether a source path (relative to its location) holds offensive quotes."""
    parts = PurePosixPath(relative_path.replace("\\", "/")).parts
    if not parts:
        return False
    return OFFENSIVE_DIRECTORY in parts[:-1] or parts[-1].endswith(OFFENSIVE_SUFFIX)


def wanted(relative_path: str, include_normal: bool, include_offensive: bool) -> bool:
    """Apply the normal/offensive selection to one source path."""
    if include_normal and include_offensive:
        return True
    offensive = is_offensive(relative_path)
    if include_normal:
        return not offensive
    if include_offensive:
        return offensive
    return False


def format_embedded(path: str) -> str:
    """e.g., "en/wisdom" -> "embed:en/wisdom"."""
    if path.startswith(EMBED_PREFIX):
        return path
    return f"{EMBED_PREFIX}{path}"


def trim_embed_prefix(path: str) -> str:
    return path[len(EMBED_PREFIX):] if path.startswith(EMBED_PREFIX) else path


# =============================================================================
# LOADER
# =============================================================================

class Loader:
    """
    Resolves locations against the filesystem and the embedded bundle.

    Tests may point ``embedded_root`` at any directory to stand in for
    the bundle shipped with the package.
    """

    def __init__(self, embedded_root=None):
        if embedded_root is None:
            embedded_root = resources.files(EMBEDDED_PACKAGE) / EMBEDDED_DIRECTORY
        self.embedded_root = embedded_root

    # -------------------------------------------------------------------------
    # Embedded bundle
    # -------------------------------------------------------------------------

    def embedded_entries(self) -> list[str]:
        """Relative paths ("en/wisdom") of every bundled quote file."""
        return sorted(self._walk_embedded(self.embedded_root, ""))

    def _walk_embedded(self, node, prefix: str) -> Iterator[str]:
        if not node.is_dir():
            return
        for child in node.iterdir():
            name = child.name
            if name.startswith(".") or name.startswith("__"):
                continue
            relative = f"{prefix}{name}"
            if child.is_dir():
                yield from self._walk_embedded(child, f"{relative}/")
            elif not name.endswith(EMBEDDED_EXCLUDED_SUFFIXES):
                yield relative

    def find_embedded(self, location: str) -> list[str]:
        """Bundled entries whose path starts with the location's prefix."""
        prefix = trim_embed_prefix(location)
        return [entry for entry in self.embedded_entries() if entry.startswith(prefix)]

    def embedded_exists(self, location: str) -> bool:
        return bool(self.find_embedded(location))

    def read_embedded(self, entry: str) -> str:
        node = self.embedded_root
        for part in trim_embed_prefix(entry).split("/"):
            node = node / part
        if not node.is_file():
            raise NotFoundError("not found", format_embedded(entry))
        return node.read_bytes().decode("utf-8", errors="replace")

    def default_location(self) -> str:
        """
        Embedded location matching the process locale.

        e.g., locale "zh_CN" -> "embed:zh" when bundled, else "embed:en"
        """
        language = _locale_language()
        if language and self.embedded_exists(f"{language}/"):
            return format_embedded(language)
        return format_embedded(DEFAULT_LANGUAGE)

    # -------------------------------------------------------------------------
    # Resolution
    # -------------------------------------------------------------------------

    def resolve(
        self,
        location: str,
        include_normal: bool = True,
        include_offensive: bool = False,
    ) -> list[Source]:
        """
        Expand a location into its text sources.

        Raises:
            NotFoundError: If the location names nothing that exists
        """
        if location.startswith(EMBED_PREFIX):
            logger.debug("Loading embedded cookies from: '%s'", location)
            entries = self.find_embedded(location)
            if not entries:
                raise NotFoundError("not found", location)
            return [
                Source(content=self.read_embedded(entry), label=entry)
                for entry in entries
                if wanted(entry, include_normal, include_offensive)
            ]

        path = Path(location)
        if path.is_file():
            return [_read_source(path, location)]
        if path.is_dir():
            base = location.rstrip("/\\")
            sources = []
            for file in _walk_directory(path):
                relative = file.relative_to(path).as_posix()
                if wanted(relative, include_normal, include_offensive):
                    sources.append(_read_source(file, f"{base}/{relative}"))
            return sources
        raise NotFoundError("not found", location)

    def load_jars(
        self,
        location: str,
        include_normal: bool = True,
        include_offensive: bool = False,
        with_index: bool = False,
        delim: str = DEFAULT_DELIMITER,
    ) -> list[Jar]:
        """
        Resolve a location and parse every source into a Jar.

        With ``with_index``, a ``.dat`` sidecar next to a file source
        contributes its header flags and offsets to the Jar. A sidecar
        that cannot be decoded or no longer matches its text is skipped
        and the Jar keeps what the text alone gives.
        """
        jars = []
        for source in self.resolve(location, include_normal, include_offensive):
            jar = parse_text(source.content, source.label, delim)
            if with_index and source.path is not None:
                sidecar = index_path(source.path)
                if sidecar.is_file():
                    _merge_sidecar(jar, sidecar)
            jars.append(jar)
        logger.debug("load_jars(): '%s' -> %d jars", location, len(jars))
        return jars


# =============================================================================
# HELPERS
# =============================================================================

def _merge_sidecar(jar: Jar, sidecar: Path) -> None:
    try:
        jar.merge_index(read_index(sidecar))
    except (MalformedHeaderError, TruncatedDataError) as e:
        logger.debug("Ignoring index %s: %s", sidecar, e)


def _read_source(path: Path, label: str) -> Source:
    content = path.read_text(encoding="utf-8", errors="replace")
    return Source(content=content, label=label, path=path)


def _walk_directory(root: Path) -> Iterator[Path]:
    for path in sorted(root.rglob("*")):
        if not path.is_file():
            continue
        if path.suffix == DAT_SUFFIX or path.name.startswith("."):
            continue
        yield path


def _locale_language() -> Optional[str]:
    try:
        name = locale.getlocale()[0]
    except ValueError:
        return None
    if not name:
        return None
    return name.replace("-", "_").split("_")[0].lower()
