"""
Core Domain Objects for the fortune cookie store.

A Jar is one physical text source split into Cookies, carrying the same
header metadata a strfile ``.dat`` index records. Jars built from text and
Jars decoded from an index must agree on that metadata.

Domain Objects:
    Cookie      — A single quote and where it came from
    Jar         — One text source parsed into Cookies, plus index header
    Platform    — The three incompatible strfile layouts

Errors:
    ErrorKind / FortuneError and its subclasses: every failure the
    core reports is typed; nothing is silently coerced.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Optional, Protocol, Sequence


logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

DEFAULT_DELIMITER = "%"

# Header flags, as defined by strfile(1)
FLAGS_RANDOMIZED = 0x1   # randomized pointers
FLAGS_ORDERED = 0x2      # ordered pointers
FLAGS_ROTATED = 0x4      # rot-13'd text

# Shortest-length value of a Jar that has never seen a quote
MAX_LENGTH_SENTINEL = 2**64 - 1


# =============================================================================
# ERROR TAXONOMY
# =============================================================================

class ErrorKind(Enum):
    """
    Every way the core can refuse a request.

    config            — Malformed weight token, bad delimiter, bad pattern
    partial_weights   — Some shelves weighted but weights do not total 100%
    not_found         — A location resolves to no source at all
    malformed_header  — Index bytes too short or offset table misaligned
    truncated_data    — Declared entry count disagrees with the data
    no_match          — Filtering left nothing to choose from
    unnormalized      — Sampling attempted before probabilities were computed
    """
    CONFIG = "config"
    PARTIAL_WEIGHTS = "partial_weights"
    NOT_FOUND = "not_found"
    MALFORMED_HEADER = "malformed_header"
    TRUNCATED_DATA = "truncated_data"
    NO_MATCH = "no_match"
    UNNORMALIZED = "unnormalized"


class FortuneError(Exception):
    """Base class for every error raised by the fortunes core."""

    kind: ErrorKind = ErrorKind.CONFIG

    def __init__(self, reason: str, location: Optional[str] = None):
        self.reason = reason
        self.location = location
        message = f"{location}: {reason}" if location else reason
        super().__init__(message)


class ConfigError(FortuneError):
    """Raised when user supplied configuration cannot be honoured."""
    kind = ErrorKind.CONFIG


class PartialWeightsError(ConfigError):
    """Raised when explicit shelf weights are given but do not total 100%."""
    kind = ErrorKind.PARTIAL_WEIGHTS


class NotFoundError(FortuneError):
    """Raised when a location resolves to zero sources."""
    kind = ErrorKind.NOT_FOUND


class MalformedHeaderError(FortuneError):
    """Raised when index bytes cannot hold the header of their layout."""
    kind = ErrorKind.MALFORMED_HEADER


class TruncatedDataError(FortuneError):
    """Raised when index bytes disagree with their own entry count."""
    kind = ErrorKind.TRUNCATED_DATA


class NoMatchError(FortuneError):
    """Raised when no cookie survives loading and filtering."""
    kind = ErrorKind.NO_MATCH


class UnnormalizedError(FortuneError):
    """Raised when sampling a cabinet whose probabilities are stale."""
    kind = ErrorKind.UNNORMALIZED


# =============================================================================
# PLATFORM
# =============================================================================

class Platform(Enum):
    """The strfile index layouts found in the wild."""
    HOMEBREW = "homebrew"
    LINUX = "linux"
    FREEBSD = "freebsd"

    @classmethod
    def current(cls) -> Platform:
        """Layout native to the running host; Linux when unknown."""
        if sys.platform == "darwin":
            return cls.HOMEBREW
        if sys.platform.startswith("freebsd"):
            return cls.FREEBSD
        return cls.LINUX


class RandomSource(Protocol):
    """
    The randomness a caller must hand to every sampling method.

    ``random.Random`` satisfies it; tests pass a seeded instance.
    """

    def randrange(self, stop: int) -> int: ...

    def choices(self, population: Sequence, weights=None, *, cum_weights=None, k: int = 1) -> list: ...


# =============================================================================
# COOKIE
# =============================================================================

@dataclass(frozen=True)
class Cookie:
    """
    A single quote.

    ``offset`` is the byte offset of the quote in its source text, or 0
    when unknown. A zero offset is recomputed when the Jar is encoded.
    """
    location: str
    content: str
    offset: int = 0

    @property
    def length(self) -> int:
        """Length in bytes including the trailing newline."""
        return byte_length(self.content) + 1


def byte_length(text: str) -> int:
    """Length of ``text`` as stored on disk (UTF-8)."""
    return len(text.encode("utf-8"))


# =============================================================================
# JAR
# =============================================================================

@dataclass
class Jar:
    """
    One text source parsed into Cookies, with strfile header metadata.

    ``probability`` is 0 until the owning Shelf assigns it. The Jar is
    mutated by filtering and by location rewriting, and is read-only
    while sampling.
    """
    location: str = ""
    probability: float = 0.0
    platform: Platform = field(default_factory=Platform.current)
    version: int = 0
    max_length: int = 0
    min_length: int = MAX_LENGTH_SENTINEL
    flags: int = 0
    delim: str = DEFAULT_DELIMITER
    file_size: int = 0
    cookies: list[Cookie] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.cookies)

    def __iter__(self):
        return iter(self.cookies)

    def num_of_cookies(self) -> int:
        return len(self.cookies)

    @property
    def offsets(self) -> list[int]:
        return [cookie.offset for cookie in self.cookies]

    def recompute_lengths(self) -> None:
        """Refresh max/min length from the cookies currently held."""
        lengths = [cookie.length for cookie in self.cookies]
        self.max_length = max(lengths, default=0)
        self.min_length = min(lengths, default=MAX_LENGTH_SENTINEL)

    def filter(self, sieve) -> None:
        """Drop every cookie the sieve does not admit and refresh the lengths."""
        before = len(self.cookies)
        self.cookies = [c for c in self.cookies if sieve.admits(c.content)]
        self.recompute_lengths()
        logger.debug(
            "Jar.filter(): [%s] filtered cookies: %d => %d",
            self.location, before, len(self.cookies),
        )

    def choose(self, rng: RandomSource) -> Optional[Cookie]:
        """Pick one cookie uniformly, or None if the jar is empty."""
        if not self.cookies:
            return None
        return self.cookies[rng.randrange(len(self.cookies))]

    def update_location(self, parent_location: str) -> None:
        """Make this jar's location (and its cookies') relative to a parent."""
        self.location = trim_parent_path(self.location, parent_location)
        self.cookies = [replace(c, location=self.location) for c in self.cookies]

    def merge_index(self, index: Jar) -> None:
        """
        Adopt header fields and offsets from a decoded ``.dat`` Jar.

        The text stays the reference for content and lengths; the index
        contributes platform, version, flags and per-cookie offsets.

        Raises:
            TruncatedDataError: If the index holds a different number
                of entries than this jar has cookies
        """
        if len(index.cookies) != len(self.cookies):
            raise TruncatedDataError(
                f"index has {len(index.cookies)} entries, text has {len(self.cookies)} cookies",
                self.location,
            )
        self.platform = index.platform
        self.version = index.version
        self.flags = index.flags
        self.cookies = [
            replace(cookie, offset=entry.offset)
            for cookie, entry in zip(self.cookies, index.cookies)
        ]


# =============================================================================
# TEXT PARSING
# =============================================================================

def parse_text(content: str, location: str, delim: str = DEFAULT_DELIMITER) -> Jar:
    """
    Parse a fortune text source into a Jar.

    Records are separated by a line holding only ``delim``. CRLF and CR
    are normalized to LF first, a trailing ``\\n<delim>`` is stripped
    from each record and whitespace-only records are dropped.

    Raises:
        ConfigError: If ``delim`` is not a single character
    """
    if len(delim) != 1:
        raise ConfigError(f"delimiter must be a single character, got {delim!r}", location)

    content = content.replace("\r\n", "\n").replace("\r", "\n")
    location = _strip_dat_suffix(location)

    separator = f"\n{delim}\n"
    tail = f"\n{delim}"
    records = [_strip_suffix_all(part, tail) for part in content.split(separator)]

    jar = Jar(location=location, delim=delim)
    jar.cookies = [
        Cookie(location=location, content=record)
        for record in records
        if record.strip()
    ]
    jar.recompute_lengths()
    jar.file_size = byte_length(content)

    logger.debug(
        "parse_text(): -> (path: %r, platform: %s, max_length: %d, min_length: %d, num_cookies: %d)",
        jar.location, jar.platform.value, jar.max_length, jar.min_length, len(jar.cookies),
    )
    return jar


def parse_text_file(path: str | Path, delim: str = DEFAULT_DELIMITER) -> Jar:
    """Read a text source from disk and parse it."""
    content = Path(path).read_text(encoding="utf-8", errors="replace")
    return parse_text(content, str(path), delim)


def flag_names(flags: int) -> list[str]:
    """Human-readable names of the header flags that are set."""
    names = []
    if flags & FLAGS_RANDOMIZED:
        names.append("RANDOM")
    if flags & FLAGS_ORDERED:
        names.append("ORDERED")
    if flags & FLAGS_ROTATED:
        names.append("ROTATED")
    return names


def trim_parent_path(path: str, parent: str) -> str:
    """
    Strip ``parent`` from the front of ``path``.

    e.g., ("tests/data/cookie/valley", "tests/data") -> "cookie/valley"

    The path is returned unchanged when it equals the parent or does not
    start with it.
    """
    if path == parent:
        return path

    path = path.replace("\\", "/")
    parent = parent.replace("\\", "/")

    if parent and path.startswith(parent):
        path = path[len(parent):]
    return path.lstrip("/")


def _strip_suffix_all(text: str, suffix: str) -> str:
    while suffix and text.endswith(suffix):
        text = text[: -len(suffix)]
    return text


def _strip_dat_suffix(location: str) -> str:
    return _strip_suffix_all(location, ".dat")
