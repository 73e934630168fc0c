"""
strfile Index Codec.

Serializes a Jar's header and per-cookie offsets to the ``.dat`` sidecar
format and back, in the three layouts historic tools produce:

    Homebrew — 8-byte fields written through a 32-bit htonl()
    Linux    — 4-byte big-endian fields, 4-byte offsets
    FreeBSD  — 4-byte big-endian header, 8-byte big-endian offsets

Layout table (all fields big-endian on the wire):

    field                         homebrew       linux     freebsd
    version/count/max/min/flags   8 truncated    4         4
    delimiter                     1 + 7 pad      1 + 3     1 + 3
    per-entry offset              8 truncated    4         8
    trailing file size            8 truncated    4         8
    header size                   48             24        24

The format of a file is never declared, only inferred (see ``detect``).
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..domain import (
    ConfigError,
    Cookie,
    Jar,
    MalformedHeaderError,
    Platform,
    TruncatedDataError,
    byte_length,
    flag_names,
)


logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION CONSTANTS
# =============================================================================

MASK32 = 0xFFFFFFFF
MASK64 = 0xFFFFFFFFFFFFFFFF

VERSION_HOMEBREW = 1
VERSION_LINUX = 2
VERSION_FREEBSD = 1

HEADER_SIZE_HOMEBREW = 48
HEADER_SIZE_LINUX = 24
HEADER_SIZE_FREEBSD = 24

# Bytes between two records in the source text: "\n", delimiter, "\n"
RECORD_SEPARATOR_LENGTH = 3

DAT_SUFFIX = ".dat"


# =============================================================================
# WORD ENCODINGS
# =============================================================================

def htonl_wide(value: int) -> bytes:
    """
    Encode ``value`` the way strfile.c did on a little-endian host.

    strfile.c stores ``htonl(off)`` into an ``off_t`` and writes all
    eight bytes. htonl() only sees the low 32 bits, so the value is
    truncated, byte-swapped, and lands in the low half of a
    little-endian 64-bit word:

        0x1234567890ABCDEF -> 90 AB CD EF 00 00 00 00
    """
    swapped = struct.unpack("<I", struct.pack(">I", value & MASK32))[0]
    return struct.pack("<Q", swapped)


def ntohl_wide(data: bytes) -> int:
    """Inverse of ``htonl_wide``; the high four bytes are ignored."""
    native = struct.unpack("<Q", data)[0] & MASK32
    return struct.unpack(">I", struct.pack("<I", native))[0]


def _pack_u32(value: int) -> bytes:
    return struct.pack(">I", value & MASK32)


def _unpack_u32(data: bytes) -> int:
    return struct.unpack(">I", data)[0]


def _pack_u64(value: int) -> bytes:
    return struct.pack(">Q", value & MASK64)


def _unpack_u64(data: bytes) -> int:
    return struct.unpack(">Q", data)[0]


@dataclass(frozen=True)
class Word:
    """A fixed-width integer encoding."""
    width: int
    pack: Callable[[int], bytes]
    unpack: Callable[[bytes], int]


TRUNCATED_WORD = Word(8, htonl_wide, ntohl_wide)
U32_WORD = Word(4, _pack_u32, _unpack_u32)
U64_WORD = Word(8, _pack_u64, _unpack_u64)


# =============================================================================
# LAYOUTS
# =============================================================================

@dataclass(frozen=True)
class Layout:
    """
    Everything that distinguishes one platform's index format.

    The header is five ``field`` words (version, count, max length,
    min length, flags) followed by the delimiter byte padded to one
    ``field`` word. The offset table follows, then the file size.
    """
    platform: Platform
    default_version: int
    field: Word
    entry: Word

    @property
    def header_size(self) -> int:
        return self.field.width * 6

    @property
    def delim_position(self) -> int:
        return self.field.width * 5

    @property
    def trailer(self) -> Word:
        return self.entry


LAYOUTS: dict[Platform, Layout] = {
    Platform.HOMEBREW: Layout(Platform.HOMEBREW, VERSION_HOMEBREW, TRUNCATED_WORD, TRUNCATED_WORD),
    Platform.LINUX: Layout(Platform.LINUX, VERSION_LINUX, U32_WORD, U32_WORD),
    Platform.FREEBSD: Layout(Platform.FREEBSD, VERSION_FREEBSD, U32_WORD, U64_WORD),
}


def default_platform() -> Platform:
    """Layout native to the running host (Linux when unknown)."""
    return Platform.current()


def platform_from_name(name: Optional[str]) -> Platform:
    """
    Look up a platform by name ("homebrew", "linux", "freebsd").

    Unknown or empty names resolve to the host's default layout.
    """
    if name:
        try:
            return Platform(name.lower())
        except ValueError:
            logger.debug("Unknown platform %r, using host default", name)
    return default_platform()


# =============================================================================
# ENCODE
# =============================================================================

def _delimiter_byte(delim: str) -> bytes:
    if len(delim) != 1 or ord(delim) > 0xFF:
        raise ConfigError(f"delimiter must be a single one-byte character, got {delim!r}")
    return delim.encode("latin-1")


def entry_offsets(jar: Jar) -> list[int]:
    """
    Offsets to write for each cookie.

    A nonzero cookie offset is kept as is; otherwise the offset is the
    running length of the previous records plus their separators.
    """
    offsets = []
    running = 0
    for cookie in jar.cookies:
        offsets.append(cookie.offset if cookie.offset else running)
        running += byte_length(cookie.content) + RECORD_SEPARATOR_LENGTH
    return offsets


def encode(jar: Jar, platform: Optional[Platform] = None) -> bytes:
    """
    Serialize a Jar's header and offset table.

    Args:
        jar: The Jar to serialize (cookie content is not written)
        platform: Target layout; defaults to ``jar.platform``. The
            layout's own version is written when it differs from
            the jar's platform or the jar has none

    Raises:
        ConfigError: If the delimiter cannot be stored in one byte
    """
    layout = LAYOUTS[platform or jar.platform]
    word = layout.field
    delim = _delimiter_byte(jar.delim)
    version = jar.version if jar.version and layout.platform == jar.platform else layout.default_version

    parts = [
        word.pack(version),
        word.pack(len(jar.cookies)),
        word.pack(jar.max_length),
        word.pack(jar.min_length),
        word.pack(jar.flags),
        delim + b"\x00" * (word.width - 1),
    ]
    parts.extend(layout.entry.pack(offset) for offset in entry_offsets(jar))
    parts.append(layout.trailer.pack(jar.file_size))
    return b"".join(parts)


# =============================================================================
# DECODE
# =============================================================================

def decode(data: bytes, platform: Optional[Platform] = None, strict: bool = True) -> Jar:
    """
    Deserialize index bytes into a Jar whose cookies carry only offsets.

    Args:
        data: Raw ``.dat`` content
        platform: Layout to decode with; detected from the bytes if None
        strict: Require the declared entry count to match the offset table

    Raises:
        MalformedHeaderError: If data is shorter than the header, or the
            offset table is not a whole number of entries
        TruncatedDataError: If the trailing file size is missing, or
            (strict) the declared count disagrees with the table
    """
    if platform is None:
        platform = detect(data)
    layout = LAYOUTS[platform]
    word = layout.field
    size = len(data)

    if size < layout.header_size:
        raise MalformedHeaderError(
            f"{size} bytes is shorter than the {layout.header_size}-byte {platform.value} header"
        )
    if size < layout.header_size + layout.trailer.width:
        raise TruncatedDataError(f"{platform.value} index is missing its file size field")

    table_length = size - layout.header_size - layout.trailer.width
    if table_length % layout.entry.width:
        raise MalformedHeaderError(
            f"offset table of {table_length} bytes is not a multiple of {layout.entry.width}"
        )

    def field_at(index: int) -> int:
        start = index * word.width
        return word.unpack(data[start:start + word.width])

    declared = field_at(1)
    num_entries = table_length // layout.entry.width
    if declared != num_entries:
        if strict:
            raise TruncatedDataError(
                f"inconsistent number of cookies: header declares {declared}, table holds {num_entries}"
            )
        logger.debug("decode(): count mismatch tolerated: %d != %d", declared, num_entries)

    offsets = []
    for start in range(layout.header_size, layout.header_size + table_length, layout.entry.width):
        offsets.append(layout.entry.unpack(data[start:start + layout.entry.width]))

    return Jar(
        location="",
        platform=platform,
        version=field_at(0),
        max_length=field_at(2),
        min_length=field_at(3),
        flags=field_at(4),
        delim=chr(data[layout.delim_position]),
        file_size=layout.trailer.unpack(data[size - layout.trailer.width:]),
        cookies=[Cookie(location="", content="", offset=offset) for offset in offsets],
    )


# =============================================================================
# DETECTION
# =============================================================================

def _is_zero(chunk: bytes) -> bool:
    return not any(chunk)


def _is_nonzero(chunk: bytes) -> bool:
    return len(chunk) == 4 and any(chunk)


def detect(data: bytes) -> Platform:
    """
    Infer the layout of index bytes.

    Checks run in this order because the FreeBSD and Linux tests
    overlap for small files:

    1. Homebrew: the first eight bytes are version 1 in truncated form
       and the data is long enough for the header and file size
    2. FreeBSD: version 1 as a 32-bit word, and the high halves of the
       first two 64-bit offsets are zero
    3. Linux: version 2, a nonzero count, and nonzero words where a
       64-bit layout would have zero high halves

    Anything else falls back to ``default_platform()``. Short input
    never raises.
    """
    if (
        data[0:8] == htonl_wide(VERSION_HOMEBREW)
        and len(data) >= HEADER_SIZE_HOMEBREW + TRUNCATED_WORD.width
    ):
        platform = Platform.HOMEBREW
    elif (
        data[0:4] == _pack_u32(VERSION_FREEBSD)
        and _is_zero(data[24:28])
        and _is_zero(data[32:36])
    ):
        platform = Platform.FREEBSD
    elif (
        data[0:4] == _pack_u32(VERSION_LINUX)
        and _is_nonzero(data[4:8])
        and _is_nonzero(data[30:34])
        and _is_nonzero(data[34:38])
    ):
        platform = Platform.LINUX
    else:
        platform = default_platform()
        logger.debug("detect(): no layout matched, using %s", platform.value)
        return platform

    logger.debug("detect(): %s", platform.value)
    return platform


# =============================================================================
# FILES
# =============================================================================

def index_path(location: str | Path) -> Path:
    """Sidecar path for a text source (``foo`` -> ``foo.dat``)."""
    location = str(location)
    if location.endswith(DAT_SUFFIX):
        return Path(location)
    return Path(location + DAT_SUFFIX)


def read_index(path: str | Path, strict: bool = True) -> Jar:
    """
    Load a ``.dat`` file, detecting its layout.

    The returned Jar's location is the path without ``.dat``.

    Raises:
        ConfigError: If the path does not name a ``.dat`` file
    """
    path = str(path)
    if not path.endswith(DAT_SUFFIX):
        raise ConfigError("invalid data file, expected a .dat suffix", path)

    data = Path(path).read_bytes()
    jar = decode(data, detect(data), strict=strict)
    jar.location = path[: -len(DAT_SUFFIX)]
    return jar


def write_index(jar: Jar, path: str | Path, platform: Optional[Platform] = None) -> int:
    """Write a Jar's index to ``path``; returns the number of bytes written."""
    data = encode(jar, platform)
    Path(path).write_bytes(data)
    logger.debug("write_index(): %s (%d bytes)", path, len(data))
    return len(data)


def describe(jar: Jar) -> str:
    """Render an index header the way ``strfile -l`` shows it."""
    lines = [
        "CookieJar {",
        f"  location: '{jar.location}'",
        f"  probability: {jar.probability}",
        f"  platform: '{jar.platform.value}'",
        f"  version: {jar.version}",
        f"  num_cookies: {len(jar.cookies)}",
        f"  max_length: {jar.max_length}",
        f"  min_length: {jar.min_length}",
        f"  flags: [{', '.join(flag_names(jar.flags))}]",
        f"  delim: '{jar.delim}'",
        f"  file_size: {jar.file_size}",
        "}",
    ]
    return "\n".join(lines)
