# strfile package for Fortunes
"""
Binary ``.dat`` index codec.

Reads and writes the header + offset table that strfile(1) produces,
in the Homebrew, Linux and FreeBSD layouts.
"""

from .codec import (
    decode,
    default_platform,
    describe,
    detect,
    encode,
    index_path,
    platform_from_name,
    read_index,
    write_index,
)

__all__ = [
    "decode",
    "default_platform",
    "describe",
    "detect",
    "encode",
    "index_path",
    "platform_from_name",
    "read_index",
    "write_index",
]
