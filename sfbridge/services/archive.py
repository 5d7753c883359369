"""Minimal ZIP writer for Metadata API deploy packages.

Only the "stored" method (0) is produced. The Metadata API wants explicit
directory entries, which ``zipfile`` does not write on its own, and a fixed
entry list must always give the same bytes, so timestamps are zero.

Layout::

    [local header + name + data] * n
    [central directory record + name] * n
    end of central directory record
"""
import struct
import zlib
from dataclasses import dataclass
from typing import Iterable, List, Union

LOCAL_HEADER_SIGNATURE = 0x04034B50
CENTRAL_HEADER_SIGNATURE = 0x02014B50
END_OF_CENTRAL_DIR_SIGNATURE = 0x06054B50

VERSION = 20  # 2.0
METHOD_STORED = 0
DIRECTORY_ATTR = 0x10

# signature, version needed, flags, method, mod time, mod date, crc, csize, usize, name len, extra len
LOCAL_HEADER = struct.Struct("<IHHHHHIIIHH")
# signature, made by, needed, flags, method, time, date, crc, csize, usize,
# name len, extra len, comment len, disk, internal attrs, external attrs, offset
CENTRAL_HEADER = struct.Struct("<IHHHHHHIIIHHHHHII")
# signature, disk, cd disk, entries on disk, total entries, cd size, cd offset, comment len
END_OF_CENTRAL_DIR = struct.Struct("<IHHHHIIH")


def crc32(data: bytes) -> int:
    """CRC-32 (reflected 0xEDB88320, init/final xor 0xFFFFFFFF)."""
    return zlib.crc32(data) & 0xFFFFFFFF


@dataclass(frozen=True)
class ArchiveEntry:
    name: str
    data: bytes = b""

    @property
    def is_directory(self) -> bool:
        return self.name.endswith("/")


class ArchiveBuilder:
    """Collects entries, then writes bodies and the central directory."""

    def __init__(self):
        self._entries: List[ArchiveEntry] = []

    def __len__(self):
        return len(self._entries)

    def add_directory(self, name: str) -> "ArchiveBuilder":
        if not name.endswith("/"):
            name += "/"
        self._entries.append(ArchiveEntry(name))
        return self

    def add(self, name: str, data: Union[bytes, str]) -> "ArchiveBuilder":
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._entries.append(ArchiveEntry(name, data))
        return self

    def build(self) -> bytes:
        return build_archive(self._entries)


def build_archive(entries: Iterable[ArchiveEntry]) -> bytes:
    entries = list(entries)
    if len(entries) > 0xFFFF:
        raise ValueError("too many entries for a non-ZIP64 archive")

    body = bytearray()
    central = bytearray()

    for entry in entries:
        name = entry.name.encode("utf-8")
        data = b"" if entry.is_directory else bytes(entry.data)
        checksum = crc32(data) if data else 0
        offset = len(body)

        body += LOCAL_HEADER.pack(
            LOCAL_HEADER_SIGNATURE, VERSION, 0, METHOD_STORED, 0, 0,
            checksum, len(data), len(data), len(name), 0,
        )
        body += name
        body += data

        central += CENTRAL_HEADER.pack(
            CENTRAL_HEADER_SIGNATURE, VERSION, VERSION, 0, METHOD_STORED, 0, 0,
            checksum, len(data), len(data), len(name), 0, 0, 0, 0,
            DIRECTORY_ATTR if entry.is_directory else 0,
            offset,
        )
        central += name

    end = END_OF_CENTRAL_DIR.pack(
        END_OF_CENTRAL_DIR_SIGNATURE, 0, 0,
        len(entries), len(entries), len(central), len(body), 0,
    )
    return bytes(body + central + end)
