"""Minimal OLE2 CFBF reader implemented with the standard library."""

import io
import logging
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Dict, Iterable, List, Sequence, Union

from .errors import ContainerError

logger = logging.getLogger(__name__)

OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
HEADER_SIZE = 512
DIR_ENTRY_SIZE = 128

MAXREGSECT = 0xFFFFFFFA
ENDOFCHAIN = 0xFFFFFFFE
FREESECT = 0xFFFFFFFF
NOSTREAM = 0xFFFFFFFF

STGTY_STREAM = 2
STGTY_ROOT = 5

Source = Union[str, Path, BinaryIO, bytes]


class MissingStreamError(Exception):
    """Raised when a requested stream is not present in the container."""


@dataclass
class DirectoryEntry:
    name: str
    object_type: int
    left_sibling: int
    right_sibling: int
    child: int
    start_sector: int
    stream_size: int


class StreamCatalog:
    """Read-only access to the top-level streams of a Compound File.

    Only the children of the root storage are catalogued: embedded objects
    under ``ObjectPool`` carry their own ``WordDocument`` streams and must not
    be confused with the host document's.
    """

    def __init__(self, source: Source):
        self._owns_stream = isinstance(source, (str, Path))
        self._stream = self._open_source(source)
        try:
            self._header = self._read_exact(HEADER_SIZE)
            self._validate_header()
            self._fat: Sequence[int] = ()
            self._directory: List[DirectoryEntry] = []
            self._entries: Dict[str, DirectoryEntry] = {}
            self._mini_stream_data = b""
            self._mini_fat: Sequence[int] = ()
            self._build_fat()
            self._read_directory()
            self._catalog_root()
            self._load_mini_stream()
        except BaseException:
            self.close()
            raise

    @staticmethod
    def _open_source(source: Source) -> BinaryIO:
        if isinstance(source, bytes):
            return io.BytesIO(source)
        if isinstance(source, (str, Path)):
            try:
                return open(source, "rb")
            except OSError as exc:
                raise ContainerError(f"cannot open {source}: {exc.strerror or exc}") from exc
        if hasattr(source, "read") and hasattr(source, "seek"):
            return source
        raise TypeError("source must be path, bytes, or file-like")

    def _read_exact(self, size: int) -> bytes:
        data = self._stream.read(size)
        if len(data) != size:
            raise ContainerError("container header is truncated")
        return data

    def _validate_header(self) -> None:
        if self._header[:8] != OLE_SIGNATURE:
            raise ContainerError("not an OLE2 container")
        sector_shift = struct.unpack_from("<H", self._header, 0x1E)[0]
        mini_sector_shift = struct.unpack_from("<H", self._header, 0x20)[0]
        if sector_shift not in (9, 12) or mini_sector_shift != 6:
            raise ContainerError("unsupported sector size (shift %d)" % sector_shift)
        self.sector_size = 1 << sector_shift
        self.mini_sector_size = 1 << mini_sector_shift
        self._dir_start_sector = struct.unpack_from("<I", self._header, 0x30)[0]
        self.mini_stream_cutoff = struct.unpack_from("<I", self._header, 0x38)[0]
        self._mini_fat_start = struct.unpack_from("<I", self._header, 0x3C)[0]
        self._difat_start = struct.unpack_from("<I", self._header, 0x44)[0]
        self._difat_entries = struct.unpack_from("<109I", self._header, 0x4C)

    def _sector_offset(self, sector_index: int) -> int:
        return self.sector_size * (sector_index + 1)

    def _read_sector(self, sector_index: int) -> bytes:
        if sector_index > MAXREGSECT:
            raise ContainerError("invalid sector index 0x%08X" % sector_index)
        try:
            self._stream.seek(self._sector_offset(sector_index))
        except (OSError, OverflowError) as exc:
            raise ContainerError("failed to seek sector %d" % sector_index) from exc
        sector = self._stream.read(self.sector_size)
        if len(sector) != self.sector_size:
            raise ContainerError("sector %d is truncated" % sector_index)
        return sector

    def _build_fat(self) -> None:
        fat_sectors = [idx for idx in self._difat_entries if idx <= MAXREGSECT]
        entries_per_sector = self.sector_size // 4 - 1
        fmt = f"<{entries_per_sector}I"
        seen = set()
        next_sector = self._difat_start
        while next_sector <= MAXREGSECT:
            if next_sector in seen:
                raise ContainerError("DIFAT chain loops at sector %d" % next_sector)
            seen.add(next_sector)
            block = self._read_sector(next_sector)
            fat_sectors.extend(idx for idx in struct.unpack_from(fmt, block, 0) if idx <= MAXREGSECT)
            next_sector = struct.unpack_from("<I", block, entries_per_sector * 4)[0]
        fat_data = bytearray()
        for sector in fat_sectors:
            fat_data.extend(self._read_sector(sector))
        self._fat = struct.unpack(f"<{len(fat_data) // 4}I", fat_data) if fat_data else ()
        logger.debug("FAT has %d entries in %d sectors", len(self._fat), len(fat_sectors))

    def _iter_chain(self, start_sector: int, table: Sequence[int]) -> Iterable[int]:
        sector = start_sector
        seen = set()
        while sector not in (FREESECT, ENDOFCHAIN):
            if sector in seen:
                raise ContainerError("sector chain loops at sector %d" % sector)
            seen.add(sector)
            yield sector
            try:
                sector = table[sector]
            except IndexError as exc:
                raise ContainerError("allocation table chain is corrupt") from exc

    def _read_chain(self, start_sector: int) -> bytes:
        data = bytearray()
        for sector in self._iter_chain(start_sector, self._fat):
            data.extend(self._read_sector(sector))
        return bytes(data)

    def _read_directory(self) -> None:
        raw = self._read_chain(self._dir_start_sector)
        for offset in range(0, len(raw) - DIR_ENTRY_SIZE + 1, DIR_ENTRY_SIZE):
            entry = raw[offset : offset + DIR_ENTRY_SIZE]
            name_len = min(struct.unpack_from("<H", entry, 0x40)[0], 64)
            name = entry[: max(name_len - 2, 0)].decode("utf-16le", errors="ignore").rstrip("\x00")
            left, right, child = struct.unpack_from("<3I", entry, 0x44)
            start_sector = struct.unpack_from("<I", entry, 0x74)[0]
            stream_size = struct.unpack_from("<Q", entry, 0x78)[0]
            if self.sector_size == 512:
                # version 3 files may leave garbage in the high dword
                stream_size &= 0xFFFFFFFF
            self._directory.append(
                DirectoryEntry(name, entry[0x42], left, right, child, start_sector, stream_size)
            )
        if not self._directory or self._directory[0].object_type != STGTY_ROOT:
            raise ContainerError("root directory entry is missing")

    def _catalog_root(self) -> None:
        pending = [self._directory[0].child]
        seen = set()
        while pending:
            sid = pending.pop()
            if sid == NOSTREAM:
                continue
            if sid in seen or sid >= len(self._directory):
                raise ContainerError("directory tree is corrupt at entry %d" % sid)
            seen.add(sid)
            entry = self._directory[sid]
            self._entries.setdefault(entry.name, entry)
            pending.extend((entry.right_sibling, entry.left_sibling))

    def _load_mini_stream(self) -> None:
        root = self._directory[0]
        if root.stream_size == 0 or root.start_sector in (FREESECT, ENDOFCHAIN):
            return
        self._mini_stream_data = self._read_chain(root.start_sector)[: root.stream_size]
        if self._mini_fat_start in (FREESECT, ENDOFCHAIN):
            return
        mini_fat_bytes = self._read_chain(self._mini_fat_start)
        if mini_fat_bytes:
            self._mini_fat = struct.unpack(f"<{len(mini_fat_bytes) // 4}I", mini_fat_bytes)

    def list_streams(self) -> List[str]:
        """Names of the streams stored directly under the root storage."""
        return [name for name, entry in self._entries.items() if entry.object_type == STGTY_STREAM]

    def exists(self, name: str) -> bool:
        entry = self._entries.get(name)
        return entry is not None and entry.object_type == STGTY_STREAM

    def stream_size(self, name: str) -> int:
        return self._stream_entry(name).stream_size

    def _stream_entry(self, name: str) -> DirectoryEntry:
        if not self.exists(name):
            raise MissingStreamError(f"stream {name!r} not found")
        return self._entries[name]

    def open_stream(self, name: str) -> io.BytesIO:
        entry = self._stream_entry(name)
        if entry.stream_size == 0:
            return io.BytesIO(b"")
        use_mini = (
            entry.stream_size < self.mini_stream_cutoff
            and entry.start_sector not in (FREESECT, ENDOFCHAIN)
            and self._mini_stream_data
            and self._mini_fat
        )
        if use_mini:
            data = self._read_mini_chain(entry.start_sector)
        else:
            data = self._read_chain(entry.start_sector)
        if len(data) < entry.stream_size:
            logger.debug(
                "stream %r declares %d bytes but its chain holds %d", name, entry.stream_size, len(data)
            )
        return io.BytesIO(data[: entry.stream_size])

    def _read_mini_chain(self, start_sector: int) -> bytes:
        data = bytearray()
        for sector in self._iter_chain(start_sector, self._mini_fat):
            offset = sector * self.mini_sector_size
            chunk = self._mini_stream_data[offset : offset + self.mini_sector_size]
            if len(chunk) != self.mini_sector_size:
                raise ContainerError("mini sector %d is outside the mini stream" % sector)
            data.extend(chunk)
        return bytes(data)

    def close(self) -> None:
        if self._owns_stream:
            self._stream.close()

    def __enter__(self) -> "StreamCatalog":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
