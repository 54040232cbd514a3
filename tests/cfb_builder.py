"""Builds small compound files and FIBs in memory for the tests."""

import struct
from typing import Dict, Iterable, List, Mapping, Tuple

from docfields.fib import FIELD_PLC_SLOTS, FIB_SIZE, WORD97_IDENT

SECTOR = 512
ENTRIES_PER_FAT_SECTOR = SECTOR // 4
FREESECT = 0xFFFFFFFF
ENDOFCHAIN = 0xFFFFFFFE
FATSECT = 0xFFFFFFFD
DIFSECT = 0xFFFFFFFC
MINI_SECTOR = 64
MINI_CUTOFF = 0x1000
NOSTREAM = 0xFFFFFFFF


def _dir_entry(name: str, object_type: int, start: int, size: int, child: int, right: int) -> bytes:
    entry = bytearray(128)
    encoded = name.encode("utf-16le") + b"\x00\x00"
    entry[: len(encoded)] = encoded
    struct.pack_into("<H", entry, 0x40, len(encoded))
    entry[0x42] = object_type
    entry[0x43] = 1
    struct.pack_into("<3I", entry, 0x44, NOSTREAM, right, child)
    struct.pack_into("<I", entry, 0x74, start)
    struct.pack_into("<Q", entry, 0x78, size)
    return bytes(entry)


def _chain(fat: List[int], count: int) -> int:
    first = len(fat)
    fat.extend(range(first + 1, first + count))
    fat.append(ENDOFCHAIN)
    return first


def build_compound_file(
    streams: Mapping[str, bytes], *, mini_stream: bool = False, difat: bool = False
) -> bytes:
    """Lay out ``streams`` as a version 3 compound file.

    A name of the form ``"Storage/Stream"`` places the stream inside a
    storage one level below the root. With ``mini_stream`` every stream
    shorter than MINI_CUTOFF is stored in the mini stream; with ``difat``
    the FAT sector is listed through a DIFAT sector instead of the header.
    """
    top: List[str] = []
    nested: Dict[str, List[str]] = {}
    for path in streams:
        head, _, tail = path.partition("/")
        if tail:
            nested.setdefault(head, []).append(path)
        if head not in top:
            top.append(head)
    order = [""] + top + [path for group in nested.values() for path in group]
    sid = {path: index for index, path in enumerate(order)}

    # sector 0 is the FAT; every other sector is appended to body in order
    fat = [FATSECT]
    body = bytearray()

    def place(data: bytes) -> int:
        count = (len(data) + SECTOR - 1) // SECTOR
        if count == 0:
            return ENDOFCHAIN
        body.extend(data.ljust(count * SECTOR, b"\x00"))
        return _chain(fat, count)

    difat_start = ENDOFCHAIN
    if difat:
        difat_start = len(fat)
        fat.append(DIFSECT)
        body.extend(
            struct.pack(
                f"<{ENTRIES_PER_FAT_SECTOR}I",
                0,
                *([FREESECT] * (ENTRIES_PER_FAT_SECTOR - 2)),
                ENDOFCHAIN,
            )
        )

    starts: Dict[str, int] = {}
    mini_fat: List[int] = []
    mini_data = bytearray()
    for path, data in streams.items():
        if mini_stream and 0 < len(data) < MINI_CUTOFF:
            count = (len(data) + MINI_SECTOR - 1) // MINI_SECTOR
            starts[path] = _chain(mini_fat, count)
            mini_data.extend(data.ljust(count * MINI_SECTOR, b"\x00"))
        else:
            starts[path] = place(data)
    root_start = place(bytes(mini_data))
    mini_fat_start = ENDOFCHAIN
    if mini_fat:
        mini_fat_start = place(
            struct.pack(
                f"<{ENTRIES_PER_FAT_SECTOR}I",
                *(mini_fat + [FREESECT] * (ENTRIES_PER_FAT_SECTOR - len(mini_fat))),
            )
        )

    def siblings(group: List[str]) -> Iterable[Tuple[str, int]]:
        for index, path in enumerate(group):
            yield path, sid[group[index + 1]] if index + 1 < len(group) else NOSTREAM

    directory = bytearray(
        _dir_entry(
            "Root Entry", 5, root_start, len(mini_data), sid[top[0]] if top else NOSTREAM, NOSTREAM
        )
    )
    for path, right in siblings(top):
        if path in nested:
            child = sid[nested[path][0]]
            directory += _dir_entry(path, 1, 0, 0, child, right)
        else:
            directory += _dir_entry(path, 2, starts[path], len(streams[path]), NOSTREAM, right)
    for group in nested.values():
        for path, right in siblings(group):
            name = path.partition("/")[2]
            directory += _dir_entry(name, 2, starts[path], len(streams[path]), NOSTREAM, right)
    dir_start = place(bytes(directory))
    if len(fat) > ENTRIES_PER_FAT_SECTOR or len(mini_fat) > ENTRIES_PER_FAT_SECTOR:
        raise ValueError("streams do not fit in a single FAT sector")

    header = bytearray(SECTOR)
    header[:8] = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
    struct.pack_into("<HHHHH", header, 0x18, 0x3E, 3, 0xFFFE, 9, 6)
    struct.pack_into("<I", header, 0x2C, 1)
    struct.pack_into("<I", header, 0x30, dir_start)
    struct.pack_into("<I", header, 0x38, MINI_CUTOFF)
    struct.pack_into("<II", header, 0x3C, mini_fat_start, 1 if mini_fat else 0)
    struct.pack_into("<II", header, 0x44, difat_start, 1 if difat else 0)
    header_difat = [FREESECT] * 109 if difat else [0] + [FREESECT] * 108
    struct.pack_into("<109I", header, 0x4C, *header_difat)

    fat_sector = struct.pack(
        f"<{ENTRIES_PER_FAT_SECTOR}I", *(fat + [FREESECT] * (ENTRIES_PER_FAT_SECTOR - len(fat)))
    )
    return bytes(header) + fat_sector + bytes(body)


def fat_entry_offset(sector: int) -> int:
    """File offset of the FAT entry for ``sector``; the FAT is always sector 0."""
    return SECTOR + 4 * sector


def dir_entry_offset(data: bytes, sid: int) -> int:
    """File offset of directory entry ``sid``; the directory is laid out contiguously."""
    dir_start = struct.unpack_from("<I", data, 0x30)[0]
    return SECTOR * (dir_start + 1) + 128 * sid


def build_fib(
    *,
    which_table: int = 0,
    regions: Mapping[str, Tuple[int, int]] = (),
    length: int = FIB_SIZE,
    encrypted: bool = False,
) -> bytes:
    """Return a WordDocument prefix declaring ``regions`` by slot label."""
    data = bytearray(max(length, FIB_SIZE))
    struct.pack_into("<HH", data, 0x0000, WORD97_IDENT, 0x00C1)
    flags = (0x0200 if which_table else 0) | (0x0100 if encrypted else 0)
    struct.pack_into("<H", data, 0x000A, flags)
    slots = {slot.label: slot for slot in FIELD_PLC_SLOTS}
    for label, (offset, size) in dict(regions).items():
        slot = slots[label]
        struct.pack_into("<II", data, slot.fc_offset, offset, size)
    return bytes(data[:length])


def build_plex(flds: List[Tuple[int, int]]) -> bytes:
    """PlcFld with ascending CPs and the given (ch, flt) pairs."""
    cps = struct.pack(f"<{len(flds) + 1}I", *range(0, 10 * (len(flds) + 1), 10))
    return cps + b"".join(bytes(pair) for pair in flds)
