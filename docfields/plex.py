"""Scans a field PLC (PlcFld) for field-begin markers."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Final, List, Tuple

from .fieldnames import lookup

logger = logging.getLogger(__name__)

CP_SIZE: Final[int] = 4
FLD_SIZE: Final[int] = 2
FIELD_BEGIN: Final[int] = 0x13
FLD_CH_MASK: Final[int] = 0x7F


@dataclass(frozen=True)
class PlexScan:
    """Outcome of scanning one region; malformed regions scan as empty."""

    names: Tuple[str, ...] = ()
    malformed: bool = False

    def joined(self) -> str:
        return ", ".join(self.names)


@dataclass
class FieldPlex:
    """View over a PlcFld: ``n + 1`` CPs followed by ``n`` two-byte FLDs."""

    data: bytes
    count: int = field(init=False)

    def __post_init__(self) -> None:
        size = len(self.data)
        if size < CP_SIZE or (size - CP_SIZE) % (CP_SIZE + FLD_SIZE) != 0:
            self.count = -1
        else:
            self.count = (size - CP_SIZE) // (CP_SIZE + FLD_SIZE)

    @property
    def is_well_formed(self) -> bool:
        return self.count >= 0

    @property
    def fld_offset(self) -> int:
        return CP_SIZE * (self.count + 1)

    def fld(self, index: int) -> Tuple[int, int]:
        offset = self.fld_offset + FLD_SIZE * index
        return self.data[offset], self.data[offset + 1]


def is_field_begin(ch: int) -> bool:
    return ch & FLD_CH_MASK == FIELD_BEGIN


def scan_field_plex(data: bytes, resolve: Callable[[int], str] = lookup) -> PlexScan:
    """Collect field names from the even-indexed FLDs of a PlcFld.

    Begin, separator and end markers are interleaved, so only even indices
    are candidate begin markers.
    """
    plex = FieldPlex(data)
    if not plex.is_well_formed:
        logger.debug("ignoring malformed field table of %d bytes", len(data))
        return PlexScan(malformed=True)
    names: List[str] = []
    for index in range(0, plex.count, 2):
        ch, flt = plex.fld(index)
        if is_field_begin(ch):
            names.append(resolve(flt))
    return PlexScan(tuple(names))
