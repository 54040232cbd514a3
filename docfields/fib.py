"""Parses the File Information Block (FIB) from a WordDocument stream.

Only the fixed-size prefix up to the end of FibRgFcLcb2000 is read; the
offsets below are byte positions within that prefix as laid out in the
Word 97-2003 binary format ([MS-DOC] 2.5.1).
"""

import logging
import struct
from dataclasses import dataclass, field
from enum import Enum
from typing import Final, List, Tuple

from .cfbf import MissingStreamError, StreamCatalog
from .errors import (
    FibTooShortError,
    MissingMainStreamError,
    NoFieldDataError,
    TableStreamMissingError,
)

logger = logging.getLogger(__name__)

MAIN_STREAM: Final[str] = "WordDocument"

# FibBase
W_IDENT_OFFSET: Final[int] = 0x0000  # u16, magic
N_FIB_OFFSET: Final[int] = 0x0002  # u16, file format version
FLAGS_OFFSET: Final[int] = 0x000A  # u16, fDot .. fObfuscated
WHICH_TBL_STM_BYTE: Final[int] = 0x000B  # high byte of the flags word
WHICH_TBL_STM_SHIFT: Final[int] = 1  # fWhichTblStm, 0x0200 of the flags word
ENCRYPTED_MASK: Final[int] = 0x0100  # fEncrypted

# End of fcPlcfFldHdrTxbx/lcbPlcfFldHdrTxbx, the last pair we read.
FIB_SIZE: Final[int] = 0x027A

WORD97_IDENT: Final[int] = 0xA5EC


class TableSelector(Enum):
    """Which of the two table streams the FIB declares current."""

    PRIMARY = "0Table"
    SECONDARY = "1Table"

    @property
    def stream_name(self) -> str:
        return self.value

    @classmethod
    def from_bit(cls, bit: int) -> "TableSelector":
        return cls.SECONDARY if bit else cls.PRIMARY


@dataclass(frozen=True)
class FieldPlcSlot:
    """Location of one fc/lcb pair in FibRgFcLcb97 or FibRgFcLcb2000."""

    label: str
    fib_name: str
    fc_offset: int

    @property
    def lcb_offset(self) -> int:
        return self.fc_offset + 4


FIELD_PLC_SLOTS: Final[Tuple[FieldPlcSlot, ...]] = (
    FieldPlcSlot("Document body", "PlcfFldMom", 0x011A),  # 282..290
    FieldPlcSlot("Header/footer", "PlcfFldHdr", 0x0122),  # 290..298
    FieldPlcSlot("Footnote", "PlcfFldFtn", 0x012A),  # 298..306
    FieldPlcSlot("Comment", "PlcfFldAtn", 0x0132),  # 306..314
    FieldPlcSlot("Endnote", "PlcfFldEdn", 0x021A),  # 538..546
    FieldPlcSlot("Textbox", "PlcfFldTxbx", 0x026A),  # 618..626
    FieldPlcSlot("Header/footer textbox", "PlcfFldHdrTxbx", 0x0272),  # 626..634
)


@dataclass(frozen=True)
class FieldRegionSpec:
    label: str
    offset: int
    length: int
    fib_name: str = field(default="", compare=False)

    @property
    def end(self) -> int:
        return self.offset + self.length


@dataclass(frozen=True)
class FieldRegion:
    label: str
    data: bytes


@dataclass(frozen=True)
class WordFIB:
    """The first FIB_SIZE bytes of WordDocument with named accessors."""

    data: bytes

    @classmethod
    def from_bytes(cls, data: bytes) -> "WordFIB":
        if len(data) < FIB_SIZE:
            raise FibTooShortError(
                "file information block too short (%d of %d bytes)" % (len(data), FIB_SIZE)
            )
        return cls(bytes(data[:FIB_SIZE]))

    def uint16(self, offset: int) -> int:
        return struct.unpack_from("<H", self.data, offset)[0]

    def uint32(self, offset: int) -> int:
        return struct.unpack_from("<I", self.data, offset)[0]

    @property
    def wIdent(self) -> int:
        return self.uint16(W_IDENT_OFFSET)

    @property
    def nFib(self) -> int:
        return self.uint16(N_FIB_OFFSET)

    @property
    def is_encrypted(self) -> bool:
        return bool(self.uint16(FLAGS_OFFSET) & ENCRYPTED_MASK)

    @property
    def fWhichTblStm(self) -> int:
        return (self.data[WHICH_TBL_STM_BYTE] >> WHICH_TBL_STM_SHIFT) & 1

    @property
    def table_selector(self) -> TableSelector:
        return TableSelector.from_bit(self.fWhichTblStm)


def read_fib(catalog: StreamCatalog) -> WordFIB:
    """Read the FIB prefix of the WordDocument stream."""
    try:
        stream = catalog.open_stream(MAIN_STREAM)
    except MissingStreamError as exc:
        raise MissingMainStreamError("cannot find %s stream" % MAIN_STREAM) from exc
    fib = WordFIB.from_bytes(stream.read(FIB_SIZE))
    if fib.wIdent != WORD97_IDENT:
        logger.warning("unexpected FIB magic 0x%04X (nFib 0x%04X)", fib.wIdent, fib.nFib)
    if fib.is_encrypted:
        logger.warning("document is encrypted; field tables are likely unreadable")
    return fib


def resolve_table_stream(fib: WordFIB, catalog: StreamCatalog) -> TableSelector:
    """Return the table stream the FIB points at, which must exist.

    A document saved incrementally can carry both 0Table and 1Table; only
    the one named by fWhichTblStm is current, so the other is never used
    as a substitute.
    """
    selector = fib.table_selector
    if not catalog.exists(selector.stream_name):
        raise TableStreamMissingError("cannot find table stream %s" % selector.stream_name)
    logger.debug("using table stream %s", selector.stream_name)
    return selector


def field_region_specs(fib: WordFIB) -> List[FieldRegionSpec]:
    """Return the non-empty field PLC locations declared by the FIB."""
    specs = [
        FieldRegionSpec(
            slot.label, fib.uint32(slot.fc_offset), fib.uint32(slot.lcb_offset), slot.fib_name
        )
        for slot in FIELD_PLC_SLOTS
    ]
    if sum(spec.length for spec in specs) == 0:
        raise NoFieldDataError("no fields")
    return [spec for spec in specs if spec.length > 0]


def materialize_regions(specs: List[FieldRegionSpec], table_stream: bytes) -> List[FieldRegion]:
    """Slice each spec out of the table stream, dropping those out of bounds."""
    regions = []
    for spec in specs:
        if spec.end > len(table_stream):
            logger.debug(
                "skipping %s field table (%s): bytes %d..%d exceed table stream of %d bytes",
                spec.label,
                spec.fib_name,
                spec.offset,
                spec.end,
                len(table_stream),
            )
            continue
        regions.append(FieldRegion(spec.label, table_stream[spec.offset : spec.end]))
    return regions


def locate_field_regions(
    fib: WordFIB, catalog: StreamCatalog, selector: TableSelector
) -> List[FieldRegion]:
    specs = field_region_specs(fib)
    table_stream = catalog.open_stream(selector.stream_name).getvalue()
    return materialize_regions(specs, table_stream)
