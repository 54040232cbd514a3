"""docfields: report the field types used in Word 97-2003 binary documents."""

from .cfbf import StreamCatalog
from .errors import (
    ContainerError,
    DocFieldsError,
    FibTooShortError,
    MissingMainStreamError,
    NoFieldDataError,
    TableStreamMissingError,
)
from .fib import TableSelector, WordFIB
from .plex import PlexScan, scan_field_plex
from .reader import FieldInspector, RegionReport, inspect_document

__all__ = [
    "StreamCatalog",
    "WordFIB",
    "TableSelector",
    "PlexScan",
    "scan_field_plex",
    "FieldInspector",
    "RegionReport",
    "inspect_document",
    "DocFieldsError",
    "ContainerError",
    "MissingMainStreamError",
    "FibTooShortError",
    "TableStreamMissingError",
    "NoFieldDataError",
]
