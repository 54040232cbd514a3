"""Facade that runs the steps needed to list the fields of a .doc file."""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .cfbf import Source, StreamCatalog
from .fib import (
    FieldRegion,
    TableSelector,
    WordFIB,
    locate_field_regions,
    read_fib,
    resolve_table_stream,
)
from .plex import scan_field_plex


@dataclass(frozen=True)
class RegionReport:
    label: str
    names: Tuple[str, ...]

    def format(self) -> str:
        return "%s fields: %s" % (self.label, ", ".join(self.names))


class FieldInspector:
    """High-level API reporting field types per document part."""

    def __init__(self, source: Source):
        self._catalog = StreamCatalog(source)
        self._fib: Optional[WordFIB] = None

    def read_fib(self) -> WordFIB:
        if self._fib is None:
            self._fib = read_fib(self._catalog)
        return self._fib

    def table_stream(self) -> TableSelector:
        return resolve_table_stream(self.read_fib(), self._catalog)

    def regions(self) -> List[FieldRegion]:
        selector = self.table_stream()
        return locate_field_regions(self.read_fib(), self._catalog, selector)

    def scan(self) -> List[RegionReport]:
        return [
            RegionReport(region.label, scan_field_plex(region.data).names)
            for region in self.regions()
        ]

    def close(self) -> None:
        self._catalog.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()


def inspect_document(source: Source) -> List[RegionReport]:
    with FieldInspector(source) as inspector:
        return inspector.scan()
