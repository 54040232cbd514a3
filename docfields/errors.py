"""Errors that abort the inspection of a single document."""


class DocFieldsError(Exception):
    """Base class for failures reported once per input document."""


class ContainerError(DocFieldsError):
    """Raised when the input is not a readable OLE2 compound file."""


class MissingMainStreamError(DocFieldsError):
    """Raised when the container has no WordDocument stream."""


class FibTooShortError(DocFieldsError):
    """Raised when WordDocument is too short to hold the FIB."""


class TableStreamMissingError(DocFieldsError):
    """Raised when the table stream named by the FIB is absent."""


class NoFieldDataError(DocFieldsError):
    """Raised when the FIB declares no field tables for any document part."""
