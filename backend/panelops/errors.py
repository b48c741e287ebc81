"""
Error taxonomy for the resolution engine.

A missing match is not an error: parsers return None and the pipeline
returns an Unresolved result. Only structural and storage problems raise.
"""


class OperationsError(Exception):
    """Base class for all resolution engine failures."""


class ImmutableDefaultError(OperationsError):
    """Attempted mutation of a system-scope entry, type or dialect."""


class InvalidNotationShape(OperationsError, ValueError):
    """Input fails basic structural sanity (empty code, non-positive dimension)."""


class StorageFailure(OperationsError):
    """The backing store failed; raised unmodified to the caller."""


class EntryNotFound(OperationsError, LookupError):
    """No entry or type with that id is visible to the organization."""


class DuplicateCodeError(OperationsError):
    """An entry with the same code already exists in that organization and category."""
