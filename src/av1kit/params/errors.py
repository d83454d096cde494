"""Exceptions raised while resolving encode parameters."""
import reprlib


class ParameterError(Exception):
    """Base class for encode parameter resolution failures."""


class MetadataError(ParameterError):
    """A fallback cannot be derived because a prerequisite probe field is missing or invalid."""

    def __init__(self, field: str, value=None, attribute: str = None):
        self.field = field
        self.value = value
        self.attribute = attribute
        target = f" for {attribute}" if attribute else ""
        super().__init__(f"cannot derive fallback{target}: '{field}' is {reprlib.repr(value)}")


class InvalidAttribute(ParameterError, ValueError):
    """A color attribute outside the recognized set was requested."""

    def __init__(self, attribute):
        self.attribute = attribute
        super().__init__(f"unknown color attribute: {attribute!r}")
