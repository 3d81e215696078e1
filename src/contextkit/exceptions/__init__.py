"""
Custom exceptions for the ContextKit system.
"""


class ContextKitError(Exception):
    """
    Base exception for ContextKit system.
    All custom exceptions in the system should inherit from this.
    """


class ResourceNotFoundError(ContextKitError):
    """Raised when the context document cannot be located."""


class ParseFailureError(ContextKitError):
    """
    Raised when a context document cannot be parsed.

    Covers malformed XML as well as structurally invalid documents.
    A parse failure always discards the whole document.
    """


class UnexpectedElementNameError(ParseFailureError):
    """Raised when a document contains an element other than the root wrapper or a context."""

    def __init__(self, element_name: str) -> None:
        self.element_name = element_name
        super().__init__(f"Unexpected element name '{element_name}'")


class ValidationFailureError(ContextKitError):
    """
    Raised when a caller-supplied value is missing, malformed or out of range.
    """


class InvalidItemTypeError(ValidationFailureError):
    """Raised when a binary item carries a value type outside the known range."""


class ContextNotFoundError(ContextKitError):
    """Raised when an identifier path does not resolve to any context."""


class NoActiveContextError(ContextKitError):
    """Raised when an operation needs an active context but none was begun."""


class ActivityNotStartedError(ContextKitError):
    """Raised when the active context has no activity, or its activity is not started."""


class StoreError(ContextKitError):
    """
    Raised when an underlying store operation fails.

    Wraps database and I/O errors so callers only deal with ContextKit exceptions.
    """
