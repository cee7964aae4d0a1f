"""Directory error taxonomy."""

from __future__ import annotations

from typing import Any, Optional


class DirectoryError(Exception):
    """Base class for every directory-side failure."""
    pass


class DirectoryConnectionError(DirectoryError):
    """Raised when the directory cannot be reached or the bind is rejected."""
    pass


class DirectoryWriteError(DirectoryError):
    """Raised by the client when a single modify request is not committed."""

    def __init__(self, dn: str, attribute: str, message: str, result: Optional[dict[str, Any]] = None):
        self.dn = dn
        self.attribute = attribute
        self.result = result or {}
        super().__init__(f"Failed to write {attribute} on {dn}: {message}")


class AccountLookupError(DirectoryError, LookupError):
    """Raised when an identifier does not resolve to exactly one account."""

    def __init__(self, identifier: str, message: str = "account not found"):
        self.identifier = identifier
        super().__init__(f"Lookup failed for '{identifier}': {message}")


class AccountUpdateError(DirectoryError):
    """Raised when one step of the reset protocol could not be committed."""

    def __init__(self, identifier: str, step: str, message: str):
        self.identifier = identifier
        self.step = step
        super().__init__(f"Update failed for '{identifier}' at step '{step}': {message}")
