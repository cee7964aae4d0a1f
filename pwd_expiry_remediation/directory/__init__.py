from .exceptions import (
    AccountLookupError,
    AccountUpdateError,
    DirectoryConnectionError,
    DirectoryError,
    DirectoryWriteError,
)
from .client import DirectoryClient
from .mutator import DirectoryAttributeMutator

__all__ = [
    "AccountLookupError",
    "AccountUpdateError",
    "DirectoryConnectionError",
    "DirectoryError",
    "DirectoryWriteError",
    "DirectoryClient",
    "DirectoryAttributeMutator",
]
