"""
Failure log — Flat, append-only record of accounts that could not be
remediated. Each failure is written as two lines: the identifier, then
the error detail.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .models import FailureEntry

logger = logging.getLogger("pwd_expiry_remediation.failure_log")


class FailureLog:
    """Appends failure entries to a text file in the order they occur."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._entries: list[FailureEntry] = []

    def append(self, identifier: str, error_detail: str) -> FailureEntry:
        entry = FailureEntry(identifier=identifier, detail=_single_line(error_detail))
        with open(self.path, "a", encoding="utf-8") as fh:
            fh.write(f"{entry.identifier}\n{entry.detail}\n")
        self._entries.append(entry)
        logger.debug(f"Recorded failure for '{identifier}' in {self.path}")
        return entry

    @property
    def entries(self) -> tuple[FailureEntry, ...]:
        """Entries appended during this run, in order."""
        return tuple(self._entries)


def _single_line(text: str) -> str:
    return " ".join(str(text).split())
