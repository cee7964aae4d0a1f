"""
Remediation targets — Single account or account list, resolved once at the
CLI boundary into the ordered identifier sequence the controller consumes.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Union

from .config import ConfigError


@dataclass(frozen=True)
class SingleAccount:
    identifier: str

    def identifiers(self) -> list[str]:
        return [self.identifier]


@dataclass(frozen=True)
class AccountList:
    source: Path
    entries: tuple[str, ...]

    def identifiers(self) -> list[str]:
        return list(self.entries)


Mode = Union[SingleAccount, AccountList]


def load_identifier_file(path: str | Path) -> AccountList:
    """
    Read one identifier per line. Surrounding whitespace is stripped;
    blank lines and lines starting with '#' are skipped.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as e:
        raise ConfigError(f"Cannot read user list {path}: {e}")

    entries = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        entries.append(line)
    return AccountList(source=path, entries=tuple(entries))


def resolve_mode(identity: str | None, user_list: str | Path | None) -> Mode:
    """Turn the mutually exclusive CLI inputs into a Mode."""
    if identity and user_list:
        raise ConfigError("Specify either a single identity or a user list, not both")
    if identity:
        identity = identity.strip()
        if not identity:
            raise ConfigError("Identity must not be blank")
        return SingleAccount(identity)
    if user_list:
        return load_identifier_file(user_list)
    raise ConfigError("Either a single identity or a user list is required")
