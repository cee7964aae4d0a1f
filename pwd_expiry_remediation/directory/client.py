"""
LDAP directory client built on ldap3.
Resolves account identifiers and commits single-attribute replacements,
with every write validated by the ChangeGuardian first.
"""

from __future__ import annotations

import getpass
import logging
import os
from typing import Any, Optional

from ldap3 import ANONYMOUS, MODIFY_REPLACE, NONE, NTLM, SIMPLE, SUBTREE, Connection, Server
from ldap3.core.exceptions import LDAPException
from ldap3.utils.conv import escape_filter_chars

from ..config import ACCOUNT_ATTRIBUTES, DirectoryConfig
from ..models import AccountRecord
from ..safety.guardian import ChangeGuardian
from .exceptions import (
    AccountLookupError,
    DirectoryConnectionError,
    DirectoryError,
    DirectoryWriteError,
)

logger = logging.getLogger("pwd_expiry_remediation.directory")

PASSWORD_ENV_VAR = "PWD_REMEDIATION_BIND_PASSWORD"

# success, noSuchObject: an empty search, not an error
SEARCH_MISS_CODES = (0, 32)


def _raw_value(raw_attributes: dict[str, list[bytes]], name: str) -> Optional[bytes]:
    """Return the first raw value of an attribute, matching the name case-insensitively."""
    for key, values in raw_attributes.items():
        if key.lower() == name.lower() and values:
            return values[0]
    return None


def _raw_str(raw_attributes: dict[str, list[bytes]], name: str) -> str:
    value = _raw_value(raw_attributes, name)
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _raw_int(raw_attributes: dict[str, list[bytes]], name: str) -> int:
    value = _raw_str(raw_attributes, name)
    return int(value) if value else 0


class DirectoryClient:
    """
    Synchronous ldap3 client for Active Directory-compatible directories.

    Use as a context manager: the connection is bound on enter and unbound
    on exit. A pre-built connection may be injected (e.g. an ldap3
    MOCK_SYNC connection).
    """

    def __init__(
        self,
        config: DirectoryConfig,
        guardian: ChangeGuardian,
        connection: Optional[Connection] = None,
    ):
        self.config = config
        self.guardian = guardian
        self._conn = connection
        self._write_count = 0

    def __enter__(self) -> "DirectoryClient":
        try:
            if self._conn is None:
                self._conn = self._build_connection()
            if not self._conn.bound and not self._conn.bind():
                raise DirectoryConnectionError(
                    f"Bind rejected by {self.config.server}: "
                    f"{self._conn.result.get('description', 'unknown error')}"
                )
        except LDAPException as e:
            raise DirectoryConnectionError(
                f"Could not connect to {self.config.server}: {e}"
            ) from e
        logger.info(f"Bound to directory as '{self.config.bind_user or 'anonymous'}'.")
        return self

    def __exit__(self, *args):
        if self._conn is not None and self._conn.bound:
            try:
                self._conn.unbind()
            except LDAPException as e:
                logger.warning(f"Unbind failed: {e}")

    def _build_connection(self) -> Connection:
        """Build an unbound ldap3 connection from configuration."""
        cfg = self.config
        password = cfg.bind_password or os.environ.get(PASSWORD_ENV_VAR, "")
        if cfg.bind_user and not password:
            password = getpass.getpass(f"Enter the password for {cfg.bind_user}: ")

        server = Server(
            cfg.server,
            port=cfg.effective_port,
            use_ssl=cfg.use_ssl,
            get_info=NONE,
        )
        logger.info(f"Connecting to {cfg.server}:{cfg.effective_port} (SSL: {cfg.use_ssl})")
        return Connection(
            server,
            user=cfg.bind_user or None,
            password=password or None,
            authentication=self._authentication_method(),
            receive_timeout=cfg.receive_timeout,
            version=3,
        )

    def _authentication_method(self) -> str:
        if not self.config.bind_user:
            return ANONYMOUS
        return NTLM if "\\" in self.config.bind_user else SIMPLE

    @property
    def connection(self) -> Connection:
        if self._conn is None:
            raise RuntimeError("DirectoryClient not initialized. Use 'with' context.")
        return self._conn

    def find_account(self, identifier: str) -> AccountRecord:
        """
        Resolve an identifier to exactly one account.
        Raises AccountLookupError when nothing (or more than one entry) matches,
        and DirectoryError when the directory refuses the search itself.
        """
        search_filter = self.config.user_filter.format(
            identifier=escape_filter_chars(identifier)
        )
        logger.debug(f"Searching {self.config.base_dn} with {search_filter}")

        try:
            found = self.connection.search(
                search_base=self.config.base_dn,
                search_filter=search_filter,
                search_scope=SUBTREE,
                attributes=ACCOUNT_ATTRIBUTES,
            )
        except LDAPException as e:
            raise DirectoryError(f"Search for '{identifier}' failed: {e}") from e

        result = self.connection.result or {}
        if not found and result.get("result", 0) not in SEARCH_MISS_CODES:
            message = result.get("description") or result.get("message") or "search rejected"
            raise DirectoryError(
                f"Search for '{identifier}' failed: {message} (result {result.get('result')})"
            )

        entries = [
            e for e in (self.connection.response or [])
            if e.get("type") == "searchResEntry"
        ]
        if not entries:
            raise AccountLookupError(identifier)
        if len(entries) > 1:
            raise AccountLookupError(
                identifier, f"identifier is ambiguous ({len(entries)} matches)"
            )

        return self._to_record(identifier, entries[0])

    @staticmethod
    def _to_record(identifier: str, entry: dict[str, Any]) -> AccountRecord:
        raw = entry.get("raw_attributes", {})
        return AccountRecord(
            identifier=identifier,
            distinguished_name=entry["dn"],
            mail_address=_raw_str(raw, "mail"),
            display_name=_raw_str(raw, "displayName") or _raw_str(raw, "sAMAccountName"),
            pwd_last_set=_raw_int(raw, "pwdLastSet"),
            user_account_control=_raw_int(raw, "userAccountControl"),
        )

    def replace(self, dn: str, attribute: str, value: Any) -> None:
        """
        Replace one attribute with one value and commit it.
        Raises DirectoryWriteError if the directory does not accept the change.
        """
        self.guardian.validate_change(dn, attribute, [value])

        try:
            committed = self.connection.modify(
                dn, {attribute: [(MODIFY_REPLACE, [value])]}
            )
        except LDAPException as e:
            raise DirectoryWriteError(dn, attribute, str(e)) from e

        result = self.connection.result or {}
        if not committed or result.get("result", 0) != 0:
            message = result.get("message") or result.get("description") or "modify rejected"
            raise DirectoryWriteError(dn, attribute, message, result)

        self._write_count += 1
        logger.debug(f"Committed {attribute}={value} on {dn}")

    def get_stats(self) -> dict:
        """Return client statistics."""
        return {"writes_committed": self._write_count}
