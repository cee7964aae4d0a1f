"""
Directory attribute mutator — The per-account password policy reset.

The reset runs as three separate commits:

  1. pwdLastSet = 0    (pivot)
  2. pwdLastSet = -1   (final)
  3. userAccountControl with DONT_EXPIRE_PASSWORD and PASSWD_CANT_CHANGE cleared

Writing -1 straight from the policy-disabled state can leave the account
locked out immediately, so the 0 pivot must be committed first. The two
pwdLastSet writes are never merged into one modify request.

A failed commit stops the protocol for that account. Steps already
committed stay committed.
"""

from __future__ import annotations

import logging

from ..config import (
    PWD_LAST_SET_FINAL,
    PWD_LAST_SET_PIVOT,
    UAC_DONT_EXPIRE_PASSWORD,
    UAC_PASSWD_CANT_CHANGE,
)
from ..models import AccountRecord
from .client import DirectoryClient
from .exceptions import AccountUpdateError, DirectoryWriteError

logger = logging.getLogger("pwd_expiry_remediation.directory")

STEP_PIVOT = "pwdLastSet=0"
STEP_FINAL = "pwdLastSet=-1"
STEP_FLAGS = "clear-policy-flags"
STEP_VERIFY = "verify"


class DirectoryAttributeMutator:
    """Applies the password policy reset to one account at a time."""

    def __init__(self, client: DirectoryClient):
        self.client = client

    def mutate(self, identifier: str) -> AccountRecord:
        """
        Reset the password policy flags of one account.

        Returns the re-read account record. Raises AccountLookupError if the
        identifier does not resolve and AccountUpdateError if any commit fails.
        """
        record = self.client.find_account(identifier)
        dn = record.distinguished_name
        logger.info(
            f"[{identifier}] Resolved to {dn} "
            f"(never expires: {record.password_never_expires}, "
            f"cannot change: {record.cannot_change_password})"
        )

        self._commit(identifier, STEP_PIVOT, dn, "pwdLastSet", PWD_LAST_SET_PIVOT)
        self._commit(identifier, STEP_FINAL, dn, "pwdLastSet", PWD_LAST_SET_FINAL)

        cleared_uac = record.user_account_control & ~(
            UAC_DONT_EXPIRE_PASSWORD | UAC_PASSWD_CANT_CHANGE
        )
        self._commit(identifier, STEP_FLAGS, dn, "userAccountControl", cleared_uac)

        updated = self.client.find_account(identifier)
        if updated.password_never_expires or updated.cannot_change_password:
            raise AccountUpdateError(
                identifier, STEP_VERIFY,
                f"flags still set after commit (userAccountControl={updated.user_account_control:#x})",
            )
        return updated

    def _commit(self, identifier: str, step: str, dn: str, attribute: str, value: int):
        try:
            self.client.replace(dn, attribute, value)
        except DirectoryWriteError as e:
            raise AccountUpdateError(identifier, step, str(e)) from e
        logger.debug(f"[{identifier}] Step {step} committed")
