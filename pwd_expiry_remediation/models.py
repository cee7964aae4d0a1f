"""
Remediation data models — Typed values passed between the mutator,
dispatcher, controller and failure log.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .config import (
    DEFAULT_SMTP_PORT,
    DEFAULT_SMTP_TIMEOUT,
    UAC_DONT_EXPIRE_PASSWORD,
    UAC_PASSWD_CANT_CHANGE,
)


@dataclass(frozen=True)
class AccountRecord:
    """The attributes of one directory account the reset protocol needs."""
    identifier: str
    distinguished_name: str
    mail_address: str = ""
    display_name: str = ""
    pwd_last_set: int = 0
    user_account_control: int = 0

    @property
    def password_never_expires(self) -> bool:
        return bool(self.user_account_control & UAC_DONT_EXPIRE_PASSWORD)

    @property
    def cannot_change_password(self) -> bool:
        return bool(self.user_account_control & UAC_PASSWD_CANT_CHANGE)


class ProcessingState(str, Enum):
    """Per-identifier processing states."""
    PENDING = "pending"
    MUTATING = "mutating"
    MUTATION_FAILED = "mutation_failed"
    MUTATED = "mutated"
    NOTIFYING = "notifying"
    NOTIFY_FAILED = "notify_failed"
    NOTIFIED = "notified"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({
    ProcessingState.MUTATION_FAILED,
    ProcessingState.NOTIFY_FAILED,
    ProcessingState.NOTIFIED,
})


@dataclass(frozen=True)
class NotificationSettings:
    """Where and what to send once an account has been remediated."""
    smtp_server: str
    sender: str
    subject: str
    body_template: str
    smtp_port: int = DEFAULT_SMTP_PORT
    timeout: float = DEFAULT_SMTP_TIMEOUT


@dataclass(frozen=True)
class NotificationRequest:
    """A fully rendered message, ready for the SMTP transport."""
    recipient: str
    sender: str
    bcc: str
    subject: str
    body: str


@dataclass(frozen=True)
class FailureEntry:
    """One failed identifier and what went wrong."""
    identifier: str
    detail: str


@dataclass(frozen=True)
class RemediationOutcome:
    """Terminal result for a single identifier."""
    identifier: str
    state: ProcessingState
    record: Optional[AccountRecord] = None
    error: Optional[Exception] = None

    def __post_init__(self):
        if not self.state.is_terminal:
            raise ValueError(f"Outcome state must be terminal, got {self.state.value}")

    @property
    def failed(self) -> bool:
        return self.state is not ProcessingState.NOTIFIED

    @property
    def directory_changed(self) -> bool:
        return self.state in (ProcessingState.NOTIFIED, ProcessingState.NOTIFY_FAILED)


@dataclass
class RemediationSummary:
    """Aggregate result of a remediation run."""
    total: int = 0
    failures: tuple[FailureEntry, ...] = ()
    outcomes: list[RemediationOutcome] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def succeeded(self) -> int:
        return self.total - self.failed

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failures": [
                {"identifier": f.identifier, "detail": f.detail}
                for f in self.failures
            ],
            "outcomes": [
                {"identifier": o.identifier, "state": o.state.value}
                for o in self.outcomes
            ],
        }
