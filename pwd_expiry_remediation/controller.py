"""
Batch remediation controller — Drives each identifier through
mutation and notification, one at a time, in the order given.

Per-identifier states:

    PENDING -> MUTATING -> MUTATION_FAILED
                        -> MUTATED -> NOTIFYING -> NOTIFY_FAILED
                                                -> NOTIFIED

A failing account is recorded in the failure log and counted; it never
stops the batch.
"""

from __future__ import annotations

import logging
from typing import Iterable

from .directory import DirectoryAttributeMutator, DirectoryError
from .failure_log import FailureLog
from .models import (
    FailureEntry,
    NotificationSettings,
    ProcessingState,
    RemediationOutcome,
    RemediationSummary,
)
from .notify import NotificationDispatcher, NotificationError

logger = logging.getLogger("pwd_expiry_remediation.controller")

NOTIFY_FAILED_PREFIX = "Directory change applied, notification not delivered"


class BatchRemediationController:
    """Sequential, fault-isolating remediation over a batch of identifiers."""

    def __init__(
        self,
        mutator: DirectoryAttributeMutator,
        dispatcher: NotificationDispatcher,
        failure_log: FailureLog,
    ):
        self.mutator = mutator
        self.dispatcher = dispatcher
        self.failure_log = failure_log

    def run(self, identifiers: Iterable[str], settings: NotificationSettings) -> RemediationSummary:
        """
        Remediate every identifier in order and return the run summary.
        A single account is simply a one-element batch.
        """
        outcomes: list[RemediationOutcome] = []
        failures = []

        for identifier in identifiers:
            outcome = self.process(identifier, settings)
            outcomes.append(outcome)

            if outcome.failed:
                entry = self._record_failure(identifier, self._failure_detail(outcome))
                failures.append(entry)
                print(f"  ❌ {identifier}: {outcome.state.value} — {entry.detail}")
            else:
                print(f"  ✅ {identifier}: remediated and notified")

        summary = RemediationSummary(
            total=len(outcomes),
            failures=tuple(failures),
            outcomes=outcomes,
        )
        logger.info(
            f"Run complete: {summary.total} processed, {summary.failed} failed"
        )
        return summary

    def process(self, identifier: str, settings: NotificationSettings) -> RemediationOutcome:
        """Drive one identifier to a terminal state. Never raises for per-account errors."""
        self._transition(identifier, ProcessingState.PENDING, ProcessingState.MUTATING)
        try:
            record = self.mutator.mutate(identifier)
        except DirectoryError as e:
            self._transition(identifier, ProcessingState.MUTATING, ProcessingState.MUTATION_FAILED)
            logger.error(f"[{identifier}] {e}")
            return RemediationOutcome(identifier, ProcessingState.MUTATION_FAILED, error=e)
        except Exception as e:
            self._transition(identifier, ProcessingState.MUTATING, ProcessingState.MUTATION_FAILED)
            logger.exception(f"[{identifier}] Unexpected error during mutation")
            return RemediationOutcome(identifier, ProcessingState.MUTATION_FAILED, error=e)

        self._transition(identifier, ProcessingState.MUTATING, ProcessingState.MUTATED)
        self._transition(identifier, ProcessingState.MUTATED, ProcessingState.NOTIFYING)
        try:
            self.dispatcher.notify(record, settings)
        except NotificationError as e:
            self._transition(identifier, ProcessingState.NOTIFYING, ProcessingState.NOTIFY_FAILED)
            logger.error(f"[{identifier}] {e}")
            return RemediationOutcome(
                identifier, ProcessingState.NOTIFY_FAILED, record=record, error=e
            )
        except Exception as e:
            self._transition(identifier, ProcessingState.NOTIFYING, ProcessingState.NOTIFY_FAILED)
            logger.exception(f"[{identifier}] Unexpected error during notification")
            return RemediationOutcome(
                identifier, ProcessingState.NOTIFY_FAILED, record=record, error=e
            )

        self._transition(identifier, ProcessingState.NOTIFYING, ProcessingState.NOTIFIED)
        return RemediationOutcome(identifier, ProcessingState.NOTIFIED, record=record)

    def _record_failure(self, identifier: str, detail: str) -> FailureEntry:
        """Append to the failure log. The failure still counts if the file cannot be written."""
        try:
            return self.failure_log.append(identifier, detail)
        except Exception:
            logger.exception(f"[{identifier}] Could not write to failure log {self.failure_log.path}")
            return FailureEntry(identifier=identifier, detail=detail)

    @staticmethod
    def _transition(identifier: str, source: ProcessingState, target: ProcessingState):
        logger.debug(f"[{identifier}] {source.value} -> {target.value}")

    @staticmethod
    def _failure_detail(outcome: RemediationOutcome) -> str:
        error = f"{type(outcome.error).__name__}: {outcome.error}"
        if outcome.state is ProcessingState.NOTIFY_FAILED:
            return f"{NOTIFY_FAILED_PREFIX}. {error}"
        return error
