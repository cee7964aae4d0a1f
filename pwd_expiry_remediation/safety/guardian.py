"""
Change Guardian — Restricts directory writes to the remediation attributes.
Every modify request is validated before it reaches the directory, and
each accepted or rejected write is recorded for the run audit.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from ..config import WRITABLE_ATTRIBUTES

logger = logging.getLogger("pwd_expiry_remediation.safety")


class SafetyViolation(Exception):
    """Raised when a write outside the remediation scope is attempted."""
    pass


class ChangeGuardian:
    """
    Validates every outbound directory modification.
    Only single-valued replacements of WRITABLE_ATTRIBUTES are allowed.
    """

    def __init__(self, writable: frozenset[str] = WRITABLE_ATTRIBUTES):
        self.writable = writable
        self.violations: list[dict] = []
        self.writes_validated: int = 0
        self.started_at: str = datetime.now(timezone.utc).isoformat()

    def validate_change(self, dn: str, attribute: str, values: list[Any]) -> bool:
        """
        Validate that a modification stays inside the remediation scope.
        Returns True if allowed, raises SafetyViolation if not.
        """
        if attribute not in self.writable:
            self._record_violation(dn, attribute, "Attribute not writable")
            raise SafetyViolation(
                f"SAFETY VIOLATION: write to '{attribute}' on {dn} is not permitted"
            )

        if len(values) != 1:
            self._record_violation(dn, attribute, "Multi-valued write blocked")
            raise SafetyViolation(
                f"SAFETY VIOLATION: '{attribute}' on {dn} must be replaced with exactly one value"
            )

        self.writes_validated += 1
        return True

    def _record_violation(self, dn: str, attribute: str, reason: str):
        violation = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "dn": dn,
            "attribute": attribute,
            "reason": reason,
        }
        self.violations.append(violation)
        logger.critical(f"SAFETY VIOLATION: {reason} — {attribute} on {dn}")

    def get_audit_record(self) -> dict:
        """Return the write audit for this run."""
        return {
            "change_guardian": {
                "writable_attributes": sorted(self.writable),
                "started_at": self.started_at,
                "writes_validated": self.writes_validated,
                "violations_detected": len(self.violations),
                "violations": self.violations,
                "status": "CLEAN" if not self.violations else "VIOLATIONS_DETECTED",
            }
        }
