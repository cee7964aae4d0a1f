from .guardian import ChangeGuardian, SafetyViolation

__all__ = ["ChangeGuardian", "SafetyViolation"]
