from __future__ import annotations

import pytest

from pwd_expiry_remediation.safety import ChangeGuardian, SafetyViolation

DN = "CN=jdoe,OU=Users,DC=corp,DC=local"


def test_remediation_attributes_are_allowed():
    guardian = ChangeGuardian()
    assert guardian.validate_change(DN, "pwdLastSet", [0])
    assert guardian.validate_change(DN, "userAccountControl", [512])
    assert guardian.writes_validated == 2
    assert guardian.get_audit_record()["change_guardian"]["status"] == "CLEAN"


@pytest.mark.parametrize("attribute", ["mail", "memberOf", "unicodePwd", "pwdlastset"])
def test_other_attributes_are_blocked(attribute):
    guardian = ChangeGuardian()
    with pytest.raises(SafetyViolation):
        guardian.validate_change(DN, attribute, ["x"])
    audit = guardian.get_audit_record()["change_guardian"]
    assert audit["violations_detected"] == 1
    assert audit["status"] == "VIOLATIONS_DETECTED"


def test_multi_valued_write_is_blocked():
    with pytest.raises(SafetyViolation):
        ChangeGuardian().validate_change(DN, "pwdLastSet", [0, -1])
