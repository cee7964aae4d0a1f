from __future__ import annotations

import smtplib

import pytest

from pwd_expiry_remediation.config import DEFAULT_BODY_TEMPLATE, DEFAULT_SUBJECT
from pwd_expiry_remediation.models import NotificationSettings

from fakes import FakeSMTP


@pytest.fixture()
def smtp():
    FakeSMTP.reset()
    yield FakeSMTP
    FakeSMTP.reset()


@pytest.fixture()
def unreachable_smtp(smtp):
    smtp.error = ConnectionRefusedError(111, "Connection refused")
    return smtp


@pytest.fixture()
def rejecting_smtp(smtp):
    smtp.error = smtplib.SMTPServerDisconnected("Connection unexpectedly closed")
    return smtp


@pytest.fixture()
def settings() -> NotificationSettings:
    return NotificationSettings(
        smtp_server="smtp.corp.local",
        sender="it-security@corp.local",
        subject=DEFAULT_SUBJECT,
        body_template=DEFAULT_BODY_TEMPLATE,
    )


@pytest.fixture()
def refusing_smtp(smtp):
    smtp.refused = {"jdoe@corp.local": (550, b"5.1.1 User unknown")}
    return smtp
