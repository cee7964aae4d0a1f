"""
Configuration module for the Password Expiry Remediation tool.
Defines directory and mail settings, protocol constants, and defaults.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


class ConfigError(Exception):
    """Raised when a mandatory setting is missing or malformed."""
    pass


# ─── userAccountControl Flags ────────────────────────────────────────────────

UAC_PASSWD_CANT_CHANGE = 0x0040
UAC_DONT_EXPIRE_PASSWORD = 0x10000

# pwdLastSet pivot sequence. 0 must be committed before -1.
PWD_LAST_SET_PIVOT = 0
PWD_LAST_SET_FINAL = -1

# Only these attributes may ever be written by a remediation run
WRITABLE_ATTRIBUTES = frozenset({"pwdLastSet", "userAccountControl"})


# ─── Directory Settings ─────────────────────────────────────────────────────

DEFAULT_LDAP_PORT = 389
DEFAULT_LDAPS_PORT = 636
DEFAULT_RECEIVE_TIMEOUT = 30      # Seconds, passed through to ldap3

DEFAULT_USER_FILTER = (
    "(&(objectCategory=person)(objectClass=user)(sAMAccountName={identifier}))"
)

ACCOUNT_ATTRIBUTES = [
    "sAMAccountName",
    "displayName",
    "mail",
    "pwdLastSet",
    "userAccountControl",
]


@dataclass
class DirectoryConfig:
    """LDAP connection and lookup configuration."""
    server: str = ""
    base_dn: str = ""
    bind_user: str = ""               # DOMAIN\\user for NTLM, DN or UPN for simple bind
    bind_password: str = ""           # Will be prompted if empty
    port: Optional[int] = None
    use_ssl: bool = False
    user_filter: str = DEFAULT_USER_FILTER
    receive_timeout: int = DEFAULT_RECEIVE_TIMEOUT

    @property
    def effective_port(self) -> int:
        if self.port:
            return self.port
        return DEFAULT_LDAPS_PORT if self.use_ssl else DEFAULT_LDAP_PORT


# ─── Notification Settings ──────────────────────────────────────────────────

DEFAULT_SMTP_PORT = 25
DEFAULT_SMTP_TIMEOUT = 30.0
DEFAULT_SUBJECT = "IMPORTANT: Password Expiry"

DEFAULT_BODY_TEMPLATE = """\
<p>Dear {{ displayName }},</p>
<p>Your domain account was configured so that its password never expires.
This is no longer permitted under the company password policy, and the
setting has been removed from your account.</p>
<p>From now on your password will expire according to the standard policy
and you will be prompted to change it when it does. You are also now able
to change your password yourself at any time.</p>
<p>If you have any questions, please contact the IT Service Desk.</p>
<p>Regards,<br>IT Security</p>
"""


@dataclass
class NotificationConfig:
    """SMTP endpoint and message settings."""
    smtp_server: str = ""
    smtp_port: int = DEFAULT_SMTP_PORT
    sender: str = ""
    subject: str = DEFAULT_SUBJECT
    body_template: str = DEFAULT_BODY_TEMPLATE
    timeout: float = DEFAULT_SMTP_TIMEOUT


# ─── Output Configuration ───────────────────────────────────────────────────

DEFAULT_FAILURE_LOG = "FailedAccountChanges.txt"


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class EngineConfig:
    """Top-level configuration for a remediation run."""
    directory: DirectoryConfig = field(default_factory=DirectoryConfig)
    notification: NotificationConfig = field(default_factory=NotificationConfig)
    failure_log: str = DEFAULT_FAILURE_LOG
    verbose: bool = False

    @classmethod
    def from_file(cls, path: str | Path) -> "EngineConfig":
        """Load configuration from a JSON file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {path}")
        except json.JSONDecodeError as e:
            raise ConfigError(f"Config file {path} is not valid JSON: {e}")

        config = cls()
        for section, target in (
            ("directory", config.directory),
            ("notification", config.notification),
        ):
            for k, v in data.get(section, {}).items():
                if not hasattr(target, k):
                    raise ConfigError(f"Unknown {section} setting: {k}")
                setattr(target, k, v)
        config.failure_log = data.get("failure_log", DEFAULT_FAILURE_LOG)
        config.verbose = data.get("verbose", False)
        return config

    def validate(self) -> None:
        """Raise ConfigError if any mandatory setting is missing."""
        missing = []
        if not self.notification.smtp_server:
            missing.append("SMTP server address")
        if not self.notification.sender:
            missing.append("sender address")
        if not self.directory.server:
            missing.append("directory server")
        if not self.directory.base_dn:
            missing.append("directory base DN")
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")
        if "{identifier}" not in self.directory.user_filter:
            raise ConfigError("User filter must contain an {identifier} placeholder")
