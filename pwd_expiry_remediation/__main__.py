"""
Password Expiry Remediation — Command-line entry point

Usage:
    python -m pwd_expiry_remediation --identity jdoe \\
        --server dc01.corp.local --base-dn "DC=corp,DC=local" --bind-user "CORP\\svc-remediate" \\
        --smtp-server smtp.corp.local --sender it-security@corp.local

    python -m pwd_expiry_remediation --user-list users.txt --config remediation.json

Exit status: 0 if every account was remediated and notified, 1 if any
account failed, 2 on a configuration or directory connection error.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from jinja2 import TemplateError

from . import __version__
from .config import ConfigError, EngineConfig
from .controller import BatchRemediationController
from .directory import DirectoryAttributeMutator, DirectoryClient, DirectoryConnectionError
from .failure_log import FailureLog
from .models import NotificationSettings
from .notify import NotificationDispatcher, compile_template
from .safety.guardian import ChangeGuardian
from .targets import Mode, SingleAccount, resolve_mode

logger = logging.getLogger("pwd_expiry_remediation")

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_FATAL = 2


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="pwd_expiry_remediation",
        description="Remove 'password never expires' from domain accounts and notify their owners",
    )

    # --- Targets: exactly one of Single / Multi ---
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--identity", "-i", help="Single account identifier (sAMAccountName)")
    target.add_argument("--user-list", "-l", type=Path, help="File with one account identifier per line")

    # --- Notification ---
    parser.add_argument("--smtp-server", help="SMTP server address (required)")
    parser.add_argument("--smtp-port", type=int, default=None, help="SMTP port (default: 25)")
    parser.add_argument("--sender", help="Sender address, also blind-copied on every message (required)")
    parser.add_argument("--subject", default=None, help="Message subject (default: 'IMPORTANT: Password Expiry')")
    body = parser.add_mutually_exclusive_group()
    body.add_argument("--body", default=None, help="Message body template, using {{ displayName }}")
    body.add_argument("--body-file", type=Path, default=None, help="Read the message body template from a file")

    # --- Directory ---
    parser.add_argument("--server", help="Directory server host name")
    parser.add_argument("--port", type=int, default=None, help="Directory port (default: 389, or 636 with --ldaps)")
    parser.add_argument("--ldaps", action="store_true", help="Connect with LDAP over SSL")
    parser.add_argument("--base-dn", help="Search base for account lookups")
    parser.add_argument("--bind-user", help="Bind account (DOMAIN\\user for NTLM, otherwise simple bind)")
    parser.add_argument("--user-filter", help="LDAP filter with an {identifier} placeholder")

    # --- Run options ---
    parser.add_argument("--config", "-c", type=Path, help="Path to JSON configuration file")
    parser.add_argument("--failure-log", type=Path, default=None,
                        help="Failure log path (default: ./FailedAccountChanges.txt)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> EngineConfig:
    """Build configuration from an optional config file plus CLI overrides."""
    config = EngineConfig.from_file(args.config) if args.config else EngineConfig()

    overrides = [
        (config.notification, "smtp_server", args.smtp_server),
        (config.notification, "smtp_port", args.smtp_port),
        (config.notification, "sender", args.sender),
        (config.notification, "subject", args.subject),
        (config.notification, "body_template", args.body),
        (config.directory, "server", args.server),
        (config.directory, "port", args.port),
        (config.directory, "base_dn", args.base_dn),
        (config.directory, "bind_user", args.bind_user),
        (config.directory, "user_filter", args.user_filter),
    ]
    for section, name, value in overrides:
        if value is not None:
            setattr(section, name, value)

    if args.body_file:
        try:
            config.notification.body_template = args.body_file.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read body template {args.body_file}: {e}")
    if args.ldaps:
        config.directory.use_ssl = True
    if args.failure_log:
        config.failure_log = str(args.failure_log)
    if args.verbose:
        config.verbose = True

    config.validate()
    try:
        compile_template(config.notification.body_template)
    except TemplateError as e:
        raise ConfigError(f"Invalid message body template: {e}")
    return config


def notification_settings(config: EngineConfig) -> NotificationSettings:
    n = config.notification
    return NotificationSettings(
        smtp_server=n.smtp_server,
        sender=n.sender,
        subject=n.subject,
        body_template=n.body_template,
        smtp_port=n.smtp_port,
        timeout=n.timeout,
    )


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    # ldap3 is chatty at DEBUG
    logging.getLogger("ldap3").setLevel(logging.WARNING)


def run(config: EngineConfig, mode: Mode, client: DirectoryClient,
        dispatcher: Optional[NotificationDispatcher] = None) -> int:
    """Run a remediation pass against an open directory client and return the exit status."""
    identifiers = mode.identifiers()
    label = "single account" if isinstance(mode, SingleAccount) else f"{len(identifiers)} accounts from {mode.source}"

    print("\n" + "=" * 70)
    print(f" REMEDIATION: {label}")
    print("=" * 70 + "\n")

    dispatcher = dispatcher or NotificationDispatcher()
    controller = BatchRemediationController(
        mutator=DirectoryAttributeMutator(client),
        dispatcher=dispatcher,
        failure_log=FailureLog(config.failure_log),
    )
    summary = controller.run(identifiers, notification_settings(config))

    print("\n" + "=" * 70)
    print(" RUN COMPLETE")
    print("=" * 70)
    audit = client.guardian.get_audit_record()["change_guardian"]
    print(f"\n  Processed:        {summary.total}")
    print(f"  Succeeded:        {summary.succeeded}")
    print(f"  Failed:           {summary.failed}")
    print(f"  Directory writes: {client.get_stats()['writes_committed']} committed")
    print(f"  Messages sent:    {dispatcher.get_stats()['messages_sent']}")
    print(f"  Change guardian:  {audit['status']} ({audit['violations_detected']} violations)")
    for violation in audit["violations"]:
        print(f"      ⚠  {violation['attribute']} on {violation['dn']}: {violation['reason']}")
    if summary.failed:
        print(f"  Failures logged to: {Path(config.failure_log).resolve()}")
    print()

    logger.debug(json.dumps({"summary": summary.to_dict(), "change_guardian": audit}))

    return EXIT_FAILURES if summary.failed else EXIT_OK


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)

    try:
        config = build_config(args)
        mode = resolve_mode(args.identity, args.user_list)
    except ConfigError as e:
        print(f"\n❌ Configuration error: {e}", file=sys.stderr)
        return EXIT_FATAL

    configure_logging(config.verbose)

    print("=" * 70)
    print(f" Password Expiry Remediation v{__version__}")
    print(f" Directory: {config.directory.server} ({config.directory.base_dn})")
    print(f" SMTP:      {config.notification.smtp_server} as {config.notification.sender}")
    print("=" * 70)

    guardian = ChangeGuardian()
    try:
        with DirectoryClient(config.directory, guardian) as client:
            return run(config, mode, client)
    except DirectoryConnectionError as e:
        print(f"\n❌ {e}", file=sys.stderr)
        return EXIT_FATAL


if __name__ == "__main__":
    sys.exit(main())
