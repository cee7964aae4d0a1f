"""Tests for the ldap3 client, run against ldap3's offline MOCK_SYNC strategy."""

from __future__ import annotations

import pytest
from ldap3 import MOCK_SYNC, NONE, Connection, Server
from ldap3.core.exceptions import LDAPUnknownAuthenticationMethodError

from pwd_expiry_remediation.config import DirectoryConfig
from pwd_expiry_remediation.directory import (
    AccountLookupError,
    DirectoryAttributeMutator,
    DirectoryClient,
    DirectoryConnectionError,
    DirectoryError,
    DirectoryWriteError,
)
from pwd_expiry_remediation.safety import ChangeGuardian, SafetyViolation

BASE_DN = "OU=Users,DC=corp,DC=local"
BIND_DN = f"CN=svc-remediate,{BASE_DN}"
JDOE_DN = f"CN=John Doe,{BASE_DN}"


@pytest.fixture()
def connection() -> Connection:
    server = Server("dc01.corp.local", get_info=NONE)
    conn = Connection(server, user=BIND_DN, password="s3cret", client_strategy=MOCK_SYNC)
    conn.strategy.add_entry(BIND_DN, {
        "objectClass": ["top", "person", "user"],
        "sAMAccountName": "svc-remediate",
        "userPassword": "s3cret",
    })
    conn.strategy.add_entry(JDOE_DN, {
        "objectClass": ["top", "person", "user"],
        "sAMAccountName": "jdoe",
        "displayName": "John Doe",
        "mail": "jdoe@corp.local",
        "pwdLastSet": 132000000000000000,
        "userAccountControl": 0x10240,
    })
    for dn, sam in ((f"CN=Dup One,{BASE_DN}", "dup"), (f"CN=Dup Two,{BASE_DN}", "dup")):
        conn.strategy.add_entry(dn, {"objectClass": ["top", "person", "user"], "sAMAccountName": sam})
    return conn


@pytest.fixture()
def config() -> DirectoryConfig:
    return DirectoryConfig(
        server="dc01.corp.local",
        base_dn=BASE_DN,
        bind_user=BIND_DN,
        bind_password="s3cret",
        user_filter="(sAMAccountName={identifier})",
    )


def test_find_account_reads_protocol_attributes(connection, config):
    with DirectoryClient(config, ChangeGuardian(), connection=connection) as client:
        record = client.find_account("jdoe")

    assert record.distinguished_name == JDOE_DN
    assert record.mail_address == "jdoe@corp.local"
    assert record.display_name == "John Doe"
    assert record.pwd_last_set == 132000000000000000
    assert record.password_never_expires is True
    assert record.cannot_change_password is True


def test_find_account_unknown_identifier(connection, config):
    with DirectoryClient(config, ChangeGuardian(), connection=connection) as client:
        with pytest.raises(AccountLookupError):
            client.find_account("ghost")


def test_find_account_ambiguous_identifier(connection, config):
    with DirectoryClient(config, ChangeGuardian(), connection=connection) as client:
        with pytest.raises(AccountLookupError, match="ambiguous"):
            client.find_account("dup")


def test_replace_on_missing_entry_raises_write_error(connection, config):
    with DirectoryClient(config, ChangeGuardian(), connection=connection) as client:
        with pytest.raises(DirectoryWriteError):
            client.replace(f"CN=Nobody,{BASE_DN}", "pwdLastSet", 0)


def test_replace_outside_scope_is_blocked_before_the_directory(connection, config):
    guardian = ChangeGuardian()
    with DirectoryClient(config, guardian, connection=connection) as client:
        with pytest.raises(SafetyViolation):
            client.replace(JDOE_DN, "mail", "attacker@example.com")
        assert client.find_account("jdoe").mail_address == "jdoe@corp.local"
    assert len(guardian.violations) == 1


def test_mutator_against_directory(connection, config):
    modifications = []
    original_modify = connection.modify

    def recording_modify(dn, changes, controls=None):
        modifications.append(changes)
        return original_modify(dn, changes, controls)

    connection.modify = recording_modify

    with DirectoryClient(config, ChangeGuardian(), connection=connection) as client:
        record = DirectoryAttributeMutator(client).mutate("jdoe")
        stats = client.get_stats()

    pwd_writes = [c["pwdLastSet"][0][1] for c in modifications if "pwdLastSet" in c]
    assert pwd_writes == [[0], [-1]]
    assert all(len(c) == 1 for c in modifications)
    assert record.pwd_last_set == -1
    assert record.user_account_control == 0x0200
    assert record.password_never_expires is False
    assert record.cannot_change_password is False
    assert stats == {"writes_committed": 3}


def test_refused_search_is_not_a_lookup_miss(connection, config):
    def refused_search(**kwargs):
        connection.result = {"result": 50, "description": "insufficientAccessRights", "message": ""}
        connection.response = []
        return False

    with DirectoryClient(config, ChangeGuardian(), connection=connection) as client:
        connection.search = refused_search
        with pytest.raises(DirectoryError, match="insufficientAccessRights") as exc_info:
            client.find_account("jdoe")
    assert not isinstance(exc_info.value, AccountLookupError)


def test_search_under_missing_base_is_a_lookup_miss(connection, config):
    config.base_dn = "OU=Gone,DC=corp,DC=local"
    with DirectoryClient(config, ChangeGuardian(), connection=connection) as client:
        with pytest.raises(AccountLookupError):
            client.find_account("jdoe")


def test_connection_setup_error_is_a_connection_error(config, monkeypatch):
    def broken_build(self):
        raise LDAPUnknownAuthenticationMethodError("unknown authentication method")

    monkeypatch.setattr(DirectoryClient, "_build_connection", broken_build)
    with pytest.raises(DirectoryConnectionError, match="unknown authentication method"):
        with DirectoryClient(config, ChangeGuardian()):
            pass
