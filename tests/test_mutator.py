"""Tests for the per-account reset protocol."""

from __future__ import annotations

import pytest

from pwd_expiry_remediation.directory import (
    AccountLookupError,
    AccountUpdateError,
    DirectoryAttributeMutator,
)

from fakes import NORMAL_ACCOUNT, FakeDirectoryClient, make_record


def test_mutate_pivots_pwd_last_set_through_zero():
    client = FakeDirectoryClient([make_record("jdoe")])
    DirectoryAttributeMutator(client).mutate("jdoe")
    assert client.pwd_last_set_writes("jdoe") == [0, -1]


def test_mutate_writes_in_protocol_order():
    client = FakeDirectoryClient([make_record("jdoe")])
    DirectoryAttributeMutator(client).mutate("jdoe")
    assert client.writes == [
        ("jdoe", "pwdLastSet", 0),
        ("jdoe", "pwdLastSet", -1),
        ("jdoe", "userAccountControl", NORMAL_ACCOUNT),
    ]


def test_mutate_clears_both_policy_flags():
    client = FakeDirectoryClient([make_record("jdoe")])
    record = DirectoryAttributeMutator(client).mutate("jdoe")
    assert record.password_never_expires is False
    assert record.cannot_change_password is False
    assert record.mail_address == "jdoe@corp.local"
    assert record.display_name == "Jdoe"


def test_mutate_keeps_unrelated_uac_bits():
    disabled_and_policy = 0x0002 | NORMAL_ACCOUNT | 0x10000
    client = FakeDirectoryClient([make_record("jdoe", uac=disabled_and_policy)])
    record = DirectoryAttributeMutator(client).mutate("jdoe")
    assert record.user_account_control == 0x0002 | NORMAL_ACCOUNT


def test_mutate_unknown_identifier_raises_lookup_error():
    client = FakeDirectoryClient([make_record("jdoe")])
    with pytest.raises(AccountLookupError) as exc_info:
        DirectoryAttributeMutator(client).mutate("ghost")
    assert isinstance(exc_info.value, LookupError)
    assert client.writes == []


def test_failed_pivot_stops_before_final_write():
    client = FakeDirectoryClient(
        [make_record("jdoe")], fail_on={("jdoe", "pwdLastSet", 0)}
    )
    with pytest.raises(AccountUpdateError) as exc_info:
        DirectoryAttributeMutator(client).mutate("jdoe")
    assert exc_info.value.step == "pwdLastSet=0"
    assert client.writes == []


def test_failed_flag_write_leaves_committed_steps_in_place():
    client = FakeDirectoryClient(
        [make_record("jdoe")], fail_on={("jdoe", "userAccountControl", NORMAL_ACCOUNT)}
    )
    with pytest.raises(AccountUpdateError) as exc_info:
        DirectoryAttributeMutator(client).mutate("jdoe")
    assert exc_info.value.step == "clear-policy-flags"
    assert client.pwd_last_set_writes("jdoe") == [0, -1]
    assert client.accounts["jdoe"].pwd_last_set == -1
    assert client.accounts["jdoe"].password_never_expires is True


def test_flags_still_set_after_commit_is_an_update_error():
    client = FakeDirectoryClient([make_record("jdoe")], ignore_uac_writes=True)
    with pytest.raises(AccountUpdateError) as exc_info:
        DirectoryAttributeMutator(client).mutate("jdoe")
    assert exc_info.value.step == "verify"


def test_already_remediated_account_is_reapplied_safely():
    client = FakeDirectoryClient([make_record("jdoe", uac=NORMAL_ACCOUNT)])
    record = DirectoryAttributeMutator(client).mutate("jdoe")
    assert client.pwd_last_set_writes("jdoe") == [0, -1]
    assert record.user_account_control == NORMAL_ACCOUNT
