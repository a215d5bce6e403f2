"""Tests for credentials module."""

import itertools
from unittest import mock

from ReSync.credential_store import StoredCredentialEntry
from ReSync.credentials import CredentialResolver, resolve
from ReSync.models import (
    CredentialKind,
    CredentialProfile,
    CredentialRequest,
    DefaultCredential,
    UsernamePasswordCredential,
)

URL = "https://example.com/team/project.git"


def _request(kind: CredentialKind = CredentialKind.USERNAME_PASSWORD) -> CredentialRequest:
    return CredentialRequest(url=URL, kind=kind)


def _token_entry(token: str) -> StoredCredentialEntry:
    return StoredCredentialEntry(url=URL, is_token=True, _load=lambda: token)


def _password_entry(username: str, password: str) -> StoredCredentialEntry:
    return StoredCredentialEntry(
        url=URL, is_token=False, username=username, _load=lambda: password
    )


class TestNonPasswordKinds:
    def test_default_kind_is_anonymous(self):
        profile = CredentialProfile(username="bob", password="pw")
        result = resolve(_request(CredentialKind.DEFAULT), profile, None)
        assert result == DefaultCredential()

    def test_certificate_kind_ignores_store(self):
        entry = _password_entry("alice", "secret")
        result = resolve(_request(CredentialKind.CERTIFICATE), CredentialProfile(), entry)
        assert isinstance(result, DefaultCredential)


class TestProfileOnly:
    def test_username_password(self):
        profile = CredentialProfile(username="bob", password="pw")
        assert resolve(_request(), profile, None) == UsernamePasswordCredential("bob", "pw")

    def test_token_becomes_username(self):
        profile = CredentialProfile(is_token=True, token="tok", password="ignored")
        assert resolve(_request(), profile, None) == UsernamePasswordCredential("tok", "")

    def test_empty_profile_is_not_an_error(self):
        assert resolve(_request(), CredentialProfile(), None) == UsernamePasswordCredential("", "")


class TestStoredTokenEntry:
    def test_fills_empty_username(self):
        profile = CredentialProfile(is_token=False, username="", password="")
        result = resolve(_request(), profile, _token_entry("abc"))
        assert result == UsernamePasswordCredential("abc", "")

    def test_profile_username_wins_but_password_dropped(self):
        profile = CredentialProfile(username="bob", password="pw")
        result = resolve(_request(), profile, _token_entry("abc"))
        assert result == UsernamePasswordCredential("bob", "")


class TestStoredPasswordEntry:
    def test_fills_only_empty_password(self):
        profile = CredentialProfile(username="bob", password="")
        result = resolve(_request(), profile, _password_entry("alice", "secret"))
        assert result == UsernamePasswordCredential("bob", "secret")

    def test_fills_only_empty_username(self):
        profile = CredentialProfile(username="", password="pw")
        result = resolve(_request(), profile, _password_entry("alice", "secret"))
        assert result == UsernamePasswordCredential("alice", "pw")

    def test_fills_both(self):
        result = resolve(_request(), CredentialProfile(), _password_entry("alice", "secret"))
        assert result == UsernamePasswordCredential("alice", "secret")

    def test_profile_token_is_not_paired_with_stored_password(self):
        profile = CredentialProfile(is_token=True, token="tok")
        result = resolve(_request(), profile, _password_entry("alice", "secret"))
        assert result == UsernamePasswordCredential("tok", "")

    def test_empty_profile_token_falls_back_to_stored_pair(self):
        profile = CredentialProfile(is_token=True, token="")
        result = resolve(_request(), profile, _password_entry("alice", "secret"))
        assert result == UsernamePasswordCredential("alice", "secret")


class TestTokenNeverPairsWithPassword:
    def test_all_profile_shapes_with_token_entry(self):
        values = ["", "x"]
        for is_token, username, password, token in itertools.product(
            [True, False], values, values, values
        ):
            profile = CredentialProfile(
                is_token=is_token, username=username, password=password, token=token
            )
            result = resolve(_request(), profile, _token_entry("abc"))
            assert result.password == ""

    def test_profile_token_with_password_entry(self):
        for password in ["", "pw"]:
            profile = CredentialProfile(is_token=True, token="tok", password=password)
            result = resolve(_request(), profile, _password_entry("alice", "secret"))
            assert result.username == "tok"
            assert result.password == ""

    def test_token_profile_without_store(self):
        for password in ["", "pw"]:
            profile = CredentialProfile(is_token=True, token="tok", password=password)
            assert resolve(_request(), profile, None).password == ""


class TestCredentialResolver:
    def test_looks_up_entry_by_exact_url(self):
        store = mock.MagicMock()
        store.get_entry.return_value = _password_entry("alice", "secret")
        resolver = CredentialResolver(store)

        result = resolver.resolve(_request(), CredentialProfile())

        store.get_entry.assert_called_once_with(URL)
        assert result == UsernamePasswordCredential("alice", "secret")

    def test_without_store(self):
        resolver = CredentialResolver()
        result = resolver.resolve(_request(), CredentialProfile(username="bob"))
        assert result == UsernamePasswordCredential("bob", "")

    def test_missing_entry(self):
        store = mock.MagicMock()
        store.get_entry.return_value = None
        result = CredentialResolver(store).resolve(_request(), CredentialProfile())
        assert result == UsernamePasswordCredential("", "")

    def test_password_not_in_repr(self):
        credential = UsernamePasswordCredential("bob", "hunter2")
        assert "hunter2" not in repr(credential)
