"""Unit tests for gads.credentials."""
import json
import os
import stat
import sys
from datetime import datetime, timedelta, timezone

import pytest

from gads.credentials import CredentialStore, Credentials, parse_client_secrets_file
from gads.errors import ConfigurationError


def _full_record() -> Credentials:
    return Credentials(
        client_id="cid.apps.googleusercontent.com",
        client_secret="shh",
        developer_token="devtok",
        manager_customer_id="1234567890",
        refresh_token="1//refresh",
        access_token="ya29.access",
        token_type="Bearer",
        token_expiry=datetime(2026, 2, 13, 14, 0, 5, 123000, tzinfo=timezone.utc),
    )


def test_load_missing_file_returns_empty_record(tmp_path):
    store = CredentialStore(tmp_path / "nope" / "credentials.json")
    creds = store.load()
    assert creds == Credentials()
    assert creds.is_authenticated is False


def test_save_load_round_trip(tmp_path):
    store = CredentialStore(tmp_path / "gads" / "credentials.json")
    written = _full_record()
    store.save(written)
    assert store.load() == written


def test_round_trip_without_expiry(tmp_path):
    store = CredentialStore(tmp_path / "credentials.json")
    written = Credentials(refresh_token="r", developer_token="d")
    store.save(written)
    data = json.loads(store.path.read_text())
    assert "token_expiry" not in data
    assert store.load() == written


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")
def test_save_is_owner_only(tmp_path):
    store = CredentialStore(tmp_path / "gads" / "credentials.json")
    store.save(_full_record())
    mode = stat.S_IMODE(os.stat(store.path).st_mode)
    assert mode == 0o600


def test_save_replaces_whole_record_and_leaves_no_temp_files(tmp_path):
    store = CredentialStore(tmp_path / "credentials.json")
    store.save(_full_record())
    store.save(Credentials(refresh_token="only"))
    assert store.load() == Credentials(refresh_token="only")
    assert sorted(p.name for p in tmp_path.iterdir()) == ["credentials.json"]


def test_clear_twice_is_fine(tmp_path):
    store = CredentialStore(tmp_path / "credentials.json")
    store.save(_full_record())
    store.clear()
    store.clear()
    assert not store.path.exists()
    assert store.load() == Credentials()


def test_load_ignores_unknown_keys_and_naive_expiry(tmp_path):
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps({
        "refresh_token": "r",
        "token_expiry": "2026-02-13T14:00:00",
        "something_else": 1,
    }))
    creds = CredentialStore(path).load()
    assert creds.refresh_token == "r"
    assert creds.token_expiry == datetime(2026, 2, 13, 14, 0, tzinfo=timezone.utc)


def test_load_corrupt_file_raises_configuration_error(tmp_path):
    path = tmp_path / "credentials.json"
    path.write_text("{not json")
    with pytest.raises(ConfigurationError, match="not valid JSON"):
        CredentialStore(path).load()


def test_expired():
    past = datetime.now(timezone.utc) - timedelta(minutes=1)
    future = datetime.now(timezone.utc) + timedelta(hours=1)
    assert Credentials(token_expiry=past).expired is True
    assert Credentials(token_expiry=future).expired is False
    assert Credentials().expired is False


def test_parse_client_secrets_installed(tmp_path):
    p = tmp_path / "client_secret.json"
    p.write_text(json.dumps({"installed": {"client_id": "abc", "client_secret": "xyz"}}))
    assert parse_client_secrets_file(p) == ("abc", "xyz")


def test_parse_client_secrets_web(tmp_path):
    p = tmp_path / "client_secret.json"
    p.write_text(json.dumps({"web": {"client_id": "abc", "client_secret": "xyz"}}))
    assert parse_client_secrets_file(str(p)) == ("abc", "xyz")


def test_parse_client_secrets_wrong_layout(tmp_path):
    p = tmp_path / "client_secret.json"
    p.write_text(json.dumps({"other": {}}))
    with pytest.raises(ConfigurationError, match="'installed' or 'web'"):
        parse_client_secrets_file(p)


def test_parse_client_secrets_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        parse_client_secrets_file(tmp_path / "missing.json")
