"""Tests for the gads CLI entry point (no network)."""
import json
from unittest.mock import MagicMock, patch

import pytest

from gads import cli
from gads.credentials import CredentialStore, Credentials
from gads.errors import ApiError


@pytest.fixture
def creds_file(tmp_path, monkeypatch):
    path = tmp_path / "credentials.json"
    monkeypatch.setenv("GADS_CREDENTIALS_FILE", str(path))
    return path


def _run(argv):
    with pytest.raises(SystemExit) as exc:
        cli.main(argv)
    return exc.value.code


def test_logout_twice(creds_file, capsys):
    CredentialStore(creds_file).save(Credentials(refresh_token="r"))
    assert _run(["auth", "logout"]) == 0
    assert _run(["auth", "logout"]) == 0
    assert not creds_file.exists()
    assert "Credentials removed." in capsys.readouterr().out


def test_status_not_authenticated(creds_file, capsys):
    assert _run(["auth", "status"]) == 0
    out = capsys.readouterr().out
    assert "Status: not authenticated" in out
    assert str(creds_file) in out


def test_token_masks_secrets(creds_file, capsys):
    CredentialStore(creds_file).save(Credentials(refresh_token="1//refresh-token-value", access_token="ya29.access-value"))
    assert _run(["auth", "token"]) == 0
    out = capsys.readouterr().out
    assert "1//r...alue" in out
    assert "refresh-token-value" not in out


def test_query_without_login_fails_before_network(creds_file, capsys):
    with patch("gads.ads_client.requests.Session") as session_cls:
        assert _run(["query", "--account", "123-456-7890", "SELECT campaign.id FROM campaign"]) == 1
        session_cls.return_value.request.assert_not_called()
    assert "not authenticated" in capsys.readouterr().err


def test_query_prints_rows_as_json(creds_file, capsys):
    client = MagicMock()
    client.search.return_value = [{"campaign": {"id": "1"}}, {"campaign": {"id": "2"}}]
    with patch.object(cli, "_client", return_value=(client, Credentials())):
        assert _run(["--json", "query", "--account", "123-456-7890", "SELECT campaign.id FROM campaign"]) == 0
    client.search.assert_called_once_with("123-456-7890", "SELECT campaign.id FROM campaign")
    assert json.loads(capsys.readouterr().out) == [{"campaign": {"id": "1"}}, {"campaign": {"id": "2"}}]


def test_mutate_reads_operations_file(creds_file, tmp_path, capsys):
    ops_file = tmp_path / "ops.json"
    ops = [{"remove": "customers/1/adGroups/9"}]
    ops_file.write_text(json.dumps(ops))
    client = MagicMock()
    client.mutate.return_value = ["customers/1/adGroups/9"]
    with patch.object(cli, "_client", return_value=(client, Credentials())):
        assert _run(["--json", "mutate", "adGroups", "--account", "1", "--operations", str(ops_file)]) == 0
    client.mutate.assert_called_once_with("adGroups", "1", ops)
    assert json.loads(capsys.readouterr().out) == {"results": ["customers/1/adGroups/9"]}


def test_mutate_rejects_non_array(creds_file, tmp_path, capsys):
    ops_file = tmp_path / "ops.json"
    ops_file.write_text('"nope"')
    assert _run(["mutate", "campaigns", "--account", "1", "--operations", str(ops_file)]) == 1
    assert "JSON array" in capsys.readouterr().err


def test_unknown_kind_is_usage_error(creds_file):
    assert _run(["mutate", "keywords", "--account", "1", "--operations", "x.json"]) == 2


def test_accounts_list_without_manager_shows_ids(creds_file, capsys):
    client = MagicMock()
    client.list_accessible_customers.return_value = ["customers/1234567890", "customers/42"]
    with patch.object(cli, "_client", return_value=(client, Credentials())), patch.object(cli, "_want_json", return_value=False):
        assert _run(["accounts", "list"]) == 0
    client.search.assert_not_called()
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "Accessible accounts (2):"
    assert lines[1:] == ["  1234567890\tcustomers/1234567890", "  42\tcustomers/42"]


def test_accounts_list_falls_back_when_manager_query_rejected(creds_file, capsys):
    client = MagicMock()
    client.list_accessible_customers.return_value = ["customers/42"]
    client.search.side_effect = ApiError(403, "USER_PERMISSION_DENIED", "{}")
    with patch.object(cli, "_client", return_value=(client, Credentials(manager_customer_id="999"))), patch.object(
        cli, "_want_json", return_value=False
    ):
        assert _run(["accounts", "list"]) == 0
    captured = capsys.readouterr()
    assert "USER_PERMISSION_DENIED" in captured.err
    assert "  42\tcustomers/42" in captured.out.splitlines()
