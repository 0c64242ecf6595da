"""Unit tests for gads.config."""
import sys
from pathlib import Path

import pytest

from gads import config


def test_resolve_path_absolute(tmp_path):
    abs_path = tmp_path / "foo" / "bar"
    abs_path.mkdir(parents=True, exist_ok=True)
    assert config.resolve_path(str(abs_path)) == str(abs_path.resolve())


def test_resolve_path_relative(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert config.resolve_path("secrets/creds.json") == str((tmp_path / "secrets" / "creds.json").resolve())


def test_verbose_enabled_false(monkeypatch):
    monkeypatch.delenv("GADS_VERBOSE", raising=False)
    assert config.verbose_enabled() is False
    monkeypatch.setenv("GADS_VERBOSE", "0")
    assert config.verbose_enabled() is False
    monkeypatch.setenv("GADS_VERBOSE", "false")
    assert config.verbose_enabled() is False


def test_verbose_enabled_true(monkeypatch):
    monkeypatch.setenv("GADS_VERBOSE", "1")
    assert config.verbose_enabled() is True
    monkeypatch.setenv("GADS_VERBOSE", "yes")
    assert config.verbose_enabled() is True


def test_env_int(monkeypatch):
    monkeypatch.delenv("GADS_HTTP_TIMEOUT", raising=False)
    assert config.http_timeout() == 30
    monkeypatch.setenv("GADS_HTTP_TIMEOUT", "5")
    assert config.http_timeout() == 5
    monkeypatch.setenv("GADS_HTTP_TIMEOUT", "soon")
    with pytest.raises(RuntimeError, match="GADS_HTTP_TIMEOUT must be an integer"):
        config.http_timeout()


def test_credentials_path_explicit_file(tmp_path, monkeypatch):
    monkeypatch.setenv("GADS_CREDENTIALS_FILE", str(tmp_path / "c.json"))
    assert config.credentials_path() == tmp_path / "c.json"


def test_credentials_path_config_dir(tmp_path, monkeypatch):
    monkeypatch.delenv("GADS_CREDENTIALS_FILE", raising=False)
    monkeypatch.setenv("GADS_CONFIG_DIR", str(tmp_path))
    assert config.credentials_path() == tmp_path / "credentials.json"


@pytest.mark.skipif(sys.platform in ("win32", "darwin"), reason="XDG layout is Linux-only")
def test_credentials_path_xdg(tmp_path, monkeypatch):
    monkeypatch.delenv("GADS_CREDENTIALS_FILE", raising=False)
    monkeypatch.delenv("GADS_CONFIG_DIR", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    assert config.credentials_path() == Path(tmp_path) / "gads" / "credentials.json"


def test_api_base_and_redirect(monkeypatch):
    monkeypatch.delenv("GADS_API_VERSION", raising=False)
    monkeypatch.delenv("GADS_OAUTH_PORT", raising=False)
    assert config.api_base() == "https://googleads.googleapis.com/v19"
    assert config.redirect_uri() == "http://localhost:8080"
    monkeypatch.setenv("GADS_API_VERSION", "v20")
    assert config.api_base().endswith("/v20")
    assert config.redirect_uri(9000) == "http://localhost:9000"
