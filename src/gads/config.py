"""Environment and path configuration.

Loads .env from the current directory (or a parent) if present.
Credentials live in the per-user config dir unless GADS_CONFIG_DIR or
GADS_CREDENTIALS_FILE points elsewhere.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

API_HOST = "https://googleads.googleapis.com"
DEFAULT_API_VERSION = "v19"

OAUTH_SCOPE = "https://www.googleapis.com/auth/adwords"
AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"

DEFAULT_OAUTH_PORT = 8080
DEFAULT_AUTH_TIMEOUT = 300
DEFAULT_HTTP_TIMEOUT = 30

CREDENTIALS_FILENAME = "credentials.json"

_env_path = find_dotenv(".env", usecwd=True)
if _env_path:
    load_dotenv(_env_path)


def _truthy(v: str | None) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "on"}


def resolve_path(p: str) -> str:
    """
    Resolve a filesystem path from an env string.
    - Expands ~
    - If relative: resolve relative to the current directory
    """
    return str(Path(p).expanduser().resolve())


def verbose_enabled() -> bool:
    return _truthy(os.environ.get("GADS_VERBOSE"))


def env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def user_config_dir() -> Path:
    """Platform user config dir: APPDATA, ~/Library/Application Support or XDG_CONFIG_HOME."""
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata)
        return Path.home() / "AppData" / "Roaming"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg)
    return Path.home() / ".config"


def config_dir() -> Path:
    raw = os.environ.get("GADS_CONFIG_DIR")
    if raw:
        return Path(resolve_path(raw))
    return user_config_dir() / "gads"


def credentials_path() -> Path:
    raw = os.environ.get("GADS_CREDENTIALS_FILE")
    if raw:
        return Path(resolve_path(raw))
    return config_dir() / CREDENTIALS_FILENAME


def api_version() -> str:
    return (os.environ.get("GADS_API_VERSION") or DEFAULT_API_VERSION).strip()


def api_base() -> str:
    return f"{API_HOST}/{api_version()}"


def http_timeout() -> int:
    return env_int("GADS_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT)


def oauth_port() -> int:
    return env_int("GADS_OAUTH_PORT", DEFAULT_OAUTH_PORT)


def auth_timeout() -> int:
    return env_int("GADS_AUTH_TIMEOUT", DEFAULT_AUTH_TIMEOUT)


def redirect_uri(port: int | None = None) -> str:
    return f"http://localhost:{port if port is not None else oauth_port()}"
