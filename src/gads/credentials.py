"""Credential store: one JSON record per installation.

The record holds the OAuth client identity, the developer token, the optional
manager (login) customer id, the long-lived refresh token and the current
short-lived access token. An empty refresh token means "not authenticated";
a missing or expired access token only means the next call refreshes it.
"""
from __future__ import annotations

import json
import os
import tempfile
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from dateutil import parser as dtparser

from .config import credentials_path
from .errors import ConfigurationError


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Aware UTC datetime; naive values are taken to be UTC already."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _parse_expiry(raw: Any) -> Optional[datetime]:
    if not raw or not isinstance(raw, str):
        return None
    try:
        return as_utc(dtparser.isoparse(raw))
    except (ValueError, OverflowError):
        return None


@dataclass
class Credentials:
    client_id: str = ""
    client_secret: str = ""
    developer_token: str = ""
    manager_customer_id: str = ""
    refresh_token: str = ""
    access_token: str = ""
    token_type: str = ""
    token_expiry: Optional[datetime] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.refresh_token)

    @property
    def expired(self) -> bool:
        expiry = as_utc(self.token_expiry)
        return expiry is not None and datetime.now(timezone.utc) >= expiry

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        expiry = as_utc(self.token_expiry)
        if expiry is None:
            del data["token_expiry"]
        else:
            data["token_expiry"] = expiry.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credentials":
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name == "token_expiry":
                kwargs[f.name] = _parse_expiry(data.get(f.name))
            else:
                v = data.get(f.name)
                kwargs[f.name] = str(v) if v is not None else ""
        return cls(**kwargs)


class CredentialStore:
    """Loads and atomically replaces the credentials file."""

    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else credentials_path()

    def load(self) -> Credentials:
        """Read the record. A missing file yields an empty record, not an error."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return Credentials()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"credentials file {self.path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"credentials file {self.path} must contain a JSON object")
        return Credentials.from_dict(data)

    def save(self, creds: Credentials) -> None:
        """Write the whole record via temp file + rename, readable by the owner only."""
        parent = self.path.parent
        parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        content = json.dumps(creds.to_dict(), indent=2) + "\n"

        fd, tmp = tempfile.mkstemp(dir=str(parent), prefix=".credentials-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        """Delete the record; deleting a missing record is fine."""
        self.path.unlink(missing_ok=True)


def parse_client_secrets_file(path: str | Path) -> Tuple[str, str]:
    """
    Read a Google Cloud Console OAuth client JSON.

    Accepts either the "installed" (desktop) or "web" layout and returns
    (client_id, client_secret).
    """
    p = Path(path).expanduser()
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigurationError(f"client secrets file not found: {p}") from None
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"client secrets file {p} is not valid JSON: {e}") from e

    entry = None
    if isinstance(data, dict):
        entry = data.get("installed") or data.get("web")
    if not isinstance(entry, dict):
        raise ConfigurationError("credentials file must have 'installed' or 'web' key")

    client_id = entry.get("client_id") or ""
    client_secret = entry.get("client_secret") or ""
    if not client_id or not client_secret:
        raise ConfigurationError(f"client secrets file {p} is missing client_id or client_secret")
    return client_id, client_secret
