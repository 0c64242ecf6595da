"""CLI for gads: Google Ads from the command line.

Commands: auth (login, status, token, check, logout), accounts list,
query, mutate, info.

Output is JSON when --json/--pretty is given or stdout is piped, tables
otherwise. Exit codes: 0 success, 1 error, 2 usage, 130 interrupted.
"""
from __future__ import annotations

import json
import os
import sys
import webbrowser
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .ads_client import RESOURCE_KINDS, AdsClient, build_client, clean_customer_id, customer_resource_to_id
from .config import verbose_enabled
from .credentials import CredentialStore, Credentials, as_utc, parse_client_secrets_file
from .errors import ApiError, ConfigurationError, GadsError
from . import output

CUSTOMER_CLIENT_QUERY = """SELECT customer_client.id, customer_client.descriptive_name,
    customer_client.currency_code, customer_client.time_zone,
    customer_client.manager, customer_client.level, customer_client.hidden,
    customer_client.test_account
FROM customer_client
WHERE customer_client.level <= 1
ORDER BY customer_client.id"""


# ----------------------------
# Helpers
# ----------------------------

def _store() -> CredentialStore:
    return CredentialStore()


def _client() -> Tuple[AdsClient, Credentials]:
    store = _store()
    creds = store.load()
    return build_client(creds, store, verbose=verbose_enabled()), creds


def _prompt_required(msg: str) -> str:
    while True:
        val = input(msg).strip()
        if val:
            return val
        print("  (value required)")


def _fmt_expiry(dt: Optional[datetime]) -> str:
    dt = as_utc(dt)
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC") if dt else ""


def _want_json(args: Any) -> bool:
    return output.is_json(args.json, args.pretty)


# ----------------------------
# Commands
# ----------------------------

def cmd_auth_login(
    *,
    credentials_file: Optional[str],
    developer_token: Optional[str],
    manager_account: Optional[str],
    no_browser: bool,
) -> None:
    from .oauth_flow import authorize

    store = _store()
    try:
        creds = store.load()
    except ConfigurationError as e:
        print(f"gads: ignoring unreadable credentials file: {e}", file=sys.stderr)
        creds = Credentials()

    if credentials_file:
        creds.client_id, creds.client_secret = parse_client_secrets_file(credentials_file)
        print(f"Loaded credentials from {credentials_file}")
    if not creds.client_id:
        creds.client_id = _prompt_required("Client ID: ")
    if not creds.client_secret:
        creds.client_secret = _prompt_required("Client Secret: ")

    if developer_token:
        creds.developer_token = developer_token
    elif not creds.developer_token:
        creds.developer_token = _prompt_required("Developer Token: ")

    if manager_account:
        creds.manager_customer_id = clean_customer_id(manager_account)
    elif not creds.manager_customer_id:
        creds.manager_customer_id = clean_customer_id(_prompt_required("Manager Account (MCC) Customer ID: "))

    print()
    print("Starting OAuth2 authorization flow...")
    authorize(creds, store, open_browser=None if no_browser else webbrowser.open)

    print("\nAuthentication successful!")
    print(f"Credentials saved to: {store.path}")
    print(f"Manager account: {creds.manager_customer_id}")


def cmd_auth_status() -> None:
    store = _store()
    creds = store.load()
    print(f"Config file: {store.path}\n")
    if not creds.is_authenticated:
        print("Status: not authenticated")
        print("\nRun: gads auth login")
        return
    print("Status:           authenticated")
    print(f"Client ID:        {output.mask(creds.client_id)}")
    print(f"Developer Token:  {output.mask(creds.developer_token)}")
    print(f"Manager Account:  {creds.manager_customer_id}")
    if creds.token_expiry:
        print(f"Token Expiry:     {_fmt_expiry(creds.token_expiry)}")


def cmd_auth_token() -> None:
    creds = _store().load()
    if not creds.is_authenticated:
        raise ConfigurationError("not authenticated: run: gads auth login")
    print(f"Access Token:   {output.mask(creds.access_token)}")
    print(f"Refresh Token:  {output.mask(creds.refresh_token)}")
    print(f"Token Type:     {creds.token_type}")
    if creds.token_expiry:
        print(f"Token Expiry:   {_fmt_expiry(creds.token_expiry)}")
        if creds.expired:
            print("Status:         EXPIRED (will refresh on next use)")
        else:
            print("Status:         valid")


def cmd_auth_check() -> None:
    client, _ = _client()
    print("Checking credentials...")
    try:
        accounts = client.list_accessible_customers()
    except GadsError as e:
        raise GadsError(f"credentials check failed: {e}") from e
    print(f"Credentials valid. Found {len(accounts)} accessible account(s).")


def cmd_auth_logout() -> None:
    _store().clear()
    print("Credentials removed.")


def cmd_accounts_list(args: Any) -> None:
    client, creds = _client()
    names = client.list_accessible_customers()

    accounts: List[Dict[str, Any]] = []
    if creds.manager_customer_id:
        try:
            rows = client.search(creds.manager_customer_id, CUSTOMER_CLIENT_QUERY)
        except ApiError as e:
            print(f"gads: customer_client query failed ({e}); listing resource names only", file=sys.stderr)
            rows = []
        accounts = [r["customerClient"] for r in rows if isinstance(r.get("customerClient"), dict)]

    if not accounts:
        if _want_json(args):
            output.print_json(names, args.pretty)
            return
        if not names:
            print("No accessible accounts found.")
            return
        print(f"Accessible accounts ({len(names)}):")
        for rn in names:
            print(f"  {customer_resource_to_id(rn)}\t{rn}")
        return

    if _want_json(args):
        output.print_json(accounts, args.pretty)
        return
    headers = ["ID", "NAME", "CURRENCY", "TIMEZONE", "MANAGER", "TEST"]
    table = [
        [
            a.get("id", ""),
            output.truncate(str(a.get("descriptiveName") or ""), 40),
            a.get("currencyCode", ""),
            output.truncate(str(a.get("timeZone") or ""), 30),
            "yes" if a.get("manager") else "",
            "yes" if a.get("testAccount") else "",
        ]
        for a in accounts
    ]
    output.print_table(headers, table)


def _read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(os.path.expanduser(path), "r", encoding="utf-8") as f:
        return f.read()


def cmd_query(args: Any) -> None:
    if args.file:
        query = _read_text(args.file)
    elif args.query:
        query = args.query
    else:
        raise ValueError("provide a GAQL query or --file")

    client, _ = _client()
    rows = client.search(args.account, query)

    if _want_json(args):
        output.print_json(rows, args.pretty)
        return
    for row in rows:
        output.print_json(row)
    print(f"{len(rows)} row(s)", file=sys.stderr)


def cmd_mutate(args: Any) -> None:
    raw = _read_text(args.operations)
    try:
        operations = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"--operations must be a JSON array of operations: {e}") from e
    if isinstance(operations, dict) and "operations" in operations:
        operations = operations["operations"]
    if not isinstance(operations, list):
        raise ValueError("--operations must be a JSON array of operations")

    client, _ = _client()
    names = client.mutate(args.kind, args.account, operations)

    if _want_json(args):
        output.print_json({"results": names}, args.pretty)
        return
    for name in names:
        print(name)


def cmd_info() -> None:
    store = _store()
    print("gads: Google Ads CLI\n")
    print(f"  config:  {store.path}")
    print()
    try:
        creds = store.load()
    except ConfigurationError as e:
        print(f"  status:  unreadable credentials file ({e})")
        return
    if not creds.is_authenticated:
        print("  status:  not authenticated (run: gads auth login)")
        return
    print("  status:           authenticated")
    print(f"  manager account:  {creds.manager_customer_id or '(not set)'}")
    print(f"  developer token:  {output.mask(creds.developer_token)}")
    if creds.token_expiry:
        print(f"  token expiry:     {_fmt_expiry(creds.token_expiry)}")


def main(argv: Optional[List[str]] = None) -> None:
    import argparse

    p = argparse.ArgumentParser(
        prog="gads",
        description="Google Ads from the command line (REST API).",
        epilog=(
            "Authenticate first:\n"
            "  gads auth login --credentials-file ~/Downloads/client_secret.json\n"
            "\n"
            "Then:\n"
            "  gads accounts list\n"
            "  gads query --account 123-456-7890 \"SELECT campaign.id, campaign.name FROM campaign\"\n"
            "  gads mutate campaigns --account 1234567890 --operations ops.json\n"
            "\n"
            "Credentials: ~/.config/gads/credentials.json (override with GADS_CONFIG_DIR\n"
            "or GADS_CREDENTIALS_FILE).\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Trace requests to stderr (same as GADS_VERBOSE=1).")
    p.add_argument("--json", action="store_true", help="Force JSON output.")
    p.add_argument("--pretty", action="store_true", help="Force pretty-printed JSON output (implies --json).")

    sub = p.add_subparsers(dest="cmd", required=True, metavar="COMMAND")

    p_auth = sub.add_parser("auth", help="Manage Google Ads authentication.")
    auth_sub = p_auth.add_subparsers(dest="auth_cmd", required=True, metavar="ACTION")
    p_login = auth_sub.add_parser("login", help="Authenticate via OAuth2 (opens a browser, listens on localhost:8080).")
    p_login.add_argument("--credentials-file", default=None, help="Google Cloud OAuth client JSON (installed or web).")
    p_login.add_argument("--developer-token", default=None, help="Google Ads developer token.")
    p_login.add_argument("--manager-account", default=None, help="Manager account (MCC) customer ID.")
    p_login.add_argument("--no-browser", action="store_true", help="Only print the authorization URL.")
    auth_sub.add_parser("status", help="Show current authentication status.")
    auth_sub.add_parser("token", help="Show the stored access token (masked).")
    auth_sub.add_parser("check", help="Validate credentials with a test API call.")
    auth_sub.add_parser("logout", help="Remove saved credentials.")

    p_accounts = sub.add_parser("accounts", help="Customer accounts.")
    acc_sub = p_accounts.add_subparsers(dest="accounts_cmd", required=True, metavar="ACTION")
    acc_sub.add_parser("list", help="List accessible accounts (details via the manager account when set).")

    p_query = sub.add_parser("query", help="Run a GAQL query and print every row (all pages).")
    p_query.add_argument("--account", required=True, help="Customer ID (dashes allowed).")
    p_query.add_argument("query", nargs="?", default=None, help="GAQL query text.")
    p_query.add_argument("--file", default=None, help="Read the query from a file ('-' for stdin).")

    p_mutate = sub.add_parser("mutate", help="Send a batch of mutate operations for one resource kind.")
    p_mutate.add_argument("kind", choices=RESOURCE_KINDS, help="Resource kind.")
    p_mutate.add_argument("--account", required=True, help="Customer ID (dashes allowed).")
    p_mutate.add_argument(
        "--operations",
        required=True,
        help="JSON file with an array of operations ('-' for stdin).",
    )

    sub.add_parser("info", help="Show config path and auth status.")

    args = p.parse_args(argv)

    if args.verbose:
        os.environ["GADS_VERBOSE"] = "1"

    try:
        if args.cmd == "auth":
            if args.auth_cmd == "login":
                cmd_auth_login(
                    credentials_file=args.credentials_file,
                    developer_token=args.developer_token,
                    manager_account=args.manager_account,
                    no_browser=args.no_browser,
                )
            elif args.auth_cmd == "status":
                cmd_auth_status()
            elif args.auth_cmd == "token":
                cmd_auth_token()
            elif args.auth_cmd == "check":
                cmd_auth_check()
            elif args.auth_cmd == "logout":
                cmd_auth_logout()
            else:
                raise SystemExit(2)
        elif args.cmd == "accounts":
            cmd_accounts_list(args)
        elif args.cmd == "query":
            cmd_query(args)
        elif args.cmd == "mutate":
            cmd_mutate(args)
        elif args.cmd == "info":
            cmd_info()
        else:
            raise SystemExit(2)
        sys.exit(0)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.exit(130)
    except (GadsError, ValueError, RuntimeError, OSError) as e:
        print(f"gads: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
