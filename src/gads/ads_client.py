"""Google Ads REST API client.

Three request shapes: list accessible customers (GET), GAQL search (POST,
paginated via nextPageToken), and per-resource mutate (POST). Every request
carries the developer-token header and, when configured, login-customer-id.
Rows are returned as plain dicts; decoding them is up to the caller.
"""
from __future__ import annotations

import json
import re
import sys
from typing import Any, Dict, List, Optional, Sequence, Set

import requests

from .config import api_base as default_api_base, http_timeout
from .credentials import CredentialStore, Credentials
from .errors import ApiError, ConfigurationError, ResponseParseError, TransportError
from .token_supplier import PersistingTokenSupplier, RefreshingTokenSupplier, TokenSupplier

RESOURCE_KINDS = (
    "campaigns",
    "campaignBudgets",
    "adGroups",
    "adGroupCriteria",
    "adGroupAds",
)

_ID_SEPARATORS = re.compile(r"[\s-]")


def clean_customer_id(customer_id: str) -> str:
    """Strip separators: "123-456-7890" -> "1234567890"."""
    return _ID_SEPARATORS.sub("", str(customer_id or ""))


def resource_id(resource_name: str) -> str:
    """Trailing id of a resource name: "customers/1/campaigns/456" -> "456"."""
    return (resource_name or "").rsplit("/", 1)[-1]


def customer_resource_to_id(resource_name: str) -> str:
    """Account id from a resource name: "customers/123" -> "123"."""
    name = resource_name or ""
    prefix = "customers/"
    return name[len(prefix):] if name.startswith(prefix) else name


def extract_error_message(body: str) -> str:
    """
    Best human-readable message from an error body.

    Prefers the first per-operation message in error.details[].errors[],
    then error.message, then the raw body.
    """
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return body
    err = data.get("error") if isinstance(data, dict) else None
    if not isinstance(err, dict):
        return body
    details = err.get("details")
    for detail in details if isinstance(details, list) else []:
        errors = detail.get("errors") if isinstance(detail, dict) else None
        if not isinstance(errors, list):
            continue
        for e in errors:
            if isinstance(e, dict) and e.get("message"):
                return str(e["message"])
    if err.get("message"):
        return str(err["message"])
    return body


class AdsClient:
    """Stateless between calls; tokens come from the supplier on every request."""

    def __init__(
        self,
        token_supplier: TokenSupplier,
        developer_token: str,
        login_customer_id: Optional[str] = None,
        *,
        session: Optional[requests.Session] = None,
        api_base: Optional[str] = None,
        timeout: Optional[float] = None,
        verbose: bool = False,
    ) -> None:
        if not developer_token:
            raise ConfigurationError("developer token not set: run: gads auth login")
        self.token_supplier = token_supplier
        self.developer_token = developer_token
        self.login_customer_id = clean_customer_id(login_customer_id or "")
        self.session = session or requests.Session()
        self.api_base = (api_base or default_api_base()).rstrip("/")
        self.timeout = timeout if timeout is not None else http_timeout()
        self.verbose = verbose

    def _headers(self) -> Dict[str, str]:
        token = self.token_supplier.current_token()
        headers = {
            "Authorization": token.authorization_header(),
            "Content-Type": "application/json",
            "developer-token": self.developer_token,
        }
        if self.login_customer_id:
            headers["login-customer-id"] = self.login_customer_id
        return headers

    def _request(self, method: str, url: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = self._headers()
        if self.verbose:
            print(f"[api] {method} {url}", file=sys.stderr)
        try:
            r = self.session.request(method, url, headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"request failed: {e}") from e

        body = r.text or ""
        if not 200 <= r.status_code < 300:
            message = extract_error_message(body) or f"HTTP {r.status_code}"
            raise ApiError(r.status_code, message, body)

        if not body.strip():
            return {}
        try:
            data = json.loads(body)
        except ValueError as e:
            raise ResponseParseError(f"parsing response from {url}: {e}") from e
        if not isinstance(data, dict):
            raise ResponseParseError(f"parsing response from {url}: expected a JSON object")
        return data

    def list_accessible_customers(self) -> List[str]:
        """Resource names ("customers/123") of every directly accessible customer."""
        data = self._request("GET", f"{self.api_base}/customers:listAccessibleCustomers")
        names = data.get("resourceNames") or []
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise ResponseParseError("parsing response: resourceNames must be a list of strings")
        return names

    def search(self, customer_id: str, query: str) -> List[Dict[str, Any]]:
        """
        Run a GAQL query and return every row across all pages, in server order.

        Any failing page fails the whole call; no partial result is returned.
        """
        if not (query or "").strip():
            raise ValueError("query must not be empty")
        cid = clean_customer_id(customer_id)
        if not cid:
            raise ValueError("customer id must not be empty")
        url = f"{self.api_base}/customers/{cid}/googleAds:search"

        rows: List[Dict[str, Any]] = []
        page_token: Optional[str] = None
        seen_tokens: Set[str] = set()
        page = 0
        while True:
            page += 1
            payload: Dict[str, Any] = {"query": query}
            if page_token:
                payload["pageToken"] = page_token
            data = self._request("POST", url, payload)

            results = data.get("results") or []
            if not isinstance(results, list):
                raise ResponseParseError("parsing search response: results must be a list")
            for row in results:
                if not isinstance(row, dict):
                    raise ResponseParseError(f"parsing search response: row on page {page} is not an object: {row!r}")
            rows.extend(results)
            if self.verbose:
                print(f"[api] page {page}: {len(results)} rows", file=sys.stderr)

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            if page_token in seen_tokens:
                raise ResponseParseError(f"parsing search response: nextPageToken {page_token!r} repeated on page {page}")
            seen_tokens.add(page_token)
        return rows

    def mutate(self, resource_kind: str, customer_id: str, operations: Sequence[Dict[str, Any]]) -> List[str]:
        """
        Send one batch of create/update/remove operations for a resource kind.

        Returns the resulting resource names, one per operation, in request order.
        """
        if resource_kind not in RESOURCE_KINDS:
            raise ValueError(f"unknown resource kind {resource_kind!r} (expected one of: {', '.join(RESOURCE_KINDS)})")
        ops = list(operations)
        if not ops:
            raise ValueError("operations must not be empty")
        if not all(isinstance(op, dict) for op in ops):
            raise ValueError("each operation must be a JSON object")
        cid = clean_customer_id(customer_id)
        if not cid:
            raise ValueError("customer id must not be empty")

        url = f"{self.api_base}/customers/{cid}/{resource_kind}:mutate"
        data = self._request("POST", url, {"operations": ops})

        results = data.get("results") or []
        if not isinstance(results, list):
            raise ResponseParseError("parsing mutate response: results must be a list")
        names: List[str] = []
        for item in results:
            name = item.get("resourceName") if isinstance(item, dict) else None
            if not isinstance(name, str):
                raise ResponseParseError(f"parsing mutate response: result without resourceName: {item!r}")
            names.append(name)
        return names

    def mutate_campaigns(self, customer_id: str, operations: Sequence[Dict[str, Any]]) -> List[str]:
        return self.mutate("campaigns", customer_id, operations)

    def mutate_campaign_budgets(self, customer_id: str, operations: Sequence[Dict[str, Any]]) -> List[str]:
        return self.mutate("campaignBudgets", customer_id, operations)

    def mutate_ad_groups(self, customer_id: str, operations: Sequence[Dict[str, Any]]) -> List[str]:
        return self.mutate("adGroups", customer_id, operations)

    def mutate_ad_group_criteria(self, customer_id: str, operations: Sequence[Dict[str, Any]]) -> List[str]:
        """Keywords are ad group criteria."""
        return self.mutate("adGroupCriteria", customer_id, operations)

    def mutate_ad_group_ads(self, customer_id: str, operations: Sequence[Dict[str, Any]]) -> List[str]:
        return self.mutate("adGroupAds", customer_id, operations)


def build_client(
    creds: Credentials,
    store: CredentialStore,
    *,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
    verbose: bool = False,
) -> AdsClient:
    """Check the record, then wire refresh + persist suppliers into a client."""
    if not creds.refresh_token:
        raise ConfigurationError("not authenticated: run: gads auth login")
    if not creds.developer_token:
        raise ConfigurationError("developer token not set: run: gads auth login")
    timeout = timeout if timeout is not None else http_timeout()
    refreshing = RefreshingTokenSupplier(creds, session=session, timeout=timeout)
    supplier = PersistingTokenSupplier(refreshing, creds, store, verbose=verbose)
    return AdsClient(
        supplier,
        creds.developer_token,
        creds.manager_customer_id,
        session=session,
        timeout=timeout,
        verbose=verbose,
    )
