"""
Wodify API connector.

Thin HTTP client for the Wodify REST API plus a pure transform from vendor
records to the canonical member shape the CSV pipeline produces:

    name, email, status (active|cancelled), join_date, cancel_date, monthly_rate

Requests send the key in the x-api-key header, pace themselves between
pages, and retry 429/5xx responses and timeouts with exponential backoff.
"""
from __future__ import annotations

import logging
import time
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import requests

from core.config import settings
from services.csv_import import CANCELLED_STATUSES, ParsedMember, parse_date

logger = logging.getLogger(__name__)

RETRY_BASE_DELAY_S = 1.0


class WodifyAPIError(RuntimeError):
    """Wodify returned an error after retries, or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class WodifyAuthError(WodifyAPIError):
    """The API key was rejected."""


def _sleep(seconds: float) -> None:
    time.sleep(seconds)


def wodify_get(endpoint: str, api_key: str, params: Optional[Dict[str, Any]] = None) -> Any:
    """GET one endpoint with pacing and retries. Returns decoded JSON."""
    url = f"{settings.WODIFY_API_BASE_URL}{endpoint}"
    headers = {"Accept": "application/json", "x-api-key": api_key}
    max_retries = settings.WODIFY_MAX_RETRIES

    for attempt in range(max_retries + 1):
        _sleep(settings.WODIFY_RATE_LIMIT_DELAY_MS / 1000)
        try:
            r = requests.get(url, headers=headers, params=params, timeout=settings.WODIFY_TIMEOUT_SECONDS)
        except requests.exceptions.Timeout:
            if attempt == max_retries:
                raise WodifyAPIError(f"Wodify request to {endpoint} timed out")
            wait_time = RETRY_BASE_DELAY_S * (2 ** attempt)
            logger.warning(f"Wodify timeout on {endpoint}, retrying in {wait_time}s ({attempt + 1}/{max_retries})")
            _sleep(wait_time)
            continue
        except requests.exceptions.RequestException as e:
            raise WodifyAPIError(f"Wodify request to {endpoint} failed: {e}")

        if (r.status_code == 429 or r.status_code >= 500) and attempt < max_retries:
            retry_after = r.headers.get("Retry-After")
            wait_time = float(retry_after) if retry_after and retry_after.isdigit() else RETRY_BASE_DELAY_S * (2 ** attempt)
            logger.warning(
                f"Wodify {r.status_code} on {endpoint}, retrying in {wait_time}s ({attempt + 1}/{max_retries})"
            )
            _sleep(wait_time)
            continue

        if r.status_code in (401, 403):
            raise WodifyAuthError("Wodify rejected the API key", status_code=r.status_code)
        if not r.ok:
            raise WodifyAPIError(f"Wodify API error {r.status_code}: {r.text[:200]}", status_code=r.status_code)
        return r.json()

    raise WodifyAPIError(f"Wodify request to {endpoint} failed after {max_retries} retries")


def _records(payload: Any) -> List[dict]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("data", "results", "items"):
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def test_connection(api_key: str) -> Dict[str, Any]:
    """Checks the key against /locations. Raises WodifyAuthError on a bad key."""
    locations = _records(wodify_get("/locations", api_key))
    return {
        "success": True,
        "message": f"Connected successfully. Found {len(locations)} location(s).",
        "locations": locations,
    }


def _fetch_pages(api_key: str, endpoint: str, fallback: str) -> List[dict]:
    page_size = settings.WODIFY_PAGE_SIZE
    results: List[dict] = []
    active_endpoint = endpoint

    for page in range(1, settings.WODIFY_MAX_PAGES + 1):
        params = {"page": page, "page_size": page_size}
        try:
            batch = _records(wodify_get(active_endpoint, api_key, params))
        except WodifyAPIError as e:
            if e.status_code == 404 and active_endpoint == endpoint:
                logger.info(f"Wodify {endpoint} not available, falling back to {fallback}")
                active_endpoint = fallback
                batch = _records(wodify_get(active_endpoint, api_key, params))
            else:
                raise
        results.extend(batch)
        if len(batch) < page_size:
            break
    return results


def fetch_all_clients(api_key: str) -> List[dict]:
    return _fetch_pages(api_key, "/clients/search", "/clients")


def fetch_all_memberships(api_key: str) -> List[dict]:
    return _fetch_pages(api_key, "/memberships/search", "/memberships")


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------

def _first(record: dict, *keys: str) -> Any:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return None


def client_id(record: dict) -> str:
    return str(_first(record, "id", "client_id", "clientId", "user_id") or "")


def _to_date(raw: Any) -> Optional[date]:
    if raw is None:
        return None
    text = str(raw).strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        parsed = parse_date(text)
        return date.fromisoformat(parsed) if parsed else None


def extract_name(client: dict) -> str:
    first = _first(client, "first_name", "firstName") or ""
    last = _first(client, "last_name", "lastName") or ""
    if first or last:
        return f"{first} {last}".strip()
    return _first(client, "name", "full_name") or "Unknown"


def extract_status(client: dict) -> str:
    raw = str(_first(client, "client_status", "status", "membership_status") or "active").strip().lower()
    if raw in CANCELLED_STATUSES or "cancel" in raw or "inactive" in raw or "terminat" in raw or "deactivat" in raw:
        return "cancelled"
    # Frozen, paused and on-hold members stay active, as in CSV imports.
    return "active"


def extract_monthly_rate(client: dict, memberships: List[dict]) -> str:
    cid = client_id(client)
    for membership in memberships:
        if client_id({"id": _first(membership, "client_id", "clientId", "user_id")}) != cid:
            continue
        status = str(_first(membership, "membership_status", "status") or "").lower()
        if status and ("inactive" in status or "active" not in status):
            continue
        try:
            amount = float(_first(membership, "billing_amount", "amount", "rate", "price") or 0)
        except (TypeError, ValueError):
            amount = 0.0
        if amount <= 0:
            continue
        frequency = str(_first(membership, "billing_frequency", "frequency") or "monthly").lower()
        if "year" in frequency or "annual" in frequency:
            amount /= 12
        elif "quarter" in frequency:
            amount /= 3
        elif "week" in frequency:
            amount *= 4.33
        return f"{amount:.2f}"
    return "0"


def transform_client(client: dict, memberships: List[dict], today: Optional[date] = None) -> ParsedMember:
    status = extract_status(client)
    join = _to_date(_first(client, "created_date", "membership_start_date", "start_date", "join_date", "created_at"))
    cancel = None
    if status == "cancelled":
        cancel = _to_date(_first(client, "cancel_date", "end_date", "deactivation_date", "cancelled_at"))
    email = _first(client, "email", "email_address")

    # A cancelled client with no start date joined no later than they left.
    if join is None:
        join = cancel or today or date.today()
    elif cancel and cancel < join:
        cancel = join

    return ParsedMember(
        name=extract_name(client),
        email=str(email).strip().lower() if email else None,
        status=status,
        join_date=join.isoformat(),
        cancel_date=cancel.isoformat() if cancel else None,
        monthly_rate=extract_monthly_rate(client, memberships),
    )
