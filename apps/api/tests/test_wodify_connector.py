"""
Tests for the Wodify HTTP client and record transform.
"""
from datetime import date
from unittest.mock import MagicMock, patch

import pytest
import requests

import services.wodify_connector as wodify
from core.config import settings
from services.csv_import import ParsedMember
from services.wodify_connector import (
    WodifyAPIError,
    WodifyAuthError,
    extract_monthly_rate,
    extract_status,
    fetch_all_clients,
    transform_client,
    wodify_get,
)


def _response(status=200, payload=None, headers=None):
    r = MagicMock()
    r.status_code = status
    r.ok = status < 400
    r.headers = headers or {}
    r.text = "error body"
    r.json.return_value = [] if payload is None else payload
    return r


@pytest.fixture
def sleeps():
    recorded = []
    with patch("services.wodify_connector._sleep", side_effect=recorded.append):
        yield recorded


@pytest.fixture
def http_get():
    with patch("services.wodify_connector.requests.get") as mock_get:
        yield mock_get


class TestWodifyGet:
    def test_sends_api_key_header(self, http_get, sleeps):
        http_get.return_value = _response(payload=[{"id": 1}])
        assert wodify_get("/clients", "key-123") == [{"id": 1}]
        kwargs = http_get.call_args.kwargs
        assert kwargs["headers"]["x-api-key"] == "key-123"
        assert http_get.call_args.args[0] == f"{settings.WODIFY_API_BASE_URL}/clients"

    def test_retries_rate_limit_with_retry_after(self, http_get, sleeps):
        http_get.side_effect = [_response(429, headers={"Retry-After": "2"}), _response(payload=[])]
        assert wodify_get("/clients", "key") == []
        assert http_get.call_count == 2
        assert 2.0 in sleeps

    def test_server_errors_exhaust_retries(self, http_get, sleeps):
        http_get.return_value = _response(503)
        with pytest.raises(WodifyAPIError) as exc_info:
            wodify_get("/clients", "key")
        assert exc_info.value.status_code == 503
        assert http_get.call_count == settings.WODIFY_MAX_RETRIES + 1

    def test_backoff_doubles(self, http_get, sleeps):
        http_get.side_effect = [_response(500), _response(500), _response(payload=[])]
        wodify_get("/clients", "key")
        backoff = [s for s in sleeps if s >= 1.0]
        assert backoff == [1.0, 2.0]

    @pytest.mark.parametrize("status", [401, 403])
    def test_rejected_key(self, http_get, sleeps, status):
        http_get.return_value = _response(status)
        with pytest.raises(WodifyAuthError):
            wodify_get("/locations", "bad-key")
        assert http_get.call_count == 1

    def test_client_error_not_retried(self, http_get, sleeps):
        http_get.return_value = _response(400)
        with pytest.raises(WodifyAPIError) as exc_info:
            wodify_get("/clients", "key")
        assert exc_info.value.status_code == 400
        assert http_get.call_count == 1

    def test_timeout_retried(self, http_get, sleeps):
        http_get.side_effect = [requests.exceptions.Timeout(), _response(payload={"data": []})]
        assert wodify_get("/clients", "key") == {"data": []}

    def test_connection_error(self, http_get, sleeps):
        http_get.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(WodifyAPIError):
            wodify_get("/clients", "key")


class TestFetching:
    def test_paginates_until_short_page(self, http_get, sleeps, monkeypatch):
        monkeypatch.setattr(settings, "WODIFY_PAGE_SIZE", 2)
        http_get.side_effect = [
            _response(payload={"data": [{"id": 1}, {"id": 2}]}),
            _response(payload={"data": [{"id": 3}]}),
        ]
        assert [c["id"] for c in fetch_all_clients("key")] == [1, 2, 3]
        assert http_get.call_args_list[1].kwargs["params"] == {"page": 2, "page_size": 2}

    def test_falls_back_when_search_endpoint_missing(self, http_get, sleeps):
        http_get.side_effect = [_response(404), _response(payload={"results": [{"id": 9}]})]
        assert fetch_all_clients("key") == [{"id": 9}]
        assert http_get.call_args_list[1].args[0].endswith("/clients")

    def test_connection_check_lists_locations(self, http_get, sleeps):
        http_get.return_value = _response(payload={"items": [{"name": "Main St"}]})
        result = wodify.test_connection("key")
        assert result["success"] is True
        assert result["locations"] == [{"name": "Main St"}]


class TestTransform:
    def test_active_client_with_yearly_membership(self):
        client = {
            "id": 7, "first_name": "Ana", "last_name": "Lee", "email": " Ana@Example.com ",
            "client_status": "Active", "created_date": "2023-04-01T10:00:00Z",
        }
        memberships = [
            {"client_id": 7, "membership_status": "Inactive", "billing_amount": 300},
            {"client_id": 7, "membership_status": "Active", "billing_amount": "1200", "billing_frequency": "Yearly"},
        ]
        assert transform_client(client, memberships) == ParsedMember(
            name="Ana Lee",
            email="ana@example.com",
            status="active",
            join_date="2023-04-01",
            cancel_date=None,
            monthly_rate="100.00",
        )

    def test_cancelled_client(self):
        client = {"id": 8, "name": "Bo Park", "status": "Inactive",
                  "start_date": "2023-01-10", "cancel_date": "02/15/2024"}
        parsed = transform_client(client, [])
        assert parsed.status == "cancelled"
        assert parsed.join_date == "2023-01-10"
        assert parsed.cancel_date == "2024-02-15"
        assert parsed.monthly_rate == "0"

    def test_cancelled_client_without_start_date_joins_at_cancel(self):
        client = {"id": 9, "name": "Di Long", "status": "Cancelled", "cancel_date": "2024-01-15"}
        parsed = transform_client(client, [], today=date(2024, 6, 20))
        assert parsed.join_date == "2024-01-15"
        assert parsed.cancel_date == "2024-01-15"

    def test_cancel_before_start_is_clamped_to_start(self):
        client = {"id": 10, "name": "Ed Moe", "status": "Cancelled",
                  "start_date": "2024-03-01", "cancel_date": "2024-02-01"}
        parsed = transform_client(client, [])
        assert parsed.join_date == "2024-03-01"
        assert parsed.cancel_date == "2024-03-01"

    def test_missing_join_date_uses_today(self):
        parsed = transform_client({"id": 1, "first_name": "Cy"}, [], today=date(2024, 6, 20))
        assert parsed.join_date == "2024-06-20"
        assert parsed.email is None

    def test_unnamed_client(self):
        assert transform_client({"id": 2}, [], today=date(2024, 6, 20)).name == "Unknown"

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("Active", "active"),
            ("On Hold", "active"),
            ("Frozen", "active"),
            ("Cancelled", "cancelled"),
            ("Terminated", "cancelled"),
            ("deactivated", "cancelled"),
        ],
    )
    def test_status_buckets(self, raw, expected):
        assert extract_status({"client_status": raw}) == expected

    def test_weekly_and_quarterly_rates(self):
        weekly = [{"client_id": 1, "status": "active", "amount": 30, "frequency": "weekly"}]
        quarterly = [{"client_id": 1, "status": "active", "amount": 450, "frequency": "quarterly"}]
        assert extract_monthly_rate({"id": 1}, weekly) == "129.90"
        assert extract_monthly_rate({"id": 1}, quarterly) == "150.00"
        assert extract_monthly_rate({"id": 2}, weekly) == "0"
