"""Tests for the REST reference data client."""

import json
from datetime import date
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import requests

from ip_cost_estimator.api.rest_store import RestReferenceStore
from ip_cost_estimator.errors import CollaboratorUnavailableError


FIXTURES_DIR = Path(__file__).parent / "fixtures"
AS_OF = date(2025, 6, 1)


def load_fixture(name: str) -> dict:
    with open(FIXTURES_DIR / name) as f:
        return json.load(f)


def make_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else []
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} error")
    else:
        response.raise_for_status.return_value = None
    return response


def make_store(mock_session) -> RestReferenceStore:
    store = RestReferenceStore("https://reference.example.com/", api_key="test-key", rate_limit=1000)
    store.session = mock_session
    return store


def test_session_headers():
    store = RestReferenceStore("https://reference.example.com", api_key="test-key")
    assert store.session.headers["apikey"] == "test-key"
    assert store.session.headers["Authorization"] == "Bearer test-key"


def test_get_fees():
    mock_session = MagicMock()
    rows = load_fixture("sample_reference_rows.json")["fee_schedules"]
    mock_session.get.return_value = make_response(payload=rows)

    fees = make_store(mock_session).get_fees("USPTO", "patent", AS_OF)

    # The row with an unknown category is skipped
    assert len(fees) == 2
    assert fees[0].standard_amount == 400
    url = mock_session.get.call_args[0][0]
    params = mock_session.get.call_args.kwargs["params"]
    assert url == "https://reference.example.com/rest/v1/fee_schedules"
    assert params["jurisdiction"] == "eq.USPTO"
    assert params["ip_type"] == "eq.patent"
    assert params["effective_date"] == "lte.2025-06-01"


def test_get_rates_as_of():
    mock_session = MagicMock()
    rows = load_fixture("sample_reference_rows.json")["exchange_rates"]
    mock_session.get.return_value = make_response(payload=rows)

    assert make_store(mock_session).get_rates_as_of(AS_OF) == {("EUR", "USD"): 1.07}


def test_get_active_grants():
    mock_session = MagicMock()
    rows = load_fixture("sample_reference_rows.json")["grant_programs"]
    mock_session.get.return_value = make_response(payload=rows)

    grants = make_store(mock_session).get_active_grants(AS_OF)
    assert [g.id for g in grants] == ["sg-edg-ip"]
    assert grants[0].eligibility.company_size is None


def test_not_found_returns_empty():
    mock_session = MagicMock()
    mock_session.get.return_value = make_response(status_code=404)
    assert make_store(mock_session).get_fees("IPOS", "design", AS_OF) == []


@patch("ip_cost_estimator.api.rest_store.time.sleep")
def test_rate_limited_then_success(mock_sleep):
    mock_session = MagicMock()
    rows = load_fixture("sample_reference_rows.json")["exchange_rates"]
    mock_session.get.side_effect = [make_response(status_code=429), make_response(payload=rows)]

    assert make_store(mock_session).get_rates_as_of(AS_OF) == {("EUR", "USD"): 1.07}
    assert mock_session.get.call_count == 2


@patch("ip_cost_estimator.api.rest_store.time.sleep")
def test_rate_limited_every_attempt(mock_sleep):
    mock_session = MagicMock()
    mock_session.get.return_value = make_response(status_code=429)

    with pytest.raises(CollaboratorUnavailableError):
        make_store(mock_session).get_rates_as_of(AS_OF)
    assert mock_session.get.call_count == 3


@patch("ip_cost_estimator.api.rest_store.time.sleep")
def test_timeout_raises_after_retries(mock_sleep):
    mock_session = MagicMock()
    mock_session.get.side_effect = requests.exceptions.Timeout("slow")

    with pytest.raises(CollaboratorUnavailableError, match="timed out"):
        make_store(mock_session).get_fees("EPO", "patent", AS_OF)
    assert mock_session.get.call_count == 3


def test_connection_error_raises():
    mock_session = MagicMock()
    mock_session.get.side_effect = requests.exceptions.ConnectionError("refused")

    with pytest.raises(CollaboratorUnavailableError, match="unreachable"):
        make_store(mock_session).get_active_grants(AS_OF)


@patch("ip_cost_estimator.api.rest_store.time.sleep")
def test_server_error_retried(mock_sleep):
    mock_session = MagicMock()
    rows = load_fixture("sample_reference_rows.json")["grant_programs"]
    mock_session.get.side_effect = [make_response(status_code=503), make_response(payload=rows)]

    assert len(make_store(mock_session).get_active_grants(AS_OF)) == 1


def test_client_error_raises():
    mock_session = MagicMock()
    mock_session.get.return_value = make_response(status_code=401)

    with pytest.raises(CollaboratorUnavailableError):
        make_store(mock_session).get_fees("EPO", "patent", AS_OF)
    assert mock_session.get.call_count == 1
