"""Reference data client for a PostgREST-style HTTP API."""

import logging
import time
from datetime import date

import requests

from ..errors import CollaboratorUnavailableError
from ..models import FeeRecord, GrantProgram
from ..records import latest_rates, parse_fee_row, parse_grant_row, parse_rate_row, parse_rows

logger = logging.getLogger(__name__)


class RestReferenceStore:
    """Fee, rate and grant store served over HTTP.

    Tables are exposed as /rest/v1/<table> and filtered with query
    parameters such as jurisdiction=eq.USPTO or effective_date=lte.2025-06-01.
    """

    TABLE_ENDPOINT = "/rest/v1/{table}"

    def __init__(self, base_url: str, api_key: str, rate_limit: int = 60, timeout: int = 15, max_retries: int = 3):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.min_interval = 60.0 / rate_limit  # seconds between requests
        self._last_request_time = 0.0
        self.session = requests.Session()
        self.session.headers.update({
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
        })

    def _rate_limit(self):
        """Enforce rate limiting between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self.min_interval:
            time.sleep(self.min_interval - elapsed)
        self._last_request_time = time.time()

    def _request(self, table: str, params: dict) -> list[dict]:
        """GET rows from a table with retry logic."""
        url = f"{self.base_url}{self.TABLE_ENDPOINT.format(table=table)}"

        for attempt in range(1, self.max_retries + 1):
            self._rate_limit()
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)

                if response.status_code == 429:
                    wait = min(2 ** attempt * 2, 10)
                    logger.warning(f"Rate limited (429). Waiting {wait}s before retry {attempt}/{self.max_retries}")
                    time.sleep(wait)
                    continue

                # 404 means the table has no matching rows
                if response.status_code == 404:
                    return []

                response.raise_for_status()
                return response.json()

            except requests.exceptions.Timeout as e:
                logger.warning(f"Request timeout for {table} (attempt {attempt}/{self.max_retries})")
                if attempt == self.max_retries:
                    raise CollaboratorUnavailableError(f"{table} request timed out after {attempt} attempts") from e
                time.sleep(2 ** attempt)

            except requests.exceptions.ConnectionError as e:
                raise CollaboratorUnavailableError(f"Reference API unreachable: {e}") from e

            except requests.exceptions.HTTPError as e:
                if response.status_code >= 500 and attempt < self.max_retries:
                    logger.warning(f"Server error {response.status_code} (attempt {attempt}/{self.max_retries})")
                    time.sleep(2 ** attempt)
                    continue
                raise CollaboratorUnavailableError(f"Reference API error for {table}: {e}") from e

        raise CollaboratorUnavailableError(f"{table} request still rate limited after {self.max_retries} attempts")

    def get_fees(self, jurisdiction: str, ip_type: str, as_of: date) -> list[FeeRecord]:
        """Fee records for a jurisdiction and IP type active on as_of."""
        rows = self._request("fee_schedules", {
            "jurisdiction": f"eq.{jurisdiction}",
            "ip_type": f"eq.{ip_type}",
            "effective_date": f"lte.{as_of.isoformat()}",
            "order": "effective_date.desc",
        })
        records = [record for record in parse_rows(rows, parse_fee_row) if record.is_active(as_of)]
        logger.info(f"Fetched {len(records)} {jurisdiction} {ip_type} fee records")
        return records

    def get_rates_as_of(self, as_of: date) -> dict[tuple[str, str], float]:
        rows = self._request("exchange_rates", {
            "effective_date": f"lte.{as_of.isoformat()}",
            "order": "effective_date.desc",
        })
        return latest_rates(parse_rows(rows, parse_rate_row), as_of)

    def get_active_grants(self, as_of: date) -> list[GrantProgram]:
        rows = self._request("grant_programs", {
            "is_active": "eq.true",
            "order": "subsidy_percentage.desc",
        })
        return [grant for grant in parse_rows(rows, parse_grant_row) if grant.is_active_on(as_of)]
