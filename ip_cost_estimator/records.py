"""Parse raw fee, rate and grant rows into typed records.

Rows come from the SQLite tables, the REST reference API or the built-in
schedule. All of them share the column names of the fee_schedules,
exchange_rates and grant_programs tables. Anything that cannot be turned
into a usable record raises DataGapError; stores log and skip those rows.
"""

import json
import logging
from collections.abc import Iterable, Mapping
from datetime import date

from .errors import DataGapError
from .models import (
    FEE_CATEGORIES,
    LIFECYCLE_STAGES,
    EligibilityCriteria,
    ExchangeRate,
    FeeRecord,
    GrantProgram,
)

logger = logging.getLogger(__name__)

CATEGORY_ALIASES = {"renewal": "maintenance", "grant": "issue"}


def _parse_date(value, field_name: str, required: bool = True) -> date | None:
    if value is None or value == "":
        if required:
            raise DataGapError(f"missing {field_name}")
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as e:
        raise DataGapError(f"invalid {field_name}: {value!r}") from e


def _parse_amount(value, field_name: str) -> float | None:
    if value is None or value == "":
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError) as e:
        raise DataGapError(f"invalid {field_name}: {value!r}") from e
    if amount < 0:
        raise DataGapError(f"negative {field_name}: {amount}")
    return amount


def _parse_int(value, field_name: str) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise DataGapError(f"invalid {field_name}: {value!r}") from e


def parse_fee_row(row: Mapping) -> FeeRecord:
    """Build a FeeRecord from a fee_schedules row."""
    jurisdiction = row.get("jurisdiction")
    ip_type = row.get("ip_type")
    if not jurisdiction or not ip_type:
        raise DataGapError(f"fee row missing jurisdiction or ip_type: {dict(row)}")

    category = str(row.get("fee_category") or "").lower()
    category = CATEGORY_ALIASES.get(category, category)
    if category not in FEE_CATEGORIES:
        raise DataGapError(f"unknown fee category {row.get('fee_category')!r} for {jurisdiction}")

    stage = row.get("lifecycle_stage") or ("post-grant" if category == "maintenance" else "pre-grant")
    if stage not in LIFECYCLE_STAGES:
        raise DataGapError(f"unknown lifecycle stage {stage!r} for {jurisdiction}")

    currency = row.get("currency")
    if not currency:
        raise DataGapError(f"fee row for {jurisdiction} {category} has no currency")

    amount = _parse_amount(row.get("fee_amount"), "fee_amount")
    standard = _parse_amount(row.get("standard_fee"), "standard_fee")
    small = _parse_amount(row.get("small_entity_fee"), "small_entity_fee")
    micro = _parse_amount(row.get("micro_entity_fee"), "micro_entity_fee")
    if amount is None and standard is None:
        raise DataGapError(f"fee row for {jurisdiction} {category} has no amount")

    return FeeRecord(
        jurisdiction=jurisdiction,
        ip_type=ip_type,
        category=category,
        lifecycle_stage=stage,
        currency=currency,
        effective_date=_parse_date(row.get("effective_date"), "effective_date"),
        amount=amount,
        standard_amount=standard,
        small_amount=small,
        micro_amount=micro,
        expiration_date=_parse_date(row.get("expiration_date"), "expiration_date", required=False),
        year_due=_parse_int(row.get("year_due"), "year_due"),
        claims_threshold=_parse_int(row.get("claims_threshold"), "claims_threshold"),
        description=row.get("fee_description") or "",
    )


def parse_rate_row(row: Mapping) -> ExchangeRate:
    """Build an ExchangeRate from an exchange_rates row."""
    from_currency = row.get("from_currency")
    to_currency = row.get("to_currency")
    if not from_currency or not to_currency:
        raise DataGapError(f"rate row missing currency pair: {dict(row)}")
    rate = _parse_amount(row.get("rate"), "rate")
    if not rate:
        raise DataGapError(f"rate for {from_currency}_{to_currency} must be positive")
    return ExchangeRate(
        from_currency=from_currency,
        to_currency=to_currency,
        rate=rate,
        effective_date=_parse_date(row.get("effective_date"), "effective_date"),
    )


def parse_grant_row(row: Mapping) -> GrantProgram:
    """Build a GrantProgram from a grant_programs row."""
    name = row.get("program_name")
    country = row.get("country")
    if not name or not country:
        raise DataGapError(f"grant row missing program_name or country: {dict(row)}")

    percentage = _parse_amount(row.get("subsidy_percentage"), "subsidy_percentage") or 0.0
    if percentage > 100:
        raise DataGapError(f"grant {name} subsidy_percentage {percentage} exceeds 100")
    max_subsidy = _parse_amount(row.get("max_subsidy_amount"), "max_subsidy_amount") or 0.0

    criteria = row.get("eligibility_criteria") or {}
    if isinstance(criteria, str):
        try:
            criteria = json.loads(criteria)
        except json.JSONDecodeError as e:
            raise DataGapError(f"grant {name} has malformed eligibility_criteria") from e

    is_active = row.get("is_active", True)
    if isinstance(is_active, str):
        is_active = is_active.lower() in ("1", "true", "t", "yes")

    return GrantProgram(
        id=str(row.get("id") or name),
        name=name,
        country=country,
        subsidy_percentage=percentage,
        max_subsidy_amount=max_subsidy,
        eligibility=EligibilityCriteria(
            company_size=criteria.get("company_size"),
            sector=criteria.get("sector") or criteria.get("industry"),
        ),
        is_active=bool(is_active),
        effective_date=_parse_date(row.get("effective_date"), "effective_date", required=False),
        expiration_date=_parse_date(row.get("expiration_date"), "expiration_date", required=False),
        description=row.get("description") or "",
        application_url=row.get("application_url") or "",
    )


def parse_rows(rows: Iterable[Mapping], parser) -> list:
    """Parse rows with the given parser, skipping (and logging) the unusable ones."""
    records = []
    for row in rows:
        try:
            records.append(parser(row))
        except DataGapError as e:
            logger.warning(f"Skipping reference row: {e}")
    return records


def latest_rates(rates: Iterable[ExchangeRate], as_of: date) -> dict[tuple[str, str], float]:
    """Reduce rate history to the latest rate per pair effective on as_of."""
    chosen: dict[tuple[str, str], ExchangeRate] = {}
    for rate in rates:
        if rate.effective_date > as_of:
            continue
        current = chosen.get(rate.key)
        if current is None or rate.effective_date > current.effective_date:
            chosen[rate.key] = rate
    return {key: rate.rate for key, rate in chosen.items()}
