"""Maintenance (renewal) fee scheduling over the protection period."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date

from dateutil.relativedelta import relativedelta

from .currency import CurrencyNormalizer
from .fee_table import FeeTable
from .models import ENTITY_MULTIPLIERS, FeeRecord, Jurisdiction, JurisdictionCost, TimelineEntry

logger = logging.getLogger(__name__)

# Yearly spend above which a year is flagged for budgeting
HIGH_COST_YEAR_THRESHOLD = 1000
CASH_FLOW_ALERT_THRESHOLD = 3000


@dataclass(frozen=True)
class MaintenanceSchedule:
    entries: tuple[TimelineEntry, ...] = ()
    notes: tuple[str, ...] = ()

    @property
    def total(self) -> float:
        return sum(entry.amount for entry in self.entries)


class MaintenanceScheduler:
    """Builds renewal fee entries for one jurisdiction."""

    def __init__(self, fee_table: FeeTable):
        self.fee_table = fee_table

    def due_years(self, jurisdiction: Jurisdiction, protection_duration: int) -> list[int]:
        return [year for year in jurisdiction.maintenance_years if year <= protection_duration]

    def schedule(
        self,
        jurisdiction: Jurisdiction,
        ip_type: str,
        entity_type: str,
        protection_duration: int,
        as_of: date,
        normalizer: CurrencyNormalizer,
        filing_date: date | None = None,
    ) -> MaintenanceSchedule:
        years = self.due_years(jurisdiction, protection_duration)
        if not years:
            return MaintenanceSchedule()

        records = self.fee_table.active_records(
            jurisdiction.code, ip_type, "maintenance", as_of, "post-grant"
        )
        if not records:
            note = f"No maintenance fees on file for {jurisdiction.code} {ip_type}; maintenance treated as zero"
            logger.warning(note)
            return MaintenanceSchedule(notes=(note,))

        base = self._base_record(jurisdiction, ip_type, records, as_of)
        multiplier = ENTITY_MULTIPLIERS.get(entity_type, 1.0) if jurisdiction.has_entity_tiers else 1.0

        entries = []
        for year in years:
            exact = self.fee_table.lookup(
                jurisdiction.code, ip_type, "maintenance", "post-grant", as_of, year_due=year
            )
            if exact is not None:
                amount = self._native_amount(exact, jurisdiction, normalizer)
            else:
                amount = self._native_amount(base, jurisdiction, normalizer) * (1 + year / 20)
            entries.append(TimelineEntry(
                year=year,
                description=f"Maintenance Fee - Year {year}",
                amount=max(0.0, amount * multiplier),
                fee_type="maintenance",
                is_required=True,
                due_date=filing_date + relativedelta(years=year) if filing_date else None,
            ))
        return MaintenanceSchedule(entries=tuple(entries))

    def _base_record(
        self, jurisdiction: Jurisdiction, ip_type: str, records: list[FeeRecord], as_of: date
    ) -> FeeRecord:
        """The record without year_due, else the earliest year-due record."""
        base = self.fee_table.lookup(jurisdiction.code, ip_type, "maintenance", "post-grant", as_of)
        if base is not None:
            return base
        earliest = min(record.year_due for record in records if record.year_due is not None)
        return self.fee_table.lookup(
            jurisdiction.code, ip_type, "maintenance", "post-grant", as_of, year_due=earliest
        )

    @staticmethod
    def _native_amount(record: FeeRecord, jurisdiction: Jurisdiction, normalizer: CurrencyNormalizer) -> float:
        # Tiered records contribute their standard amount; the entity multiplier is applied afterwards
        return normalizer.convert(record.base_amount, record.currency, jurisdiction.currency)


def yearly_costs(
    per_jurisdiction: Iterable[JurisdictionCost],
    normalizer: CurrencyNormalizer,
    fee_type: str | None = None,
) -> dict[int, float]:
    """Sum timeline amounts per year across jurisdictions, in the reporting currency."""
    totals: dict[int, float] = {}
    for cost in per_jurisdiction:
        for entry in cost.timeline:
            if fee_type is not None and entry.fee_type != fee_type:
                continue
            amount = normalizer.to_reporting_currency(entry.amount, cost.currency)
            totals[entry.year] = totals.get(entry.year, 0.0) + amount
    return dict(sorted(totals.items()))


def maintenance_strategy(maintenance_by_year: dict[int, float]) -> str:
    """Budgeting advice based on the years with the heaviest renewal spend."""
    high_cost_years = [
        year for year, amount in maintenance_by_year.items() if amount > HIGH_COST_YEAR_THRESHOLD
    ]
    if high_cost_years:
        years = ", ".join(str(year) for year in high_cost_years)
        return (
            f"Consider budgeting ahead for years {years} which have higher maintenance costs. "
            "Review the commercial value of your patent before paying renewals in these years."
        )
    return (
        "Your patent maintenance costs are relatively stable across years. "
        "Set up a renewal reminder system to avoid missing deadlines."
    )


def cash_flow_alerts(costs_by_year: dict[int, float], currency: str = "USD") -> list[str]:
    """Warn about large payments falling after the filing year."""
    return [
        f"Year {year}: payments of {amount:,.0f} {currency} are due"
        for year, amount in costs_by_year.items()
        if year > 0 and amount > CASH_FLOW_ALERT_THRESHOLD
    ]
