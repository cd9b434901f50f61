"""Per-jurisdiction official fee calculation."""

import logging
from datetime import date

from dateutil.relativedelta import relativedelta

from .currency import CurrencyNormalizer
from .fee_table import FeeTable
from .grants import GrantMatcher
from .maintenance import MaintenanceScheduler
from .models import (
    ENTITY_MULTIPLIERS,
    JURISDICTIONS,
    CalculationInput,
    CostBreakdown,
    Jurisdiction,
    JurisdictionCost,
    ProfessionalFees,
    TimelineEntry,
)

logger = logging.getLogger(__name__)

DEFAULT_DESIGNATED_COUNTRIES = 5

# Attorney/agent fees for drafting and prosecution, USD
BASE_LEGAL_FEES = {"USPTO": 15000, "EPO": 12000, "IPOS": 8000}
DEFAULT_LEGAL_FEE = 10000
TRANSLATION_FEE_PER_COUNTRY = 3000

COMPLEXITY_MULTIPLIERS = {
    "Simple": 1.0,
    "Complex": 1.4,
    "Cutting-Edge": 1.8,
    "Software/Biotech": 1.6,
}

# Weighted by the share of applications needing 1, 2 or 3+ office action rounds
PROSECUTION_MULTIPLIERS = {
    "Simple": 0.7 * 1.0 + 0.25 * 1.3 + 0.05 * 2.0,
    "Complex": 0.5 * 1.0 + 0.4 * 1.3 + 0.1 * 2.0,
    "Cutting-Edge": 0.3 * 1.0 + 0.5 * 1.3 + 0.2 * 2.0,
    "Software/Biotech": 0.4 * 1.0 + 0.45 * 1.3 + 0.15 * 2.0,
}

BASE_FEES = ("filing", "search", "examination", "issue")

# fee type, timeline year, description; listed in payment order
TIMELINE_ENTRIES = (
    ("filing", 0, "Filing Fee"),
    ("search", 0, "Search Fee"),
    ("claims", 0, "Excess Claims Fee"),
    ("pages", 0, "Excess Pages Fee"),
    ("examination", 1, "Examination Fee"),
    ("designation", 1, "Designation Fees"),
    ("issue", 2, "Issue/Grant Fee"),
)


class FeeCalculator:
    """Computes the official cost breakdown and payment timeline for one jurisdiction."""

    def __init__(
        self,
        fee_table: FeeTable,
        scheduler: MaintenanceScheduler | None = None,
        grant_matcher: GrantMatcher | None = None,
        default_designated_countries: int = DEFAULT_DESIGNATED_COUNTRIES,
        fee_gaps: dict[tuple[str, str], str] | None = None,
    ):
        self.fee_table = fee_table
        self.scheduler = scheduler or MaintenanceScheduler(fee_table)
        self.grant_matcher = grant_matcher
        self.default_designated_countries = default_designated_countries
        self.fee_gaps = fee_gaps or {}

    def calculate(
        self,
        code: str,
        request: CalculationInput,
        as_of: date,
        normalizer: CurrencyNormalizer,
    ) -> JurisdictionCost:
        """Calculate costs for one jurisdiction.

        Missing fee records count as zero and leave a note; the jurisdiction
        is always returned.
        """
        jurisdiction = JURISDICTIONS[code]
        notes: list[str] = []
        gap = self.fee_gaps.get((code, request.ip_type))
        if gap:
            notes.append(gap)

        amounts: dict[str, float] = {}
        for category in BASE_FEES:
            if category == "search" and not request.include_search_fees:
                amounts[category] = 0.0
                notes.append("Search fees excluded on request")
                continue
            amounts[category] = self.base_fee(jurisdiction, request, category, as_of, normalizer, notes)

        amounts["claims"] = self.claims_overage(jurisdiction, request, as_of, normalizer, notes)
        amounts["pages"] = self.pages_overage(jurisdiction, request.page_count)
        amounts["designation"] = self.designation_fees(jurisdiction, request, as_of, normalizer, notes)

        timeline = [
            TimelineEntry(
                year=year,
                description=description,
                amount=amounts[fee_type],
                fee_type=fee_type,
                is_required=True,
                due_date=self._due_date(request.filing_date, year),
            )
            for fee_type, year, description in TIMELINE_ENTRIES
            if amounts[fee_type] > 0
        ]

        schedule = self.scheduler.schedule(
            jurisdiction,
            request.ip_type,
            request.entity_type,
            request.protection_duration,
            as_of,
            normalizer,
            request.filing_date,
        )
        notes.extend(schedule.notes)

        timeline.extend(schedule.entries)
        timeline.sort(key=lambda entry: entry.year)

        claims_extra = amounts["claims"]
        pages_extra = amounts["pages"]
        designations = amounts["designation"]
        total = (
            amounts["filing"] + amounts["search"] + amounts["examination"] + amounts["issue"]
            + schedule.total + claims_extra + pages_extra + designations
        )

        grants = []
        discounted = total
        if self.grant_matcher is not None:
            grants = self.grant_matcher.find_applicable(code, request.company_size, request.industry_sector)
            discounted = self.grant_matcher.apply_discount(total, grants)
        if discounted > total or discounted < 0:
            logger.warning(f"{code}: discounted total {discounted} outside [0, {total}], clamping")
            discounted = min(total, max(0.0, discounted))

        costs = CostBreakdown(
            filing=amounts["filing"],
            search=amounts["search"],
            examination=amounts["examination"],
            issue=amounts["issue"],
            maintenance=schedule.total,
            claims_extra=claims_extra,
            pages_extra=pages_extra,
            designations=designations,
            total=total,
            discounted_total=discounted,
        )

        professional = None
        if request.include_legal_agent_fees or request.include_translation_fees:
            professional = self.professional_fees(jurisdiction, request)

        return JurisdictionCost(
            jurisdiction=code,
            currency=jurisdiction.currency,
            costs=costs,
            timeline=tuple(timeline),
            applicable_grants=tuple(grants),
            notes=tuple(notes),
            normalized_total=normalizer.to_reporting_currency(total, jurisdiction.currency),
            normalized_discounted_total=normalizer.to_reporting_currency(discounted, jurisdiction.currency),
            professional_fees=professional,
        )

    def base_fee(
        self,
        jurisdiction: Jurisdiction,
        request: CalculationInput,
        category: str,
        as_of: date,
        normalizer: CurrencyNormalizer,
        notes: list[str],
    ) -> float:
        record = self.fee_table.lookup(jurisdiction.code, request.ip_type, category, "pre-grant", as_of)
        if record is None:
            notes.append(
                f"No active {category} fee for {jurisdiction.code} {request.ip_type}; treated as zero"
            )
            return 0.0
        amount = record.amount_for(request.entity_type, jurisdiction.has_entity_tiers)
        return max(0.0, normalizer.convert(amount, record.currency, jurisdiction.currency))

    def claims_overage(
        self,
        jurisdiction: Jurisdiction,
        request: CalculationInput,
        as_of: date,
        normalizer: CurrencyNormalizer,
        notes: list[str],
    ) -> float:
        """Fee for claims beyond the free threshold; USPTO applies the entity multiplier."""
        if not request.claim_count:
            return 0.0
        record = self.fee_table.lookup(jurisdiction.code, request.ip_type, "claims", "pre-grant", as_of)
        threshold = jurisdiction.free_claims
        if record is not None and record.claims_threshold is not None:
            threshold = record.claims_threshold
        excess = request.claim_count - threshold
        if excess <= 0:
            return 0.0
        if record is None:
            notes.append(
                f"No per-claim fee for {jurisdiction.code} {request.ip_type}; "
                f"{excess} excess claims treated as zero"
            )
            return 0.0
        per_claim = normalizer.convert(record.base_amount, record.currency, jurisdiction.currency)
        extra = excess * per_claim
        if jurisdiction.has_entity_tiers:
            extra *= ENTITY_MULTIPLIERS.get(request.entity_type, 1.0)
        return max(0.0, extra)

    def pages_overage(self, jurisdiction: Jurisdiction, page_count: int | None) -> float:
        if not page_count or page_count <= jurisdiction.free_pages:
            return 0.0
        return (page_count - jurisdiction.free_pages) * jurisdiction.per_page_fee

    def designation_fees(
        self,
        jurisdiction: Jurisdiction,
        request: CalculationInput,
        as_of: date,
        normalizer: CurrencyNormalizer,
        notes: list[str],
    ) -> float:
        if not jurisdiction.has_designations:
            return 0.0
        count = request.designated_country_count
        if count is None:
            count = self.default_designated_countries
        if count <= 0:
            return 0.0
        record = self.fee_table.lookup(jurisdiction.code, request.ip_type, "designation", "pre-grant", as_of)
        if record is None:
            notes.append(f"No designation fee for {jurisdiction.code} {request.ip_type}; treated as zero")
            return 0.0
        per_country = normalizer.convert(record.base_amount, record.currency, jurisdiction.currency)
        return max(0.0, count * per_country)

    def professional_fees(self, jurisdiction: Jurisdiction, request: CalculationInput) -> ProfessionalFees:
        """Estimated attorney/agent and translation costs, in USD."""
        legal = 0.0
        if request.include_legal_agent_fees:
            complexity = request.complexity
            legal = (
                BASE_LEGAL_FEES.get(jurisdiction.code, DEFAULT_LEGAL_FEE)
                * COMPLEXITY_MULTIPLIERS.get(complexity, 1.0)
                * PROSECUTION_MULTIPLIERS.get(complexity, 1.0)
            )
        translation = 0.0
        if request.include_translation_fees and jurisdiction.has_designations:
            count = request.designated_country_count
            if count is None:
                count = self.default_designated_countries
            translation = TRANSLATION_FEE_PER_COUNTRY * max(0, count)
        return ProfessionalFees(legal_agent=round(legal, 2), translation=translation, currency="USD")

    @staticmethod
    def _due_date(filing_date: date | None, year: int) -> date | None:
        if filing_date is None:
            return None
        return filing_date + relativedelta(years=year)
