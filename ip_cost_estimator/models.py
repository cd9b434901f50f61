"""Data models for the IP cost estimator."""

import logging
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime

IP_TYPES = ("patent", "design", "trademark")
ENTITY_TYPES = ("standard", "small", "micro")
FEE_CATEGORIES = ("filing", "search", "examination", "issue", "claims", "designation", "maintenance")
LIFECYCLE_STAGES = ("pre-grant", "post-grant")
COMPLEXITIES = ("Simple", "Moderate", "Complex", "Cutting-Edge", "Software/Biotech")
COMPANY_SIZES = ("startup", "sme", "large")
FILING_STRATEGIES = ("Direct Filing", "PCT Route")

ENTITY_MULTIPLIERS = {"standard": 1.0, "small": 0.5, "micro": 0.25}

# Maximum number of jurisdictions per calculation, by subscription tier
TIER_LIMITS = {"free": 3, "essential": 5, "professional": 10, "strategic": 20}

logger = logging.getLogger(__name__)

DEFAULT_MAINTENANCE_YEARS = (4, 8, 12, 16, 20)


@dataclass(frozen=True)
class Jurisdiction:
    code: str
    name: str
    currency: str
    grant_country: str
    maintenance_years: tuple[int, ...] = DEFAULT_MAINTENANCE_YEARS
    has_entity_tiers: bool = False
    has_designations: bool = False
    free_claims: int = 15
    free_pages: int = 30
    per_page_fee: float = 50.0
    base_timeline_months: int = 24


JURISDICTIONS = {
    "USPTO": Jurisdiction(
        code="USPTO",
        name="United States Patent and Trademark Office",
        currency="USD",
        grant_country="USA",
        maintenance_years=(4, 8, 12),
        has_entity_tiers=True,
        base_timeline_months=24,
    ),
    "EPO": Jurisdiction(
        code="EPO",
        name="European Patent Office",
        currency="EUR",
        grant_country="EU",
        maintenance_years=tuple(range(3, 21)),
        has_designations=True,
        base_timeline_months=30,
    ),
    "IPOS": Jurisdiction(
        code="IPOS",
        name="Intellectual Property Office of Singapore",
        currency="SGD",
        grant_country="Singapore",
        maintenance_years=(5, 10, 15, 20),
        base_timeline_months=18,
    ),
}


def suggest_complexity(industry_sector: str | None) -> str:
    """Suggest a solution complexity from a free-text industry sector."""
    sector = (industry_sector or "").lower()
    if any(word in sector for word in ("software", "biotechnology", "pharmaceuticals")):
        return "Software/Biotech"
    if any(word in sector for word in ("aerospace", "medical devices", "telecommunications")):
        return "Complex"
    if any(word in sector for word in ("manufacturing", "automotive", "energy")):
        return "Moderate"
    return "Simple"


@dataclass(frozen=True)
class FeeRecord:
    jurisdiction: str
    ip_type: str
    category: str
    lifecycle_stage: str
    currency: str
    effective_date: date
    amount: float | None = None
    standard_amount: float | None = None
    small_amount: float | None = None
    micro_amount: float | None = None
    expiration_date: date | None = None
    year_due: int | None = None
    claims_threshold: int | None = None
    description: str = ""

    @property
    def has_entity_tiers(self) -> bool:
        return self.standard_amount is not None

    @property
    def base_amount(self) -> float:
        """Flat amount, falling back to the standard tier."""
        if self.amount is not None:
            return self.amount
        if self.standard_amount is not None:
            return self.standard_amount
        return 0.0

    def is_active(self, as_of: date) -> bool:
        if self.effective_date > as_of:
            return False
        return self.expiration_date is None or as_of < self.expiration_date

    def amount_for(self, entity_type: str, use_tiers: bool) -> float:
        """Resolve the payable amount for an entity tier.

        Jurisdictions without entity tiers always read the flat amount.
        A tiered record with a missing small/micro column falls back to
        the standard amount scaled by the entity multiplier.
        """
        if not use_tiers or not self.has_entity_tiers:
            return self.base_amount
        tier = {"small": self.small_amount, "micro": self.micro_amount}.get(entity_type)
        if tier is not None:
            return tier
        return self.standard_amount * ENTITY_MULTIPLIERS.get(entity_type, 1.0)


@dataclass(frozen=True)
class ExchangeRate:
    from_currency: str
    to_currency: str
    rate: float
    effective_date: date

    @property
    def key(self) -> tuple[str, str]:
        return (self.from_currency, self.to_currency)


@dataclass(frozen=True)
class EligibilityCriteria:
    company_size: str | None = None
    sector: str | None = None


@dataclass(frozen=True)
class GrantProgram:
    id: str
    name: str
    country: str
    subsidy_percentage: float
    max_subsidy_amount: float
    eligibility: EligibilityCriteria = field(default_factory=EligibilityCriteria)
    is_active: bool = True
    effective_date: date | None = None
    expiration_date: date | None = None
    description: str = ""
    application_url: str = ""

    def is_active_on(self, as_of: date) -> bool:
        if not self.is_active:
            return False
        if self.effective_date is not None and self.effective_date > as_of:
            return False
        return self.expiration_date is None or as_of < self.expiration_date


@dataclass(frozen=True)
class CalculationInput:
    ip_type: str = "patent"
    jurisdictions: tuple[str, ...] = ()
    entity_type: str = "standard"
    solution_complexity: str | None = None
    protection_duration: int = 20
    claim_count: int | None = None
    page_count: int | None = None
    industry_sector: str | None = None
    company_size: str | None = None
    business_description: str | None = None
    designated_country_count: int | None = None
    filing_strategy: str | None = None
    tier: str = "free"
    include_search_fees: bool = True
    include_legal_agent_fees: bool = True
    include_translation_fees: bool = True
    filing_date: date | None = None
    user_email: str | None = None
    calculation_name: str | None = None

    def __post_init__(self):
        if not isinstance(self.jurisdictions, tuple):
            object.__setattr__(self, "jurisdictions", tuple(self.jurisdictions))

    @property
    def complexity(self) -> str:
        return self.solution_complexity or suggest_complexity(self.industry_sector)


@dataclass(frozen=True)
class CostBreakdown:
    """Official fees for one jurisdiction, in its native currency."""
    filing: float = 0.0
    search: float = 0.0
    examination: float = 0.0
    issue: float = 0.0
    maintenance: float = 0.0
    claims_extra: float = 0.0
    pages_extra: float = 0.0
    designations: float = 0.0
    total: float = 0.0
    discounted_total: float = 0.0

    def __post_init__(self):
        # Clamp and log, never raise
        for name, value in self.components().items():
            if value < 0:
                logger.warning(f"Negative {name} fee {value} clamped to 0")
                object.__setattr__(self, name, 0.0)
        component_sum = sum(self.components().values())
        if abs(component_sum - self.total) > 0.01:
            logger.warning(f"Total {self.total} does not match component sum {component_sum}; using the sum")
            object.__setattr__(self, "total", component_sum)
        if not 0 <= self.discounted_total <= self.total:
            clamped = min(max(self.discounted_total, 0.0), self.total)
            logger.warning(f"Discounted total {self.discounted_total} outside [0, {self.total}]; clamped to {clamped}")
            object.__setattr__(self, "discounted_total", clamped)

    def components(self) -> dict[str, float]:
        return {
            "filing": self.filing,
            "search": self.search,
            "examination": self.examination,
            "issue": self.issue,
            "maintenance": self.maintenance,
            "claims_extra": self.claims_extra,
            "pages_extra": self.pages_extra,
            "designations": self.designations,
        }


@dataclass(frozen=True)
class TimelineEntry:
    year: int
    description: str
    amount: float
    fee_type: str
    is_required: bool = True
    due_date: date | None = None


@dataclass(frozen=True)
class ProfessionalFees:
    """Attorney/agent and translation estimates, kept apart from official fees."""
    legal_agent: float = 0.0
    translation: float = 0.0
    currency: str = "USD"

    @property
    def total(self) -> float:
        return self.legal_agent + self.translation


@dataclass(frozen=True)
class JurisdictionCost:
    jurisdiction: str
    currency: str
    costs: CostBreakdown
    timeline: tuple[TimelineEntry, ...] = ()
    applicable_grants: tuple[GrantProgram, ...] = ()
    notes: tuple[str, ...] = ()
    normalized_total: float = 0.0
    normalized_discounted_total: float = 0.0
    professional_fees: ProfessionalFees | None = None

    @property
    def grant_savings(self) -> float:
        return max(0.0, self.normalized_total - self.normalized_discounted_total)


@dataclass(frozen=True)
class TimelineRange:
    min: int
    max: int
    average: int


@dataclass(frozen=True)
class TimelineEstimate:
    filing_to_grant: TimelineRange
    total_timeline: TimelineRange
    prosecution_delay: float
    industry_factor: float
    estimated_grant_date: date | None = None


@dataclass(frozen=True)
class FilingStrategyOption:
    name: str
    total_cost: float
    timeline_months: int


@dataclass(frozen=True)
class FilingStrategyComparison:
    direct_filing: FilingStrategyOption
    pct_route: FilingStrategyOption
    recommended: str


@dataclass(frozen=True)
class SavingsCategory:
    total: float = 0.0
    components: dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class SavingsEstimate:
    fee_reductions: SavingsCategory
    grants: SavingsCategory
    strategic_filing: SavingsCategory
    tax_benefits: SavingsCategory
    total_savings: float
    guaranteed_savings: float
    potential_savings: float
    confidence_level: str  # guaranteed | likely | potential
    jurisdiction_strategies: dict[str, list[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class Insight:
    type: str         # cost_comparison | risk_assessment | optimization | recommendation
    title: str
    message: str
    priority: str     # high | medium | low
    confidence_score: float
    actionable: bool = True
    source: str = "rule"  # rule | narrative | fallback


@dataclass(frozen=True)
class AggregateResult:
    total_cost: float
    total_with_grants: float
    potential_savings: float
    per_jurisdiction: tuple[JurisdictionCost, ...]
    timeline: TimelineEstimate
    insights: tuple[Insight, ...]
    risk_score: float
    exchange_rates_used: dict[str, float]
    recommended_grants: tuple[GrantProgram, ...]
    savings: SavingsEstimate
    calculation_date: date
    reporting_currency: str = "USD"
    filing_strategy: str = "Direct Filing"
    filing_strategy_comparison: FilingStrategyComparison | None = None
    professional_fees_total: float = 0.0
    maintenance_strategy: str = ""
    cash_flow_alerts: tuple[str, ...] = ()
    calculation_notes: tuple[str, ...] = ()
    calculation_id: int | None = None

    def jurisdiction(self, code: str) -> JurisdictionCost | None:
        for cost in self.per_jurisdiction:
            if cost.jurisdiction == code:
                return cost
        return None


@dataclass
class CalculationRecord:
    """A stored user calculation. Written once, updated at most once after payment."""
    ip_type: str
    jurisdictions: list[str]
    entity_type: str
    duration_years: int
    result: dict
    id: int | None = None
    user_email: str | None = None
    calculation_name: str | None = None
    industry_sector: str | None = None
    business_description: str | None = None
    claim_count: int | None = None
    page_count: int | None = None
    has_paid: bool = False
    payment_id: str | None = None
    detailed_result: dict | None = None
    ai_insights: list | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime | None = None

    @property
    def total_cost(self) -> float:
        return float(self.result.get("total_cost", 0.0))


def to_jsonable(value):
    """Convert dataclasses, dates and tuples into JSON-friendly structures."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value
