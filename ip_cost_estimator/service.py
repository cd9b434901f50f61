"""Service layer: reusable calculation workflow for the CLI and other callers."""

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import date

from .api.rest_store import RestReferenceStore
from .config import CalculatorConfig, Config
from .currency import CurrencyNormalizer
from .db import Database
from .errors import ValidationError
from .fee_calculator import FeeCalculator
from .fee_table import ReferenceDataCache
from .grants import GrantMatcher
from .insights import InsightComposer, calculate_risk_score
from .maintenance import MaintenanceScheduler, cash_flow_alerts, maintenance_strategy, yearly_costs
from .models import AggregateResult, CalculationInput, CalculationRecord, to_jsonable
from .narrative import AnthropicNarrativeService
from .reference_data import StaticReferenceStore
from .savings import SavingsEstimator
from .timeline import TimelineEstimator, suggest_filing_strategy
from .validation import validate_input

logger = logging.getLogger(__name__)


def build_reference_cache(
    config: Config,
    db: Database | None = None,
    clock: Callable[[], date] | None = None,
) -> ReferenceDataCache:
    """Create the reference data cache for the configured source."""
    source = config.sources.reference_data
    if source == "database":
        if db is None:
            raise ValueError("A database is required for the 'database' reference source")
        store = db
    elif source == "rest":
        store = RestReferenceStore(
            base_url=config.rest.base_url,
            api_key=config.rest.api_key,
            rate_limit=config.rest.rate_limit_per_minute,
            timeout=config.rest.timeout_seconds,
            max_retries=config.rest.max_retries,
        )
    else:
        store = StaticReferenceStore()
    logger.info(f"Using {source} reference data")
    return ReferenceDataCache(store, clock=clock)


def build_narrative_service(config: Config) -> AnthropicNarrativeService | None:
    if not config.narrative.enabled:
        return None
    if not config.narrative.api_key:
        logger.warning("Narrative insights enabled but ANTHROPIC_API_KEY is not set")
        return None
    return AnthropicNarrativeService(config.narrative)


def calculate_costs(
    request: CalculationInput,
    cache: ReferenceDataCache,
    settings: CalculatorConfig | None = None,
    narrative_service=None,
    result_store=None,
) -> AggregateResult:
    """Run a full multi-jurisdiction cost calculation.

    Args:
        request: What to estimate.
        cache: Reference data cache; loaded on first use.
        settings: Calculator settings (reporting currency, thresholds).
        narrative_service: Optional object with complete(prompt) -> list[str].
        result_store: Optional store with save(record) -> id. Failures are logged.

    Returns:
        AggregateResult with one entry per requested jurisdiction.

    Raises:
        ValidationError: The request is malformed. Nothing is computed.
    """
    errors = validate_input(request)
    if errors:
        raise ValidationError(errors)

    settings = settings or CalculatorConfig()
    reference = cache.ensure_loaded()
    as_of = reference.as_of

    normalizer = CurrencyNormalizer(reference.rates, settings.reporting_currency)
    matcher = GrantMatcher(reference.grants, as_of)
    calculator = FeeCalculator(
        reference.fee_table,
        MaintenanceScheduler(reference.fee_table),
        matcher,
        default_designated_countries=settings.designated_countries,
        fee_gaps=reference.fee_gaps,
    )

    per_jurisdiction = tuple(
        calculator.calculate(code, request, as_of, normalizer) for code in request.jurisdictions
    )

    total_cost = sum(cost.normalized_total for cost in per_jurisdiction)
    total_with_grants = min(total_cost, sum(cost.normalized_discounted_total for cost in per_jurisdiction))
    professional_total = sum(
        normalizer.to_reporting_currency(cost.professional_fees.total, cost.professional_fees.currency)
        for cost in per_jurisdiction
        if cost.professional_fees is not None
    )

    estimator = TimelineEstimator()
    timeline = estimator.estimate(
        request.jurisdictions, request.industry_sector, request.complexity, request.filing_date
    )
    comparison = estimator.compare_filing_strategies(request.jurisdictions, total_cost, timeline)

    savings = SavingsEstimator(settings.model_tax_benefits).estimate(request, per_jurisdiction, total_cost)

    composer = InsightComposer(
        narrative_service,
        claims_threshold=settings.claims_insight_threshold,
        high_cost_threshold=settings.high_cost_threshold,
        reporting_currency=settings.reporting_currency,
    )
    insights = composer.compose(request, per_jurisdiction, total_cost)

    maintenance_by_year = yearly_costs(per_jurisdiction, normalizer, fee_type="maintenance")
    alerts = cash_flow_alerts(yearly_costs(per_jurisdiction, normalizer), settings.reporting_currency)

    notes = list(reference.notes)
    for cost in per_jurisdiction:
        notes.extend(f"{cost.jurisdiction}: {note}" for note in cost.notes)
    notes.extend(normalizer.notes())
    if request.solution_complexity is None:
        notes.append(f"Complexity '{request.complexity}' suggested from industry sector")

    result = AggregateResult(
        total_cost=total_cost,
        total_with_grants=total_with_grants,
        potential_savings=max(0.0, total_cost - total_with_grants),
        per_jurisdiction=per_jurisdiction,
        timeline=timeline,
        insights=tuple(insights),
        risk_score=calculate_risk_score(request, total_cost),
        exchange_rates_used=dict(normalizer.rates_used),
        recommended_grants=tuple(matcher.recommend(
            request.jurisdictions, request.company_size, request.industry_sector
        )),
        savings=savings,
        calculation_date=as_of,
        reporting_currency=settings.reporting_currency,
        filing_strategy=request.filing_strategy or suggest_filing_strategy(request.jurisdictions),
        filing_strategy_comparison=comparison,
        professional_fees_total=professional_total,
        maintenance_strategy=maintenance_strategy(maintenance_by_year),
        cash_flow_alerts=tuple(alerts),
        calculation_notes=tuple(notes),
    )

    logger.info(
        f"Calculated {request.ip_type} costs for {', '.join(request.jurisdictions)}: "
        f"{total_cost:,.2f} {settings.reporting_currency} ({len(notes)} notes)"
    )

    if result_store is not None:
        calculation_id = save_calculation(result_store, request, result)
        if calculation_id is not None:
            result = replace(result, calculation_id=calculation_id)

    return result


def save_calculation(result_store, request: CalculationInput, result: AggregateResult) -> int | None:
    """Persist a calculation. Returns its id, or None when the store fails."""
    record = CalculationRecord(
        ip_type=request.ip_type,
        jurisdictions=list(request.jurisdictions),
        entity_type=request.entity_type,
        duration_years=request.protection_duration,
        result=to_jsonable(result),
        user_email=request.user_email,
        calculation_name=request.calculation_name,
        industry_sector=request.industry_sector,
        business_description=request.business_description,
        claim_count=request.claim_count,
        page_count=request.page_count,
    )
    try:
        calculation_id = result_store.save(record)
    except Exception as e:
        logger.error(f"Failed to store calculation: {e}")
        return None
    logger.info(f"Stored calculation {calculation_id}")
    return calculation_id


def record_payment(
    result_store,
    calculation_id: int,
    payment_id: str,
    result: AggregateResult | None = None,
) -> bool:
    """Mark a stored calculation paid and attach the detailed result."""
    detailed = to_jsonable(result) if result is not None else None
    insights = [to_jsonable(insight) for insight in result.insights] if result is not None else None
    try:
        updated = result_store.mark_paid(calculation_id, payment_id, detailed, insights)
    except Exception as e:
        logger.error(f"Failed to record payment for calculation {calculation_id}: {e}")
        return False
    if updated:
        logger.info(f"Calculation {calculation_id} marked paid ({payment_id})")
    return updated
