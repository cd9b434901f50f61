"""Calculation input validation."""

from .models import (
    COMPANY_SIZES,
    COMPLEXITIES,
    ENTITY_TYPES,
    FILING_STRATEGIES,
    IP_TYPES,
    JURISDICTIONS,
    TIER_LIMITS,
    CalculationInput,
)

MIN_DURATION = 1
MAX_DURATION = 20


def validate_input(request: CalculationInput) -> list[str]:
    """Validate a calculation request and return a list of errors (empty if valid)."""
    errors = []

    if request.ip_type not in IP_TYPES:
        errors.append(f"Unknown IP type '{request.ip_type}' (expected one of: {', '.join(IP_TYPES)})")

    if not request.jurisdictions:
        errors.append("At least one jurisdiction is required")
    for code in request.jurisdictions:
        if code not in JURISDICTIONS:
            errors.append(f"Unknown jurisdiction '{code}' (expected one of: {', '.join(JURISDICTIONS)})")
    if len(set(request.jurisdictions)) != len(request.jurisdictions):
        errors.append("Jurisdictions must not repeat")

    if request.tier not in TIER_LIMITS:
        errors.append(f"Unknown tier '{request.tier}' (expected one of: {', '.join(TIER_LIMITS)})")
    elif len(request.jurisdictions) > TIER_LIMITS[request.tier]:
        errors.append(
            f"The {request.tier} tier allows at most {TIER_LIMITS[request.tier]} jurisdictions, "
            f"got {len(request.jurisdictions)}"
        )

    if request.entity_type not in ENTITY_TYPES:
        errors.append(f"Unknown entity type '{request.entity_type}' (expected one of: {', '.join(ENTITY_TYPES)})")

    if request.solution_complexity is not None and request.solution_complexity not in COMPLEXITIES:
        errors.append(f"Unknown solution complexity '{request.solution_complexity}'")

    if not isinstance(request.protection_duration, int) or not (
        MIN_DURATION <= request.protection_duration <= MAX_DURATION
    ):
        errors.append(
            f"Protection duration must be between {MIN_DURATION} and {MAX_DURATION} years, "
            f"got {request.protection_duration!r}"
        )

    for name in ("claim_count", "page_count", "designated_country_count"):
        value = getattr(request, name)
        if value is not None and (not isinstance(value, int) or value < 0):
            errors.append(f"{name} must be a non-negative integer, got {value!r}")

    if request.company_size is not None and request.company_size not in COMPANY_SIZES:
        errors.append(f"Unknown company size '{request.company_size}' (expected one of: {', '.join(COMPANY_SIZES)})")

    if request.filing_strategy is not None and request.filing_strategy not in FILING_STRATEGIES:
        errors.append(f"Unknown filing strategy '{request.filing_strategy}'")

    return errors
