"""Savings opportunities derived from a finished cost calculation."""

import logging
from collections.abc import Sequence

from .models import (
    ENTITY_MULTIPLIERS,
    CalculationInput,
    JurisdictionCost,
    SavingsCategory,
    SavingsEstimate,
)

logger = logging.getLogger(__name__)

ONLINE_FILING_DISCOUNTS = {"USPTO": 0.10, "EPO": 0.20, "IPOS": 0.15}
EPO_SME_DISCOUNT = 0.30
MAX_FEE_REDUCTION_SHARE = 0.7

PCT_SAVINGS_SHARE = 0.15
PCT_SEARCH_REUSE = 1500
PROVISIONAL_FILING_SAVINGS = 3000
STAGGERED_FILING_SAVINGS = 3000
PROVISIONAL_COMPLEXITY_MULTIPLIERS = {
    "Simple": 1.0,
    "Complex": 1.5,
    "Cutting-Edge": 2.0,
    "Software/Biotech": 1.8,
}

# Share of patent spend recoverable through tax schemes
TAX_BENEFIT_RATES = {
    "USPTO": {"rnd_credits": 0.20, "innovation_incentives": 0.15},
    "EPO": {"patent_box": 0.10, "innovation_incentives": 0.12},
    "IPOS": {"rnd_credits": 0.25, "innovation_incentives": 0.05},
}
MAX_TAX_BENEFIT_SHARE = 0.4

MAX_SAVINGS_SHARE = 0.5

JURISDICTION_STRATEGIES = {
    "USPTO": [
        "Apply for micro-entity status (75% fee reduction)",
        "File online for 10% discount",
        "Consider SBIR/STTR grants",
    ],
    "EPO": [
        "Qualify for SME status (30% fee reduction)",
        "File online for 20% discount",
        "Selective country validation reduces designation and translation costs",
    ],
    "IPOS": [
        "Apply for IP grants available to local entities",
        "File online for 15% discount",
    ],
}


class SavingsEstimator:
    """Estimates how much of the computed cost an applicant could avoid."""

    def __init__(self, model_tax_benefits: bool = False):
        self.model_tax_benefits = model_tax_benefits

    def estimate(
        self,
        request: CalculationInput,
        per_jurisdiction: Sequence[JurisdictionCost],
        total_cost: float,
    ) -> SavingsEstimate:
        fee_reductions = self.fee_reductions(request, per_jurisdiction)
        grants = self.grant_savings(per_jurisdiction)
        strategic = self.strategic_filing(request, per_jurisdiction, total_cost)
        tax = self.tax_benefits(per_jurisdiction, total_cost)

        raw_total = fee_reductions.total + grants.total + strategic.total + tax.total
        capped_total = min(raw_total, total_cost * MAX_SAVINGS_SHARE)
        ratio = capped_total / raw_total if raw_total > 0 else 1.0
        if ratio < 1.0:
            logger.debug(f"Savings {raw_total:.2f} capped at {capped_total:.2f}")

        fee_reductions = _scale(fee_reductions, ratio)
        grants = _scale(grants, ratio)
        strategic = _scale(strategic, ratio)
        tax = _scale(tax, ratio)

        guaranteed = fee_reductions.total + grants.total
        potential = strategic.total
        if guaranteed > 0:
            confidence = "guaranteed"
        elif potential > 0:
            confidence = "likely"
        else:
            confidence = "potential"

        return SavingsEstimate(
            fee_reductions=fee_reductions,
            grants=grants,
            strategic_filing=strategic,
            tax_benefits=tax,
            total_savings=capped_total,
            guaranteed_savings=guaranteed,
            potential_savings=potential,
            confidence_level=confidence,
            jurisdiction_strategies={
                cost.jurisdiction: list(JURISDICTION_STRATEGIES.get(cost.jurisdiction, []))
                for cost in per_jurisdiction
            },
        )

    def fee_reductions(
        self, request: CalculationInput, per_jurisdiction: Sequence[JurisdictionCost]
    ) -> SavingsCategory:
        entity = 0.0
        sme = 0.0
        online = 0.0
        official_total = 0.0
        for cost in per_jurisdiction:
            official = cost.normalized_total
            official_total += official
            if cost.jurisdiction == "USPTO":
                # Only the step down to micro status the applicant has not already taken
                current = ENTITY_MULTIPLIERS.get(request.entity_type, 1.0)
                entity += official * (1 - ENTITY_MULTIPLIERS["micro"] / current)
            elif cost.jurisdiction == "EPO":
                sme += official * EPO_SME_DISCOUNT
            online += official * ONLINE_FILING_DISCOUNTS.get(cost.jurisdiction, 0.0)

        components = {"entity_status": entity, "sme_status": sme, "online_filing": online}
        raw = entity + sme + online
        capped = min(raw, official_total * MAX_FEE_REDUCTION_SHARE)
        if raw > 0:
            return _scale(SavingsCategory(raw, components), capped / raw)
        return SavingsCategory(0.0, components)

    def grant_savings(self, per_jurisdiction: Sequence[JurisdictionCost]) -> SavingsCategory:
        components = {
            cost.jurisdiction: cost.grant_savings
            for cost in per_jurisdiction
            if cost.grant_savings > 0
        }
        return SavingsCategory(sum(components.values()), components)

    def strategic_filing(
        self,
        request: CalculationInput,
        per_jurisdiction: Sequence[JurisdictionCost],
        total_cost: float,
    ) -> SavingsCategory:
        count = len(per_jurisdiction)
        pct_route = 0.0
        staggered = 0.0
        if count > 1:
            pct_route = total_cost * PCT_SAVINGS_SHARE + count * PCT_SEARCH_REUSE
            staggered = (count - 1) * STAGGERED_FILING_SAVINGS
        provisional = PROVISIONAL_FILING_SAVINGS * PROVISIONAL_COMPLEXITY_MULTIPLIERS.get(request.complexity, 1.0)
        components = {
            "pct_route": pct_route,
            "provisional_filing": provisional,
            "staggered_filing": staggered,
        }
        return SavingsCategory(pct_route + provisional + staggered, components)

    def tax_benefits(self, per_jurisdiction: Sequence[JurisdictionCost], total_cost: float) -> SavingsCategory:
        """Tax scheme savings. Zero unless tax modelling is switched on."""
        if not self.model_tax_benefits:
            return SavingsCategory(0.0, {})
        components: dict[str, float] = {}
        for cost in per_jurisdiction:
            for scheme, rate in TAX_BENEFIT_RATES.get(cost.jurisdiction, {}).items():
                components[scheme] = components.get(scheme, 0.0) + cost.normalized_total * rate
        raw = sum(components.values())
        capped = min(raw, total_cost * MAX_TAX_BENEFIT_SHARE)
        if raw > 0:
            return _scale(SavingsCategory(raw, components), capped / raw)
        return SavingsCategory(0.0, components)


def _scale(category: SavingsCategory, ratio: float) -> SavingsCategory:
    if ratio == 1.0:
        return category
    return SavingsCategory(
        total=category.total * ratio,
        components={name: value * ratio for name, value in category.components.items()},
    )
