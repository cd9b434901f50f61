"""Rule-based and narrative insights, plus the filing risk score."""

import logging
from collections.abc import Sequence

from jinja2 import Template

from .models import CalculationInput, Insight, JurisdictionCost

logger = logging.getLogger(__name__)

COST_VARIATION_RATIO = 1.5
MAINTENANCE_SHARE_THRESHOLD = 0.5
MAX_NARRATIVE_INSIGHTS = 3

FALLBACK_INSIGHTS = (
    Insight(
        type="recommendation",
        title="Consider Timing Strategy",
        message="File a provisional patent first to secure priority at lower cost.",
        priority="high",
        confidence_score=0.8,
        source="fallback",
    ),
    Insight(
        type="cost_comparison",
        title="Jurisdiction Selection",
        message="Focus on key markets first, then expand internationally as revenue grows.",
        priority="medium",
        confidence_score=0.7,
        source="fallback",
    ),
)

PROMPT_TEMPLATE = Template("""Business: "{{ request.business_description }}"
IP type: {{ request.ip_type }}
Estimated official filing costs: {{ "{:,.0f}".format(total_cost) }} {{ currency }}
{% for cost in per_jurisdiction -%}
- {{ cost.jurisdiction }}: {{ "{:,.0f}".format(cost.normalized_total) }} {{ currency }}
{% endfor -%}
{% if request.industry_sector %}Industry: {{ request.industry_sector }}
{% endif -%}
{% if request.company_size %}Company size: {{ request.company_size }}
{% endif -%}
Complexity: {{ request.complexity }}
Protection duration: {{ request.protection_duration }} years

Provide actionable recommendations considering the company stage, industry dynamics and costs. Focus on timing, costs and strategic value.""")


class InsightComposer:
    """Builds the insight list for a calculation.

    Rule insights come first, in a fixed order. When the applicant describes
    their business, narrative insights follow; if the narrative service is
    missing or fails, two static insights take their place.
    """

    def __init__(
        self,
        narrative_service=None,
        claims_threshold: int = 20,
        high_cost_threshold: float = 50000,
        reporting_currency: str = "USD",
    ):
        self.narrative_service = narrative_service
        self.claims_threshold = claims_threshold
        self.high_cost_threshold = high_cost_threshold
        self.reporting_currency = reporting_currency

    def compose(
        self,
        request: CalculationInput,
        per_jurisdiction: Sequence[JurisdictionCost],
        total_cost: float,
    ) -> list[Insight]:
        insights = self.rule_insights(request, per_jurisdiction, total_cost)
        if request.business_description:
            insights.extend(self.narrative_insights(request, per_jurisdiction, total_cost))
        return insights

    def rule_insights(
        self,
        request: CalculationInput,
        per_jurisdiction: Sequence[JurisdictionCost],
        total_cost: float,
    ) -> list[Insight]:
        insights = []
        currency = self.reporting_currency

        if len(per_jurisdiction) > 1:
            ordered = sorted(per_jurisdiction, key=lambda c: c.normalized_total)
            cheapest, priciest = ordered[0], ordered[-1]
            if priciest.normalized_total > cheapest.normalized_total * COST_VARIATION_RATIO:
                if cheapest.normalized_total > 0:
                    percent = round(
                        (priciest.normalized_total - cheapest.normalized_total) / cheapest.normalized_total * 100
                    )
                    detail = f"{cheapest.jurisdiction} is {percent}% cheaper than {priciest.jurisdiction}."
                else:
                    detail = (
                        f"{cheapest.jurisdiction} has no tabulated official fees while "
                        f"{priciest.jurisdiction} costs {priciest.normalized_total:,.0f} {currency}."
                    )
                insights.append(Insight(
                    type="cost_comparison",
                    title="Significant Cost Variation",
                    message=f"Filing costs vary significantly across jurisdictions. {detail}",
                    priority="medium",
                    confidence_score=0.9,
                ))

        if total_cost > self.high_cost_threshold:
            insights.append(Insight(
                type="risk_assessment",
                title="High Filing Costs",
                message=(
                    f"Total estimated cost of {total_cost:,.0f} {currency} is substantial. "
                    "Consider prioritizing key markets or phasing your filing strategy."
                ),
                priority="high",
                confidence_score=0.8,
            ))

        if request.tier != "free":
            insights.append(Insight(
                type="optimization",
                title="Entity Status Benefits",
                message="Ensure you qualify for small or micro entity status to reduce USPTO fees by up to 75%.",
                priority="medium",
                confidence_score=0.7,
            ))

        if request.claim_count and request.claim_count > self.claims_threshold:
            insights.append(Insight(
                type="optimization",
                title="Reduce Claim Count",
                message=(
                    f"{request.claim_count} claims exceed the {self.claims_threshold} most offices include. "
                    "Consolidating dependent claims lowers excess claim fees."
                ),
                priority="medium",
                confidence_score=0.75,
            ))

        shares = [
            cost.costs.maintenance / cost.costs.total
            for cost in per_jurisdiction
            if cost.costs.total > 0
        ]
        if shares and sum(shares) / len(shares) > MAINTENANCE_SHARE_THRESHOLD:
            insights.append(Insight(
                type="recommendation",
                title="Maintenance Fees Dominate",
                message=(
                    "Renewal fees make up most of the lifetime cost. Review the commercial value "
                    "of each patent before later renewals and let unused rights lapse."
                ),
                priority="medium",
                confidence_score=0.7,
            ))

        return insights

    def narrative_insights(
        self,
        request: CalculationInput,
        per_jurisdiction: Sequence[JurisdictionCost],
        total_cost: float,
    ) -> list[Insight]:
        if self.narrative_service is None:
            logger.info("No narrative service configured, using fallback insights")
            return list(FALLBACK_INSIGHTS)

        prompt = self.build_prompt(request, per_jurisdiction, total_cost)
        try:
            lines = self.narrative_service.complete(prompt)
        except Exception as e:
            logger.warning(f"Narrative insights unavailable, using fallback: {e}")
            return list(FALLBACK_INSIGHTS)

        insights = []
        for line in [line.strip() for line in lines if line and line.strip()][:MAX_NARRATIVE_INSIGHTS]:
            insights.append(Insight(
                type="recommendation",
                title=f"AI Recommendation {len(insights) + 1}",
                message=line,
                priority="high" if not insights else "medium",
                confidence_score=0.75,
                source="narrative",
            ))
        return insights

    def build_prompt(
        self,
        request: CalculationInput,
        per_jurisdiction: Sequence[JurisdictionCost],
        total_cost: float,
    ) -> str:
        return PROMPT_TEMPLATE.render(
            request=request,
            per_jurisdiction=per_jurisdiction,
            total_cost=total_cost,
            currency=self.reporting_currency,
        )


def calculate_risk_score(request: CalculationInput, total_cost: float) -> float:
    """Rough filing risk between 0 and 1."""
    score = 0.3
    if len(request.jurisdictions) > 2:
        score += 0.15
    if request.protection_duration > 15:
        score += 0.1
    if request.claim_count and request.claim_count > 25:
        score += 0.1
    if total_cost > 100000:
        score += 0.2
    return round(max(0.0, min(1.0, score)), 2)
