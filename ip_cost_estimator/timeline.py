"""Filing-to-grant timeline estimation and filing strategy comparison."""

import logging
import math
from collections.abc import Sequence
from datetime import date

from dateutil.relativedelta import relativedelta

from .models import (
    JURISDICTIONS,
    FilingStrategyComparison,
    FilingStrategyOption,
    TimelineEstimate,
    TimelineRange,
)

logger = logging.getLogger(__name__)

INDUSTRY_FACTORS = {
    "Biotechnology & Life Sciences": 1.4,
    "Pharmaceuticals": 1.5,
    "Software/Biotech": 1.6,
    "Other": 1.1,
}
DEFAULT_INDUSTRY_FACTOR = 1.1

# Extra months of prosecution by solution complexity
PROSECUTION_DELAYS = {
    "Simple": 3,
    "Complex": 9,
    "Cutting-Edge": 15,
    "Software/Biotech": 12,
}
DEFAULT_PROSECUTION_DELAY = 6

DEFAULT_BASE_TIMELINE = 24
MIN_FILING_TO_GRANT = 18
RANGE_SPREAD = 6
POST_GRANT_MONTHS = 12

PCT_COST_FACTOR = 1.3
PCT_EXTRA_MONTHS = 18


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def suggest_filing_strategy(jurisdictions: Sequence[str]) -> str:
    return "Direct Filing" if len(jurisdictions) <= 2 else "PCT Route"


class TimelineEstimator:
    """Estimates how long prosecution takes across the requested offices."""

    def industry_factor(self, industry: str | None) -> float:
        return INDUSTRY_FACTORS.get(industry or "", DEFAULT_INDUSTRY_FACTOR)

    def prosecution_delay(self, complexity: str | None) -> int:
        return PROSECUTION_DELAYS.get(complexity or "", DEFAULT_PROSECUTION_DELAY)

    def months_to_grant(self, code: str, industry: str | None, complexity: str | None) -> int:
        info = JURISDICTIONS.get(code)
        base = info.base_timeline_months if info else DEFAULT_BASE_TIMELINE
        return round_half_up(base * self.industry_factor(industry) + self.prosecution_delay(complexity))

    def estimate_jurisdiction(self, code: str, industry: str | None, complexity: str | None) -> TimelineRange:
        months = self.months_to_grant(code, industry, complexity)
        return TimelineRange(
            min=max(MIN_FILING_TO_GRANT, months - RANGE_SPREAD),
            max=months + RANGE_SPREAD,
            average=months,
        )

    def estimate(
        self,
        jurisdictions: Sequence[str],
        industry: str | None,
        complexity: str | None,
        filing_date: date | None = None,
    ) -> TimelineEstimate:
        """Aggregate timeline across jurisdictions.

        Each of min/max/average is the rounded arithmetic mean of the
        per-jurisdiction values, not the overall worst case.
        """
        ranges = [self.estimate_jurisdiction(code, industry, complexity) for code in jurisdictions]
        count = len(ranges) or 1
        filing_to_grant = TimelineRange(
            min=round_half_up(sum(r.min for r in ranges) / count),
            max=round_half_up(sum(r.max for r in ranges) / count),
            average=round_half_up(sum(r.average for r in ranges) / count),
        )
        total_timeline = TimelineRange(
            min=filing_to_grant.min + POST_GRANT_MONTHS,
            max=filing_to_grant.max + POST_GRANT_MONTHS,
            average=filing_to_grant.average + POST_GRANT_MONTHS,
        )
        grant_date = None
        if filing_date is not None:
            grant_date = filing_date + relativedelta(months=filing_to_grant.average)

        return TimelineEstimate(
            filing_to_grant=filing_to_grant,
            total_timeline=total_timeline,
            prosecution_delay=self.prosecution_delay(complexity),
            industry_factor=round(self.industry_factor(industry), 2),
            estimated_grant_date=grant_date,
        )

    def compare_filing_strategies(
        self,
        jurisdictions: Sequence[str],
        total_cost: float,
        timeline: TimelineEstimate,
    ) -> FilingStrategyComparison | None:
        """Direct national filings versus the PCT route. Only meaningful for several offices."""
        if len(jurisdictions) <= 1:
            return None
        months = timeline.filing_to_grant.average
        return FilingStrategyComparison(
            direct_filing=FilingStrategyOption("Direct Filing", total_cost, months),
            pct_route=FilingStrategyOption("PCT Route", total_cost * PCT_COST_FACTOR, months + PCT_EXTRA_MONTHS),
            recommended=suggest_filing_strategy(jurisdictions),
        )
