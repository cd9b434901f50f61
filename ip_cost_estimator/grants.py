"""Grant program matching against applicant details."""

import logging
from collections.abc import Iterable
from datetime import date

from .models import JURISDICTIONS, GrantProgram

logger = logging.getLogger(__name__)


class GrantMatcher:
    """Determines which grant programs an applicant qualifies for."""

    def __init__(self, grants: Iterable[GrantProgram], as_of: date | None = None):
        self.grants = [g for g in grants if as_of is None or g.is_active_on(as_of)]

    def find_applicable(
        self,
        jurisdiction: str,
        company_size: str | None = None,
        sector: str | None = None,
    ) -> list[GrantProgram]:
        """Grants for the jurisdiction's country whose criteria the applicant meets.

        Args:
            jurisdiction: Office code, mapped to its grant country.
            company_size: Applicant company size, if known.
            sector: Applicant industry sector, if known.

        Returns:
            Matching grants in store order. Empty if none apply.
        """
        info = JURISDICTIONS.get(jurisdiction)
        if info is None:
            return []

        matches = []
        for grant in self.grants:
            if grant.country != info.grant_country:
                continue
            if self._is_eligible(grant, company_size, sector):
                matches.append(grant)
        return matches

    def _is_eligible(self, grant: GrantProgram, company_size: str | None, sector: str | None) -> bool:
        """Every populated criterion must equal the applicant's value."""
        criteria = grant.eligibility
        if criteria.company_size and criteria.company_size != company_size:
            logger.debug(f"Grant {grant.name} requires company size {criteria.company_size}")
            return False
        if criteria.sector and criteria.sector != sector:
            logger.debug(f"Grant {grant.name} requires sector {criteria.sector}")
            return False
        return True

    def apply_discount(self, total: float, grants: Iterable[GrantProgram]) -> float:
        """Apply stacked grants to a total.

        Each discount is min(total * pct / 100, max_subsidy) measured against
        the original total, then subtracted from the running value. The
        result never drops below zero.
        """
        discounted = total
        for grant in grants:
            discount = min(total * grant.subsidy_percentage / 100, grant.max_subsidy_amount)
            discounted = max(0.0, discounted - discount)
        return discounted

    def recommend(
        self,
        jurisdictions: Iterable[str],
        company_size: str | None = None,
        sector: str | None = None,
        limit: int = 3,
    ) -> list[GrantProgram]:
        """Best matching grants across jurisdictions, highest subsidy first."""
        seen = set()
        candidates = []
        for code in jurisdictions:
            for grant in self.find_applicable(code, company_size, sector):
                if grant.id not in seen:
                    seen.add(grant.id)
                    candidates.append(grant)
        candidates.sort(key=lambda g: g.subsidy_percentage, reverse=True)
        return candidates[:limit]
