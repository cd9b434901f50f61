"""Tests for per-jurisdiction fee calculation."""

from datetime import date

import pytest

from ip_cost_estimator.currency import CurrencyNormalizer
from ip_cost_estimator.fee_calculator import FeeCalculator
from ip_cost_estimator.fee_table import FeeTable
from ip_cost_estimator.grants import GrantMatcher
from ip_cost_estimator.models import CalculationInput, GrantProgram
from ip_cost_estimator.reference_data import StaticReferenceStore


AS_OF = date(2025, 6, 1)


def make_request(**kwargs) -> CalculationInput:
    defaults = {
        "ip_type": "patent",
        "jurisdictions": ("USPTO",),
        "entity_type": "standard",
        "protection_duration": 20,
        "claim_count": 10,
        "page_count": 20,
    }
    defaults.update(kwargs)
    return CalculationInput(**defaults)


def make_table(store=None) -> FeeTable:
    store = store or StaticReferenceStore()
    records = []
    for jurisdiction in ("USPTO", "EPO", "IPOS"):
        for ip_type in ("patent", "design", "trademark"):
            records.extend(store.get_fees(jurisdiction, ip_type, AS_OF))
    return FeeTable(records)


def make_normalizer() -> CurrencyNormalizer:
    return CurrencyNormalizer(StaticReferenceStore().get_rates_as_of(AS_OF))


def calculate(code, grants=None, **kwargs):
    matcher = GrantMatcher(grants, AS_OF) if grants is not None else None
    calculator = FeeCalculator(make_table(), grant_matcher=matcher)
    return calculator.calculate(code, make_request(jurisdictions=(code,), **kwargs), AS_OF, make_normalizer())


def test_uspto_standard_entity():
    cost = calculate("USPTO")
    costs = cost.costs

    assert costs.filing == 400
    assert costs.search == 1000
    assert costs.examination == 2500
    assert costs.issue == 1200
    assert costs.claims_extra == 0
    assert costs.pages_extra == 0
    assert costs.maintenance == 1600 + 3600 + 7400
    assert costs.total == 5100 + 12600
    assert cost.currency == "USD"
    assert cost.normalized_total == costs.total

    maintenance_years = [e.year for e in cost.timeline if e.fee_type == "maintenance"]
    assert maintenance_years == [4, 8, 12]


def test_uspto_micro_entity_quarter_of_standard():
    standard = calculate("USPTO").costs
    micro = calculate("USPTO", entity_type="micro").costs

    for name in ("filing", "search", "examination", "issue", "maintenance"):
        assert getattr(micro, name) == pytest.approx(getattr(standard, name) * 0.25)
    assert micro.total == pytest.approx(standard.total * 0.25)


def test_uspto_micro_claims_overage_quarter_of_standard():
    standard = calculate("USPTO", claim_count=25).costs
    micro = calculate("USPTO", entity_type="micro", claim_count=25).costs

    assert standard.claims_extra == 5 * 200
    assert micro.claims_extra == pytest.approx(standard.claims_extra * 0.25)


def test_uspto_small_entity():
    small = calculate("USPTO", entity_type="small").costs
    assert small.filing == 200
    assert small.maintenance == pytest.approx(12600 * 0.5)


def test_epo_claims_overage_without_entity_discount():
    standard = calculate("EPO", claim_count=25).costs
    micro = calculate("EPO", claim_count=25, entity_type="micro").costs

    assert standard.claims_extra == 10 * 270
    assert micro.claims_extra == standard.claims_extra
    assert micro.total == standard.total


def test_claims_at_threshold_no_overage():
    assert calculate("EPO", claim_count=15).costs.claims_extra == 0
    assert calculate("USPTO", claim_count=20).costs.claims_extra == 0


def test_pages_overage():
    cost = calculate("IPOS", page_count=40)
    assert cost.costs.pages_extra == 10 * 50.0


def test_epo_designations_default_and_explicit():
    assert calculate("EPO").costs.designations == 5 * 120
    assert calculate("EPO", designated_country_count=8).costs.designations == 8 * 120
    assert calculate("EPO", designated_country_count=0).costs.designations == 0
    assert calculate("USPTO", designated_country_count=8).costs.designations == 0


def test_epo_maintenance_uses_tabulated_and_formula_years():
    cost = calculate("EPO", protection_duration=12)
    by_year = {e.year: e.amount for e in cost.timeline if e.fee_type == "maintenance"}

    assert sorted(by_year) == list(range(3, 13))
    assert by_year[3] == 530
    assert by_year[10] == 1590
    assert by_year[11] == pytest.approx(1000 * (1 + 11 / 20))
    assert by_year[12] == pytest.approx(1000 * (1 + 12 / 20))


def test_epo_normalized_total_uses_rate():
    cost = calculate("EPO")
    assert cost.currency == "EUR"
    assert cost.normalized_total == pytest.approx(cost.costs.total * 1.07)


def test_search_fees_excluded():
    with_search = calculate("IPOS")
    without = calculate("IPOS", include_search_fees=False)

    assert without.costs.search == 0
    assert without.costs.total == with_search.costs.total - 1735
    assert not any(e.fee_type == "search" for e in without.timeline)
    assert any("Search fees excluded" in n for n in without.notes)


def test_timeline_sorted_by_year():
    cost = calculate("EPO", claim_count=20, page_count=35)
    years = [e.year for e in cost.timeline]
    assert years == sorted(years)
    assert [e.fee_type for e in cost.timeline[:4]] == ["filing", "search", "claims", "pages"]


def test_timeline_omits_zero_amounts():
    cost = calculate("IPOS", ip_type="trademark")
    assert [e.fee_type for e in cost.timeline] == ["filing"]
    assert cost.costs.total == 240


def test_due_dates_from_filing_date():
    cost = calculate("USPTO", filing_date=date(2025, 3, 1))
    due = {e.fee_type + str(e.year): e.due_date for e in cost.timeline}
    assert due["filing0"] == date(2025, 3, 1)
    assert due["examination1"] == date(2026, 3, 1)
    assert due["maintenance4"] == date(2029, 3, 1)


def test_missing_fee_records_count_as_zero_with_notes():
    calculator = FeeCalculator(FeeTable([]))
    cost = calculator.calculate("IPOS", make_request(jurisdictions=("IPOS",)), AS_OF, make_normalizer())

    assert cost.costs.total == 0
    assert cost.timeline == ()
    assert cost.notes
    assert any("maintenance" in note for note in cost.notes)


def test_fee_gap_note_carried_into_result():
    calculator = FeeCalculator(FeeTable([]), fee_gaps={("EPO", "patent"): "EPO patent fee schedule unavailable"})
    cost = calculator.calculate("EPO", make_request(jurisdictions=("EPO",)), AS_OF, make_normalizer())
    assert cost.notes[0] == "EPO patent fee schedule unavailable"


def test_grants_reduce_discounted_total():
    grant = GrantProgram(id="sg", name="EDG", country="Singapore", subsidy_percentage=50, max_subsidy_amount=1000)
    cost = calculate("IPOS", grants=[grant])

    assert cost.applicable_grants == (grant,)
    assert cost.costs.discounted_total == pytest.approx(cost.costs.total - 1000)
    assert cost.grant_savings == pytest.approx(1000 * 0.74)


def test_no_matcher_no_discount():
    cost = calculate("IPOS")
    assert cost.costs.discounted_total == cost.costs.total
    assert cost.applicable_grants == ()


def test_total_monotonic_in_claims_and_duration():
    previous = 0.0
    for claims in (5, 16, 20, 30, 60):
        total = calculate("EPO", claim_count=claims).costs.total
        assert total >= previous
        previous = total

    previous = 0.0
    for duration in (1, 3, 5, 10, 20):
        total = calculate("EPO", protection_duration=duration).costs.total
        assert total >= previous
        previous = total


def test_components_sum_to_total_everywhere():
    for code in ("USPTO", "EPO", "IPOS"):
        for ip_type in ("patent", "design", "trademark"):
            for entity in ("standard", "small", "micro"):
                cost = calculate(code, ip_type=ip_type, entity_type=entity, claim_count=30, page_count=45)
                costs = cost.costs
                assert sum(costs.components().values()) == pytest.approx(costs.total)
                assert sum(entry.amount for entry in cost.timeline) == pytest.approx(costs.total)
                assert 0 <= costs.discounted_total <= costs.total


def test_professional_fees():
    cost = calculate("EPO", solution_complexity="Simple", designated_country_count=3)
    fees = cost.professional_fees
    assert fees.currency == "USD"
    assert fees.legal_agent == pytest.approx(12000 * 1.0 * (0.7 + 0.325 + 0.1))
    assert fees.translation == 3 * 3000
    # Professional fees are not official fees
    assert cost.costs.total == calculate("EPO", solution_complexity="Simple", designated_country_count=3,
                                         include_legal_agent_fees=False,
                                         include_translation_fees=False).costs.total


def test_professional_fees_switched_off():
    cost = calculate("USPTO", include_legal_agent_fees=False, include_translation_fees=False)
    assert cost.professional_fees is None


def test_translation_only_for_designations():
    cost = calculate("USPTO", include_legal_agent_fees=False)
    assert cost.professional_fees.translation == 0
    assert cost.professional_fees.legal_agent == 0
