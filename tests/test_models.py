"""Tests for data models."""

from datetime import date, datetime

from ip_cost_estimator.models import (
    CalculationInput,
    CostBreakdown,
    FeeRecord,
    GrantProgram,
    TimelineEntry,
    suggest_complexity,
    to_jsonable,
)


def make_fee(**kwargs) -> FeeRecord:
    defaults = {
        "jurisdiction": "USPTO",
        "ip_type": "patent",
        "category": "filing",
        "lifecycle_stage": "pre-grant",
        "currency": "USD",
        "effective_date": date(2025, 1, 1),
        "standard_amount": 400.0,
        "small_amount": 200.0,
        "micro_amount": 100.0,
    }
    defaults.update(kwargs)
    return FeeRecord(**defaults)


def test_fee_is_active_window():
    fee = make_fee(expiration_date=date(2026, 1, 1))
    assert fee.is_active(date(2025, 1, 1)) is True
    assert fee.is_active(date(2025, 12, 31)) is True
    assert fee.is_active(date(2026, 1, 1)) is False  # expiration is exclusive
    assert fee.is_active(date(2024, 12, 31)) is False


def test_fee_amount_for_entity_tiers():
    fee = make_fee()
    assert fee.amount_for("standard", use_tiers=True) == 400.0
    assert fee.amount_for("small", use_tiers=True) == 200.0
    assert fee.amount_for("micro", use_tiers=True) == 100.0


def test_fee_amount_for_missing_tier_uses_multiplier():
    fee = make_fee(small_amount=None, micro_amount=None)
    assert fee.amount_for("small", use_tiers=True) == 200.0
    assert fee.amount_for("micro", use_tiers=True) == 100.0


def test_fee_amount_for_jurisdiction_without_tiers():
    fee = make_fee(jurisdiction="EPO", currency="EUR", amount=135.0,
                   standard_amount=None, small_amount=None, micro_amount=None)
    assert fee.has_entity_tiers is False
    assert fee.amount_for("micro", use_tiers=False) == 135.0


def test_flat_amount_preferred_over_standard():
    fee = make_fee(amount=300.0, standard_amount=320.0)
    assert fee.base_amount == 300.0


def test_cost_breakdown_total_mismatch_uses_component_sum(caplog):
    costs = CostBreakdown(filing=100, search=50, total=200, discounted_total=200)
    assert costs.total == 150
    assert costs.discounted_total == 150
    assert "does not match component sum" in caplog.text


def test_cost_breakdown_clamps_negative_component():
    costs = CostBreakdown(filing=-10, search=10, total=0, discounted_total=0)
    assert costs.filing == 0
    assert costs.total == 10
    assert costs.discounted_total == 0


def test_cost_breakdown_clamps_discount_into_range():
    assert CostBreakdown(filing=100, total=100, discounted_total=150).discounted_total == 100
    assert CostBreakdown(filing=100, total=100, discounted_total=-5).discounted_total == 0


def test_cost_breakdown_valid():
    costs = CostBreakdown(filing=100, maintenance=400.5, total=500.5, discounted_total=450)
    assert costs.components()["maintenance"] == 400.5


def test_calculation_input_jurisdictions_become_tuple():
    request = CalculationInput(jurisdictions=["USPTO", "EPO"])
    assert request.jurisdictions == ("USPTO", "EPO")


def test_complexity_suggested_from_industry():
    assert CalculationInput(industry_sector="Enterprise Software").complexity == "Software/Biotech"
    assert CalculationInput(industry_sector="Aerospace").complexity == "Complex"
    assert CalculationInput(industry_sector="Automotive parts").complexity == "Moderate"
    assert CalculationInput().complexity == "Simple"
    assert CalculationInput(industry_sector="Aerospace", solution_complexity="Simple").complexity == "Simple"


def test_suggest_complexity_none():
    assert suggest_complexity(None) == "Simple"


def test_grant_is_active_on():
    grant = GrantProgram(
        id="g1", name="Grant", country="EU", subsidy_percentage=20, max_subsidy_amount=500,
        effective_date=date(2025, 1, 1), expiration_date=date(2026, 1, 1),
    )
    assert grant.is_active_on(date(2025, 6, 1)) is True
    assert grant.is_active_on(date(2024, 6, 1)) is False
    assert grant.is_active_on(date(2026, 1, 1)) is False


def test_inactive_grant_never_active():
    grant = GrantProgram(id="g1", name="Grant", country="EU", subsidy_percentage=20,
                         max_subsidy_amount=500, is_active=False)
    assert grant.is_active_on(date(2025, 6, 1)) is False


def test_to_jsonable():
    entry = TimelineEntry(year=4, description="Maintenance Fee - Year 4", amount=1600.0,
                          fee_type="maintenance", due_date=date(2029, 3, 1))
    data = to_jsonable({"entries": (entry,), "at": datetime(2025, 6, 1, 12, 0)})
    assert data["entries"][0]["due_date"] == "2029-03-01"
    assert data["entries"][0]["amount"] == 1600.0
    assert data["at"] == "2025-06-01T12:00:00"
