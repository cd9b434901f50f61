"""Tests for fee table lookup and the reference data cache."""

import threading
import time
from datetime import date
from unittest.mock import MagicMock

from freezegun import freeze_time

from ip_cost_estimator.errors import CollaboratorUnavailableError
from ip_cost_estimator.fee_table import FeeTable, ReferenceDataCache
from ip_cost_estimator.models import FeeRecord
from ip_cost_estimator.reference_data import StaticReferenceStore


AS_OF = date(2025, 6, 1)


def make_fee(**kwargs) -> FeeRecord:
    defaults = {
        "jurisdiction": "EPO",
        "ip_type": "patent",
        "category": "filing",
        "lifecycle_stage": "pre-grant",
        "currency": "EUR",
        "effective_date": date(2025, 1, 1),
        "amount": 135.0,
    }
    defaults.update(kwargs)
    return FeeRecord(**defaults)


def test_lookup_returns_active_record():
    table = FeeTable([make_fee()])
    record = table.lookup("EPO", "patent", "filing", "pre-grant", AS_OF)
    assert record is not None
    assert record.amount == 135.0


def test_lookup_missing_returns_none():
    table = FeeTable([make_fee()])
    assert table.lookup("EPO", "patent", "search", "pre-grant", AS_OF) is None
    assert table.lookup("IPOS", "patent", "filing", "pre-grant", AS_OF) is None


def test_lookup_ignores_future_and_expired_records():
    table = FeeTable([
        make_fee(amount=100.0, effective_date=date(2024, 1, 1), expiration_date=date(2025, 1, 1)),
        make_fee(amount=200.0, effective_date=date(2026, 1, 1)),
    ])
    assert table.lookup("EPO", "patent", "filing", "pre-grant", AS_OF) is None
    assert table.lookup("EPO", "patent", "filing", "pre-grant", date(2024, 6, 1)).amount == 100.0
    assert table.lookup("EPO", "patent", "filing", "pre-grant", date(2026, 6, 1)).amount == 200.0


def test_lookup_latest_effective_date_wins():
    table = FeeTable([
        make_fee(amount=125.0, effective_date=date(2024, 4, 1)),
        make_fee(amount=135.0, effective_date=date(2025, 1, 1)),
    ])
    assert table.lookup("EPO", "patent", "filing", "pre-grant", AS_OF).amount == 135.0


def test_lookup_tie_goes_to_first_listed():
    table = FeeTable([make_fee(amount=135.0), make_fee(amount=140.0)])
    assert table.lookup("EPO", "patent", "filing", "pre-grant", AS_OF).amount == 135.0


def test_lookup_by_year_due():
    table = FeeTable([
        make_fee(category="maintenance", lifecycle_stage="post-grant", amount=1000.0),
        make_fee(category="maintenance", lifecycle_stage="post-grant", amount=530.0, year_due=3),
    ])
    assert table.lookup("EPO", "patent", "maintenance", "post-grant", AS_OF, year_due=3).amount == 530.0
    assert table.lookup("EPO", "patent", "maintenance", "post-grant", AS_OF).amount == 1000.0
    assert table.lookup("EPO", "patent", "maintenance", "post-grant", AS_OF, year_due=4) is None


def test_fee_table_len():
    assert len(FeeTable([make_fee(), make_fee(jurisdiction="IPOS", currency="SGD")])) == 2


def test_cache_loads_once():
    store = MagicMock(wraps=StaticReferenceStore())
    cache = ReferenceDataCache(store, clock=lambda: AS_OF)
    assert cache.is_loaded is False

    first = cache.ensure_loaded()
    second = cache.ensure_loaded()

    assert first is second
    assert first.version == 1
    assert first.as_of == AS_OF
    assert len(first.fee_table) > 0
    assert store.get_rates_as_of.call_count == 1


def test_cache_concurrent_first_callers_share_one_load():
    calls = []

    class SlowStore(StaticReferenceStore):
        def get_rates_as_of(self, as_of):
            calls.append(as_of)
            time.sleep(0.05)
            return super().get_rates_as_of(as_of)

    cache = ReferenceDataCache(SlowStore(), clock=lambda: AS_OF)
    results = []
    threads = [threading.Thread(target=lambda: results.append(cache.ensure_loaded())) for _ in range(5)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert len({id(snapshot) for snapshot in results}) == 1


def test_cache_reload_bumps_version():
    cache = ReferenceDataCache(StaticReferenceStore(), clock=lambda: AS_OF)
    old = cache.ensure_loaded()
    new = cache.reload()

    assert new.version == 2
    assert cache.version == 2
    assert cache.ensure_loaded() is new
    # Holders of the old snapshot keep a consistent view
    assert old.version == 1
    assert len(old.fee_table) == len(new.fee_table)


def test_cache_records_fee_gap_per_jurisdiction():
    real = StaticReferenceStore()

    def get_fees(jurisdiction, ip_type, as_of):
        if jurisdiction == "EPO":
            raise CollaboratorUnavailableError("timed out")
        return real.get_fees(jurisdiction, ip_type, as_of)

    store = MagicMock()
    store.get_fees.side_effect = get_fees
    store.get_rates_as_of.side_effect = real.get_rates_as_of
    store.get_active_grants.side_effect = real.get_active_grants

    reference = ReferenceDataCache(store, clock=lambda: AS_OF).ensure_loaded()

    assert ("EPO", "patent") in reference.fee_gaps
    assert "timed out" in reference.fee_gaps[("EPO", "patent")]
    assert reference.fee_table.records("EPO", "patent") == ()
    assert len(reference.fee_table.records("USPTO", "patent")) > 0
    assert any("EPO patent" in note for note in reference.notes)


def test_cache_rate_and_grant_failures_become_notes():
    store = MagicMock(wraps=StaticReferenceStore())
    store.get_rates_as_of.side_effect = CollaboratorUnavailableError("rates down")
    store.get_active_grants.side_effect = CollaboratorUnavailableError("grants down")

    reference = ReferenceDataCache(store, clock=lambda: AS_OF).ensure_loaded()

    assert reference.rates == {}
    assert reference.grants == ()
    assert any("rates down" in note for note in reference.notes)
    assert any("grants down" in note for note in reference.notes)


@freeze_time("2025-03-15")
def test_cache_default_clock_is_today():
    cache = ReferenceDataCache(StaticReferenceStore())
    assert cache.ensure_loaded().as_of == date(2025, 3, 15)


def test_separate_rate_and_grant_stores():
    fee_store = StaticReferenceStore()
    rate_store = MagicMock()
    rate_store.get_rates_as_of.return_value = {("EUR", "USD"): 1.1}
    grant_store = MagicMock()
    grant_store.get_active_grants.return_value = []

    reference = ReferenceDataCache(fee_store, rate_store, grant_store, clock=lambda: AS_OF).ensure_loaded()

    assert reference.rates == {("EUR", "USD"): 1.1}
    assert reference.grants == ()
    rate_store.get_rates_as_of.assert_called_once_with(AS_OF)
