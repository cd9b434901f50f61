"""Fee table lookup and the process-wide reference data cache."""

import logging
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime

from .models import IP_TYPES, JURISDICTIONS, FeeRecord, GrantProgram

logger = logging.getLogger(__name__)


def _today() -> date:
    return date.today()


class FeeTable:
    """Immutable index of fee records by (jurisdiction, ip_type)."""

    def __init__(self, records: Iterable[FeeRecord] = ()):
        index: dict[tuple[str, str], list[FeeRecord]] = {}
        for record in records:
            index.setdefault((record.jurisdiction, record.ip_type), []).append(record)
        self._index = {key: tuple(value) for key, value in index.items()}

    def __len__(self) -> int:
        return sum(len(records) for records in self._index.values())

    def records(self, jurisdiction: str, ip_type: str) -> tuple[FeeRecord, ...]:
        return self._index.get((jurisdiction, ip_type), ())

    def active_records(
        self,
        jurisdiction: str,
        ip_type: str,
        category: str,
        as_of: date,
        lifecycle_stage: str | None = None,
    ) -> list[FeeRecord]:
        """All records of a category active on as_of, in table order."""
        return [
            record for record in self.records(jurisdiction, ip_type)
            if record.category == category
            and (lifecycle_stage is None or record.lifecycle_stage == lifecycle_stage)
            and record.is_active(as_of)
        ]

    def lookup(
        self,
        jurisdiction: str,
        ip_type: str,
        category: str,
        lifecycle_stage: str,
        as_of: date,
        year_due: int | None = None,
    ) -> FeeRecord | None:
        """Return the single active record for the key, or None.

        When several records are active, the latest effective_date wins;
        ties go to the record listed first.
        """
        candidates = [
            record for record in self.active_records(jurisdiction, ip_type, category, as_of, lifecycle_stage)
            if record.year_due == year_due
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda record: record.effective_date)


@dataclass(frozen=True)
class ReferenceData:
    """One consistent snapshot of fees, rates and grants."""
    fee_table: FeeTable
    rates: dict[tuple[str, str], float]
    grants: tuple[GrantProgram, ...]
    version: int
    loaded_at: datetime
    as_of: date
    notes: tuple[str, ...] = ()
    # (jurisdiction, ip_type) pairs whose fee schedule could not be loaded
    fee_gaps: dict[tuple[str, str], str] = field(default_factory=dict)


class ReferenceDataCache:
    """Load-once holder for reference data shared across requests.

    ensure_loaded() returns the current snapshot, loading it on first use.
    Concurrent first callers wait on one load. reload() swaps in a fresh
    snapshot with a higher version; readers holding the old snapshot keep
    a consistent view.
    """

    def __init__(
        self,
        fee_store,
        rate_store=None,
        grant_store=None,
        clock: Callable[[], date] | None = None,
        jurisdictions: Iterable[str] = tuple(JURISDICTIONS),
        ip_types: Iterable[str] = IP_TYPES,
    ):
        self.fee_store = fee_store
        self.rate_store = rate_store if rate_store is not None else fee_store
        self.grant_store = grant_store if grant_store is not None else fee_store
        self.clock = clock or _today
        self.jurisdictions = tuple(jurisdictions)
        self.ip_types = tuple(ip_types)
        self._lock = threading.Lock()
        self._snapshot: ReferenceData | None = None
        self._version = 0

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def version(self) -> int:
        return self._version

    def ensure_loaded(self) -> ReferenceData:
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot
        with self._lock:
            if self._snapshot is None:
                self._snapshot = self._load()
            return self._snapshot

    def reload(self) -> ReferenceData:
        with self._lock:
            self._snapshot = self._load()
            return self._snapshot

    def _load(self) -> ReferenceData:
        as_of = self.clock()
        notes: list[str] = []
        fee_gaps: dict[tuple[str, str], str] = {}
        records: list[FeeRecord] = []

        for jurisdiction in self.jurisdictions:
            for ip_type in self.ip_types:
                try:
                    records.extend(self.fee_store.get_fees(jurisdiction, ip_type, as_of))
                except Exception as e:
                    message = f"{jurisdiction} {ip_type} fee schedule unavailable: {e}"
                    logger.error(message)
                    fee_gaps[(jurisdiction, ip_type)] = message
                    notes.append(message)

        try:
            rates = dict(self.rate_store.get_rates_as_of(as_of))
        except Exception as e:
            logger.error(f"Exchange rates unavailable, using identity rates: {e}")
            rates = {}
            notes.append(f"Exchange rates unavailable: {e}")

        try:
            grants = tuple(self.grant_store.get_active_grants(as_of))
        except Exception as e:
            logger.error(f"Grant programs unavailable: {e}")
            grants = ()
            notes.append(f"Grant programs unavailable: {e}")

        self._version += 1
        logger.info(
            f"Loaded reference data v{self._version} as of {as_of}: "
            f"{len(records)} fee records, {len(rates)} rates, {len(grants)} grants"
        )
        return ReferenceData(
            fee_table=FeeTable(records),
            rates=rates,
            grants=grants,
            version=self._version,
            loaded_at=datetime.now(),
            as_of=as_of,
            notes=tuple(notes),
            fee_gaps=fee_gaps,
        )
