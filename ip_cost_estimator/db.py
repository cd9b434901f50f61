"""SQLite storage for reference data and user calculations."""

import json
import logging
import sqlite3
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from pathlib import Path

from .models import CalculationRecord, FeeRecord, GrantProgram
from .records import latest_rates, parse_fee_row, parse_grant_row, parse_rate_row, parse_rows

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS fee_schedules (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    jurisdiction TEXT NOT NULL,
    ip_type TEXT NOT NULL,
    fee_category TEXT NOT NULL,
    lifecycle_stage TEXT NOT NULL DEFAULT 'pre-grant',
    currency TEXT NOT NULL,
    fee_amount REAL,
    standard_fee REAL,
    small_entity_fee REAL,
    micro_entity_fee REAL,
    year_due INTEGER,
    claims_threshold INTEGER,
    fee_description TEXT,
    effective_date TEXT NOT NULL,
    expiration_date TEXT
);

CREATE TABLE IF NOT EXISTS exchange_rates (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    from_currency TEXT NOT NULL,
    to_currency TEXT NOT NULL,
    rate REAL NOT NULL,
    effective_date TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS grant_programs (
    id TEXT PRIMARY KEY,
    program_name TEXT NOT NULL,
    country TEXT NOT NULL,
    subsidy_percentage REAL NOT NULL DEFAULT 0,
    max_subsidy_amount REAL NOT NULL DEFAULT 0,
    eligibility_criteria TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    effective_date TEXT,
    expiration_date TEXT,
    description TEXT,
    application_url TEXT
);

CREATE TABLE IF NOT EXISTS user_calculations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_email TEXT,
    calculation_name TEXT,
    ip_type TEXT NOT NULL,
    jurisdictions TEXT NOT NULL,
    entity_type TEXT NOT NULL,
    industry_sector TEXT,
    business_description TEXT,
    duration_years INTEGER NOT NULL,
    claim_count INTEGER,
    page_count INTEGER,
    result TEXT NOT NULL,
    has_paid INTEGER NOT NULL DEFAULT 0,
    payment_id TEXT,
    detailed_result TEXT,
    ai_insights TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_fee_schedules_lookup ON fee_schedules(jurisdiction, ip_type, effective_date);
CREATE INDEX IF NOT EXISTS idx_exchange_rates_pair ON exchange_rates(from_currency, to_currency, effective_date);
CREATE INDEX IF NOT EXISTS idx_user_calculations_email ON user_calculations(user_email);
"""

FEE_COLUMNS = (
    "jurisdiction", "ip_type", "fee_category", "lifecycle_stage", "currency",
    "fee_amount", "standard_fee", "small_entity_fee", "micro_entity_fee",
    "year_due", "claims_threshold", "fee_description", "effective_date", "expiration_date",
)

# Columns a stored calculation may change after it is written
UPDATABLE_COLUMNS = ("has_paid", "payment_id", "detailed_result", "ai_insights", "calculation_name")


class Database:
    def __init__(self, db_path: str = "data/ip_costs.db"):
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row

    def init_db(self):
        """Create tables and indexes."""
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def close(self):
        self.conn.close()

    def __enter__(self):
        self.init_db()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # --- Reference data ---

    def seed_reference_data(
        self,
        fee_rows: Iterable[Mapping],
        rate_rows: Iterable[Mapping],
        grant_rows: Iterable[Mapping],
        replace: bool = False,
    ) -> dict[str, int]:
        """Load fee, rate and grant rows. Returns the number of rows inserted per table."""
        if replace:
            for table in ("fee_schedules", "exchange_rates", "grant_programs"):
                self.conn.execute(f"DELETE FROM {table}")

        counts = {"fee_schedules": 0, "exchange_rates": 0, "grant_programs": 0}
        for row in fee_rows:
            self.conn.execute(
                f"INSERT INTO fee_schedules ({', '.join(FEE_COLUMNS)}) "
                f"VALUES ({', '.join('?' for _ in FEE_COLUMNS)})",
                tuple(row.get(column) for column in FEE_COLUMNS),
            )
            counts["fee_schedules"] += 1

        for row in rate_rows:
            self.conn.execute(
                "INSERT INTO exchange_rates (from_currency, to_currency, rate, effective_date) VALUES (?, ?, ?, ?)",
                (row["from_currency"], row["to_currency"], row["rate"], row["effective_date"]),
            )
            counts["exchange_rates"] += 1

        for row in grant_rows:
            self.conn.execute(
                """INSERT OR REPLACE INTO grant_programs (
                    id, program_name, country, subsidy_percentage, max_subsidy_amount,
                    eligibility_criteria, is_active, effective_date, expiration_date,
                    description, application_url
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    row.get("id") or row["program_name"],
                    row["program_name"],
                    row["country"],
                    row.get("subsidy_percentage", 0),
                    row.get("max_subsidy_amount", 0),
                    json.dumps(row.get("eligibility_criteria") or {}),
                    1 if row.get("is_active", True) else 0,
                    row.get("effective_date"),
                    row.get("expiration_date"),
                    row.get("description"),
                    row.get("application_url"),
                ),
            )
            counts["grant_programs"] += 1

        self.conn.commit()
        logger.info(f"Seeded reference data: {counts}")
        return counts

    def get_fees(self, jurisdiction: str, ip_type: str, as_of: date) -> list[FeeRecord]:
        """Active fee records for a jurisdiction and IP type."""
        cur = self.conn.execute(
            """SELECT * FROM fee_schedules
               WHERE jurisdiction = ? AND ip_type = ? AND effective_date <= ?
               AND (expiration_date IS NULL OR expiration_date > ?)
               ORDER BY id""",
            (jurisdiction, ip_type, as_of.isoformat(), as_of.isoformat()),
        )
        return parse_rows((dict(row) for row in cur.fetchall()), parse_fee_row)

    def get_rates_as_of(self, as_of: date) -> dict[tuple[str, str], float]:
        cur = self.conn.execute(
            "SELECT * FROM exchange_rates WHERE effective_date <= ?", (as_of.isoformat(),)
        )
        rates = parse_rows((dict(row) for row in cur.fetchall()), parse_rate_row)
        return latest_rates(rates, as_of)

    def get_active_grants(self, as_of: date) -> list[GrantProgram]:
        cur = self.conn.execute(
            """SELECT * FROM grant_programs
               WHERE is_active = 1
               AND (effective_date IS NULL OR effective_date <= ?)
               AND (expiration_date IS NULL OR expiration_date > ?)
               ORDER BY subsidy_percentage DESC""",
            (as_of.isoformat(), as_of.isoformat()),
        )
        return parse_rows((dict(row) for row in cur.fetchall()), parse_grant_row)

    def get_fee_count(self) -> int:
        cur = self.conn.execute("SELECT COUNT(*) FROM fee_schedules")
        return cur.fetchone()[0]

    # --- User calculations ---

    def save(self, record: CalculationRecord) -> int:
        """Store a calculation and return its id."""
        cur = self.conn.execute(
            """INSERT INTO user_calculations (
                user_email, calculation_name, ip_type, jurisdictions, entity_type,
                industry_sector, business_description, duration_years, claim_count,
                page_count, result, has_paid, payment_id, detailed_result,
                ai_insights, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                record.user_email,
                record.calculation_name,
                record.ip_type,
                json.dumps(record.jurisdictions),
                record.entity_type,
                record.industry_sector,
                record.business_description,
                record.duration_years,
                record.claim_count,
                record.page_count,
                json.dumps(record.result),
                1 if record.has_paid else 0,
                record.payment_id,
                json.dumps(record.detailed_result) if record.detailed_result is not None else None,
                json.dumps(record.ai_insights) if record.ai_insights is not None else None,
                record.created_at.isoformat(),
            ),
        )
        self.conn.commit()
        record.id = cur.lastrowid
        return cur.lastrowid

    def update(self, calculation_id: int, patch: Mapping) -> bool:
        """Apply a partial update. Returns False if the calculation does not exist."""
        unknown = set(patch) - set(UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"Cannot update columns: {', '.join(sorted(unknown))}")
        if not patch:
            return self.get_calculation(calculation_id) is not None

        values = []
        for column, value in patch.items():
            if column in ("detailed_result", "ai_insights") and value is not None:
                value = json.dumps(value)
            elif column == "has_paid":
                value = 1 if value else 0
            values.append(value)

        assignments = ", ".join(f"{column} = ?" for column in patch)
        cur = self.conn.execute(
            f"UPDATE user_calculations SET {assignments}, updated_at = ? WHERE id = ?",
            (*values, datetime.now().isoformat(), calculation_id),
        )
        self.conn.commit()
        return cur.rowcount > 0

    def mark_paid(
        self,
        calculation_id: int,
        payment_id: str,
        detailed_result: dict | None = None,
        insights: list | None = None,
    ) -> bool:
        """Record payment for a calculation. A calculation is only marked paid once."""
        existing = self.get_calculation(calculation_id)
        if existing is None:
            logger.warning(f"Cannot mark calculation {calculation_id} paid: not found")
            return False
        if existing.has_paid:
            logger.warning(f"Calculation {calculation_id} already paid (payment {existing.payment_id})")
            return False
        return self.update(calculation_id, {
            "has_paid": True,
            "payment_id": payment_id,
            "detailed_result": detailed_result,
            "ai_insights": insights,
        })

    def get_calculation(self, calculation_id: int) -> CalculationRecord | None:
        cur = self.conn.execute("SELECT * FROM user_calculations WHERE id = ?", (calculation_id,))
        row = cur.fetchone()
        return self._row_to_calculation(row) if row else None

    def list_calculations(
        self, user_email: str | None = None, limit: int = 20, offset: int = 0
    ) -> list[CalculationRecord]:
        """Stored calculations, newest first, optionally for one user."""
        if user_email:
            cur = self.conn.execute(
                """SELECT * FROM user_calculations WHERE user_email = ?
                   ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?""",
                (user_email, limit, offset),
            )
        else:
            cur = self.conn.execute(
                "SELECT * FROM user_calculations ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                (limit, offset),
            )
        return [self._row_to_calculation(row) for row in cur.fetchall()]

    # --- Helpers ---

    def _row_to_calculation(self, row: sqlite3.Row) -> CalculationRecord:
        """Convert a database row to a CalculationRecord."""
        return CalculationRecord(
            id=row["id"],
            user_email=row["user_email"],
            calculation_name=row["calculation_name"],
            ip_type=row["ip_type"],
            jurisdictions=json.loads(row["jurisdictions"]),
            entity_type=row["entity_type"],
            industry_sector=row["industry_sector"],
            business_description=row["business_description"],
            duration_years=row["duration_years"],
            claim_count=row["claim_count"],
            page_count=row["page_count"],
            result=json.loads(row["result"]),
            has_paid=bool(row["has_paid"]),
            payment_id=row["payment_id"],
            detailed_result=json.loads(row["detailed_result"]) if row["detailed_result"] else None,
            ai_insights=json.loads(row["ai_insights"]) if row["ai_insights"] else None,
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]) if row["updated_at"] else None,
        )
