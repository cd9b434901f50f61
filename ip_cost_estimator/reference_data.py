"""Built-in fee schedules, exchange rates and grant programs.

Rows use the same column names as the database tables so they can seed a
fresh database or back the StaticReferenceStore directly. Amounts are in
the office's native currency; 2025 schedules.
"""

import logging
from datetime import date

from .models import ExchangeRate, FeeRecord, GrantProgram
from .records import latest_rates, parse_fee_row, parse_grant_row, parse_rate_row, parse_rows

logger = logging.getLogger(__name__)

SCHEDULE_DATE = "2025-01-01"


def _fee(jurisdiction, ip_type, category, currency, amount=None, stage="pre-grant", **extra):
    row = {
        "jurisdiction": jurisdiction,
        "ip_type": ip_type,
        "fee_category": category,
        "lifecycle_stage": stage,
        "currency": currency,
        "fee_amount": amount,
        "effective_date": SCHEDULE_DATE,
    }
    row.update(extra)
    return row


def _uspto_tiered(category, standard, stage="pre-grant", **extra):
    return _fee(
        "USPTO", "patent", category, "USD", stage=stage,
        standard_fee=standard,
        small_entity_fee=standard * 0.5,
        micro_entity_fee=standard * 0.25,
        **extra,
    )


EPO_RENEWALS = {3: 530, 4: 690, 5: 845, 6: 1000, 7: 1155, 8: 1305, 9: 1440, 10: 1590}
IPOS_RENEWALS = {5: 165, 10: 430, 15: 600, 20: 900}

FEE_SCHEDULE_ROWS = [
    # USPTO utility patents, entity-tiered
    _uspto_tiered("filing", 400, fee_description="Basic filing fee"),
    _uspto_tiered("search", 1000, fee_description="Search fee"),
    _uspto_tiered("examination", 2500, fee_description="Examination fee"),
    _uspto_tiered("issue", 1200, fee_description="Issue fee"),
    _fee("USPTO", "patent", "claims", "USD", 200, claims_threshold=20,
         fee_description="Each claim in excess of 20"),
    _uspto_tiered("maintenance", 1600, stage="post-grant", year_due=4,
                  fee_description="Maintenance fee due at 3.5 years"),
    _uspto_tiered("maintenance", 3600, stage="post-grant", year_due=8,
                  fee_description="Maintenance fee due at 7.5 years"),
    _uspto_tiered("maintenance", 7400, stage="post-grant", year_due=12,
                  fee_description="Maintenance fee due at 11.5 years"),
    # EPO
    _fee("EPO", "patent", "filing", "EUR", 135, fee_description="Filing fee (online)"),
    _fee("EPO", "patent", "search", "EUR", 1520, fee_description="European search fee"),
    _fee("EPO", "patent", "examination", "EUR", 1915, fee_description="Examination fee"),
    _fee("EPO", "patent", "issue", "EUR", 1080, fee_description="Fee for grant"),
    _fee("EPO", "patent", "claims", "EUR", 270, claims_threshold=15,
         fee_description="Claims fee for the 16th and each subsequent claim"),
    _fee("EPO", "patent", "designation", "EUR", 120, fee_description="Designation fee per contracting state"),
    _fee("EPO", "patent", "maintenance", "EUR", 1000, stage="post-grant",
         fee_description="Renewal fee base for years beyond the tabulated schedule"),
    *[
        _fee("EPO", "patent", "renewal", "EUR", amount, stage="post-grant", year_due=year,
             fee_description=f"Renewal fee for year {year}")
        for year, amount in EPO_RENEWALS.items()
    ],
    # IPOS
    _fee("IPOS", "patent", "filing", "SGD", 170, fee_description="Filing fee (PF1)"),
    _fee("IPOS", "patent", "search", "SGD", 1735, fee_description="Search fee (PF10)"),
    _fee("IPOS", "patent", "examination", "SGD", 1420, fee_description="Examination fee (PF12)"),
    _fee("IPOS", "patent", "issue", "SGD", 210, fee_description="Grant fee (PF14)"),
    _fee("IPOS", "patent", "claims", "SGD", 40, claims_threshold=20,
         fee_description="Each claim in excess of 20"),
    *[
        _fee("IPOS", "patent", "renewal", "SGD", amount, stage="post-grant", year_due=year,
             fee_description=f"Renewal fee for year {year}")
        for year, amount in IPOS_RENEWALS.items()
    ],
    # Registered designs
    _fee("USPTO", "design", "filing", "USD", 300, standard_fee=300, small_entity_fee=120,
         micro_entity_fee=60, fee_description="Design application filing fee"),
    _fee("USPTO", "design", "issue", "USD", 1300, standard_fee=1300, small_entity_fee=520,
         micro_entity_fee=260, fee_description="Design issue fee"),
    _fee("EPO", "design", "filing", "EUR", 350, fee_description="Community design registration"),
    _fee("EPO", "design", "issue", "EUR", 120, fee_description="Design publication fee"),
    _fee("EPO", "design", "maintenance", "EUR", 90, stage="post-grant", year_due=5,
         fee_description="First design renewal"),
    _fee("IPOS", "design", "filing", "SGD", 240, fee_description="Design application fee"),
    _fee("IPOS", "design", "maintenance", "SGD", 200, stage="post-grant", year_due=5,
         fee_description="First design renewal"),
    # Trademarks
    _fee("USPTO", "trademark", "filing", "USD", 350, fee_description="Base application per class"),
    _fee("EPO", "trademark", "filing", "EUR", 850, fee_description="EU trade mark, one class"),
    _fee("IPOS", "trademark", "filing", "SGD", 240, fee_description="Trade mark application per class"),
]

EXCHANGE_RATE_ROWS = [
    {"from_currency": "EUR", "to_currency": "USD", "rate": 1.07, "effective_date": SCHEDULE_DATE},
    {"from_currency": "SGD", "to_currency": "USD", "rate": 0.74, "effective_date": SCHEDULE_DATE},
    {"from_currency": "USD", "to_currency": "EUR", "rate": 0.93, "effective_date": SCHEDULE_DATE},
    {"from_currency": "USD", "to_currency": "SGD", "rate": 1.35, "effective_date": SCHEDULE_DATE},
]

GRANT_PROGRAM_ROWS = [
    {
        "id": "us-sbir-ip",
        "program_name": "SBIR IP Protection Support",
        "country": "USA",
        "subsidy_percentage": 50,
        "max_subsidy_amount": 5000,
        "eligibility_criteria": {"company_size": "startup"},
        "is_active": True,
        "effective_date": SCHEDULE_DATE,
        "description": "Covers part of patent costs for SBIR-funded startups",
        "application_url": "https://www.sbir.gov",
    },
    {
        "id": "eu-sme-fund",
        "program_name": "SME Fund IP Voucher",
        "country": "EU",
        "subsidy_percentage": 75,
        "max_subsidy_amount": 1500,
        "eligibility_criteria": {"company_size": "sme"},
        "is_active": True,
        "effective_date": SCHEDULE_DATE,
        "description": "Reimburses European patent fees for small and medium enterprises",
        "application_url": "https://euipo.europa.eu/ohimportal/en/online-services/sme-fund",
    },
    {
        "id": "sg-edg-ip",
        "program_name": "Enterprise Development Grant (IP)",
        "country": "Singapore",
        "subsidy_percentage": 50,
        "max_subsidy_amount": 10000,
        "eligibility_criteria": {},
        "is_active": True,
        "effective_date": SCHEDULE_DATE,
        "description": "Supports IP filing as part of an innovation project",
        "application_url": "https://www.enterprisesg.gov.sg",
    },
    {
        "id": "sg-startup-tech",
        "program_name": "Startup SG Tech IP Support",
        "country": "Singapore",
        "subsidy_percentage": 30,
        "max_subsidy_amount": 5000,
        "eligibility_criteria": {"company_size": "startup", "sector": "Information Technology & Software"},
        "is_active": True,
        "effective_date": SCHEDULE_DATE,
        "description": "Proof-of-concept funding that can cover IP filing costs",
        "application_url": "https://www.startupsg.gov.sg",
    },
]


class StaticReferenceStore:
    """Fee, rate and grant store backed by the built-in schedule."""

    def __init__(self, fee_rows=None, rate_rows=None, grant_rows=None):
        self._fees: list[FeeRecord] = parse_rows(
            FEE_SCHEDULE_ROWS if fee_rows is None else fee_rows, parse_fee_row
        )
        self._rates: list[ExchangeRate] = parse_rows(
            EXCHANGE_RATE_ROWS if rate_rows is None else rate_rows, parse_rate_row
        )
        self._grants: list[GrantProgram] = parse_rows(
            GRANT_PROGRAM_ROWS if grant_rows is None else grant_rows, parse_grant_row
        )
        logger.debug(
            f"Static reference store: {len(self._fees)} fees, "
            f"{len(self._rates)} rates, {len(self._grants)} grants"
        )

    def get_fees(self, jurisdiction: str, ip_type: str, as_of: date) -> list[FeeRecord]:
        return [
            record for record in self._fees
            if record.jurisdiction == jurisdiction
            and record.ip_type == ip_type
            and record.is_active(as_of)
        ]

    def get_rates_as_of(self, as_of: date) -> dict[tuple[str, str], float]:
        return latest_rates(self._rates, as_of)

    def get_active_grants(self, as_of: date) -> list[GrantProgram]:
        return [grant for grant in self._grants if grant.is_active_on(as_of)]
