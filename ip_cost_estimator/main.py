"""CLI entry point for the IP cost estimator."""

import argparse
import logging
import sys
from datetime import date
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import load_config, validate_config
from .db import Database
from .errors import ValidationError
from .models import (
    COMPANY_SIZES,
    COMPLEXITIES,
    ENTITY_TYPES,
    FILING_STRATEGIES,
    IP_TYPES,
    JURISDICTIONS,
    TIER_LIMITS,
    CalculationInput,
)
from .reference_data import EXCHANGE_RATE_ROWS, FEE_SCHEDULE_ROWS, GRANT_PROGRAM_ROWS
from .reporter import export_csv, export_json, format_fee_schedule, format_history_table, print_summary
from .service import build_narrative_service, build_reference_cache, calculate_costs


def setup_logging(level: str = "INFO", log_file: str | None = None, max_size_mb: int = 10, backup_count: int = 5):
    """Configure logging."""
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_file, maxBytes=max_size_mb * 1024 * 1024, backupCount=backup_count
        ))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def _load(args):
    config = load_config(args.config)
    setup_logging(
        config.logging.level, config.logging.file,
        config.logging.max_size_mb, config.logging.backup_count,
    )
    logger = logging.getLogger("ip_cost_estimator")

    errors = validate_config(config)
    if errors:
        for err in errors:
            logger.error(f"Config error: {err}")
        sys.exit(1)
    return config, logger


def _build_request(args) -> CalculationInput:
    return CalculationInput(
        ip_type=args.ip_type,
        jurisdictions=tuple(args.jurisdictions),
        entity_type=args.entity,
        solution_complexity=args.complexity,
        protection_duration=args.duration,
        claim_count=args.claims,
        page_count=args.pages,
        industry_sector=args.industry,
        company_size=args.company_size,
        business_description=args.description,
        designated_country_count=args.countries,
        filing_strategy=args.strategy,
        tier=args.tier,
        include_search_fees=not args.no_search_fees,
        include_legal_agent_fees=not args.no_legal_fees,
        include_translation_fees=not args.no_translation_fees,
        filing_date=date.fromisoformat(args.filing_date) if args.filing_date else None,
        user_email=args.email,
        calculation_name=args.name,
    )


def cmd_estimate(args):
    """Estimate filing and lifecycle costs."""
    config, logger = _load(args)

    db = None
    if args.save or config.sources.reference_data == "database":
        db = Database(config.database_path)
        db.init_db()

    try:
        cache = build_reference_cache(config, db)
        try:
            result = calculate_costs(
                _build_request(args),
                cache,
                settings=config.calculator,
                narrative_service=build_narrative_service(config),
                result_store=db if args.save else None,
            )
        except ValidationError as e:
            for err in e.errors:
                print(f"Error: {err}")
            sys.exit(2)

        if args.format == "json":
            output = export_json(result)
            if args.output:
                Path(args.output).write_text(output)
                print(f"JSON exported to {args.output}")
            else:
                print(output)
        elif args.format == "csv":
            if args.output:
                export_csv(result, args.output)
                print(f"CSV exported to {args.output}")
            else:
                print(export_csv(result))
        else:
            print_summary(result)

        logger.debug(f"Exchange rates used: {result.exchange_rates_used}")
    finally:
        if db is not None:
            db.close()


def cmd_fees(args):
    """Show the fee schedule in effect for an office."""
    config, _ = _load(args)

    db = None
    if config.sources.reference_data == "database":
        db = Database(config.database_path)
        db.init_db()
    try:
        reference = build_reference_cache(config, db).ensure_loaded()
        records = list(reference.fee_table.records(args.jurisdiction, args.ip_type))
        if args.category:
            records = [record for record in records if record.category == args.category]
        print(f"{JURISDICTIONS[args.jurisdiction].name} - {args.ip_type} fees as of {reference.as_of.isoformat()}")
        print(format_fee_schedule(records))
        for note in reference.notes:
            print(f"Note: {note}")
    finally:
        if db is not None:
            db.close()


def cmd_history(args):
    """Show stored calculations."""
    config, _ = _load(args)

    with Database(config.database_path) as db:
        records = db.list_calculations(user_email=args.email, limit=args.limit)
        if not records:
            print("No calculations in database.")
            return

        print(format_history_table(records))
        print(f"\nTotal: {len(records)} calculations")


def cmd_init_db(args):
    """Initialize the database and load the built-in reference data."""
    config, _ = _load(args)

    with Database(config.database_path) as db:
        if args.no_seed:
            print(f"Database initialized at {config.database_path}")
            return
        if db.get_fee_count() and not args.replace:
            print(f"Database at {config.database_path} already holds reference data (use --replace to reload)")
            return
        counts = db.seed_reference_data(
            FEE_SCHEDULE_ROWS, EXCHANGE_RATE_ROWS, GRANT_PROGRAM_ROWS, replace=args.replace
        )
        print(
            f"Database initialized at {config.database_path}: "
            f"{counts['fee_schedules']} fees, {counts['exchange_rates']} rates, "
            f"{counts['grant_programs']} grant programs"
        )


def main():
    parser = argparse.ArgumentParser(
        prog="ip-cost",
        description="Estimate patent, design and trademark costs across USPTO, EPO and IPOS.",
    )
    parser.add_argument(
        "--config", default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # estimate
    est = subparsers.add_parser("estimate", help="Estimate filing and lifecycle costs")
    est.add_argument("jurisdictions", nargs="+", choices=list(JURISDICTIONS), help="Offices to file with")
    est.add_argument("--ip-type", choices=IP_TYPES, default="patent", help="Kind of IP right (default: patent)")
    est.add_argument("--entity", choices=ENTITY_TYPES, default="standard", help="USPTO entity status")
    est.add_argument("--complexity", choices=COMPLEXITIES, help="Solution complexity (suggested from industry if omitted)")
    est.add_argument("--duration", type=int, default=20, help="Years of protection, 1-20 (default: 20)")
    est.add_argument("--claims", type=int, help="Number of claims")
    est.add_argument("--pages", type=int, help="Number of specification pages")
    est.add_argument("--industry", help="Industry sector")
    est.add_argument("--company-size", choices=COMPANY_SIZES, help="Applicant company size")
    est.add_argument("--description", help="Short business description for narrative insights")
    est.add_argument("--countries", type=int, help="EPO designated countries (default from config)")
    est.add_argument("--strategy", choices=FILING_STRATEGIES, help="Preferred filing strategy")
    est.add_argument("--tier", choices=list(TIER_LIMITS), default="free", help="Subscription tier (default: free)")
    est.add_argument("--no-search-fees", action="store_true", help="Leave search fees out")
    est.add_argument("--no-legal-fees", action="store_true", help="Leave attorney/agent estimates out")
    est.add_argument("--no-translation-fees", action="store_true", help="Leave translation estimates out")
    est.add_argument("--filing-date", help="Planned filing date (YYYY-MM-DD)")
    est.add_argument("--email", help="Owner of the stored calculation")
    est.add_argument("--name", help="Name for the stored calculation")
    est.add_argument("--save", action="store_true", help="Store the calculation in the database")
    est.add_argument(
        "--format", choices=["table", "json", "csv"], default="table",
        help="Output format (default: table)",
    )
    est.add_argument("--output", "-o", help="Output file path (for JSON or CSV)")
    est.set_defaults(func=cmd_estimate)

    # fees
    fees_parser = subparsers.add_parser("fees", help="Show the fee schedule for an office")
    fees_parser.add_argument("jurisdiction", choices=list(JURISDICTIONS))
    fees_parser.add_argument("--ip-type", choices=IP_TYPES, default="patent")
    fees_parser.add_argument("--category", help="Only show one fee category")
    fees_parser.set_defaults(func=cmd_fees)

    # history
    history_parser = subparsers.add_parser("history", help="Show stored calculations")
    history_parser.add_argument("--email", help="Only show calculations for this user")
    history_parser.add_argument(
        "--limit", type=int, default=20,
        help="Maximum number of calculations to show (default: 20)",
    )
    history_parser.set_defaults(func=cmd_history)

    # init-db
    init_parser = subparsers.add_parser("init-db", help="Initialize the database")
    init_parser.add_argument("--no-seed", action="store_true", help="Create tables only")
    init_parser.add_argument("--replace", action="store_true", help="Replace existing reference data")
    init_parser.set_defaults(func=cmd_init_db)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
