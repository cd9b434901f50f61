"""Report generation for cost calculations."""

import csv
import io
import json
import logging

from .models import AggregateResult, CalculationRecord, FeeRecord, to_jsonable

logger = logging.getLogger(__name__)

COST_COLUMNS = (
    ("filing", "Filing"),
    ("search", "Search"),
    ("examination", "Exam"),
    ("issue", "Issue"),
    ("claims_extra", "Claims+"),
    ("pages_extra", "Pages+"),
    ("designations", "Design."),
    ("maintenance", "Maint."),
    ("total", "Total"),
)


def format_cost_table(result: AggregateResult) -> str:
    """Format per-jurisdiction official fees as a console-friendly table.

    Amounts are shown in each office's own currency; the last column is
    the total in the reporting currency.
    """
    if not result.per_jurisdiction:
        return "No jurisdictions calculated."

    code_w = 6
    cur_w = 4
    num_w = 10

    header = (
        f"{'Office':<{code_w}} "
        f"{'Cur':<{cur_w}} "
        + " ".join(f"{label:>{num_w}}" for _, label in COST_COLUMNS)
        + f" {result.reporting_currency + ' total':>{num_w + 2}}"
    )
    separator = "-" * len(header)

    rows = [header, separator]
    for cost in result.per_jurisdiction:
        amounts = cost.costs.components()
        amounts["total"] = cost.costs.total
        row = (
            f"{cost.jurisdiction:<{code_w}} "
            f"{cost.currency:<{cur_w}} "
            + " ".join(f"{amounts[name]:>{num_w},.0f}" for name, _ in COST_COLUMNS)
            + f" {cost.normalized_total:>{num_w + 2},.0f}"
        )
        rows.append(row)

    rows.append(separator)
    rows.append(f"Total official fees: {result.total_cost:,.2f} {result.reporting_currency}")
    if result.potential_savings > 0:
        rows.append(
            f"After grants:        {result.total_with_grants:,.2f} {result.reporting_currency} "
            f"(saves {result.potential_savings:,.2f})"
        )
    if result.professional_fees_total:
        rows.append(
            f"Professional fees:   {result.professional_fees_total:,.2f} {result.reporting_currency} (estimate)"
        )
    return "\n".join(rows)


def format_timeline_table(result: AggregateResult) -> str:
    """Year-by-year payment schedule for every jurisdiction."""
    rows = []
    for cost in result.per_jurisdiction:
        rows.append(f"{cost.jurisdiction} ({cost.currency})")
        if not cost.timeline:
            rows.append("  no payments tabulated")
            continue
        for entry in cost.timeline:
            due = f" due {entry.due_date.isoformat()}" if entry.due_date else ""
            rows.append(f"  Year {entry.year:>2}  {entry.description:<32} {entry.amount:>10,.2f}{due}")
    return "\n".join(rows)


def export_csv(result: AggregateResult, file_path: str | None = None) -> str:
    """Export the payment timeline to CSV format.

    Args:
        result: Calculation result to export.
        file_path: Optional file path to write to. If None, returns CSV as string.

    Returns:
        CSV string if no file_path, otherwise the file path written to.
    """
    fieldnames = [
        "jurisdiction",
        "year",
        "description",
        "fee_type",
        "amount",
        "currency",
        "amount_reporting",
        "reporting_currency",
        "due_date",
    ]

    output = io.StringIO() if file_path is None else open(file_path, "w", newline="")

    try:
        writer = csv.DictWriter(output, fieldnames=fieldnames)
        writer.writeheader()

        for cost in result.per_jurisdiction:
            rate = cost.normalized_total / cost.costs.total if cost.costs.total else 1.0
            for entry in cost.timeline:
                writer.writerow({
                    "jurisdiction": cost.jurisdiction,
                    "year": entry.year,
                    "description": entry.description,
                    "fee_type": entry.fee_type,
                    "amount": f"{entry.amount:.2f}",
                    "currency": cost.currency,
                    "amount_reporting": f"{entry.amount * rate:.2f}",
                    "reporting_currency": result.reporting_currency,
                    "due_date": entry.due_date.isoformat() if entry.due_date else "",
                })

        if file_path is None:
            return output.getvalue()
        else:
            logger.info(f"CSV exported to {file_path}")
            return file_path
    finally:
        if file_path is not None:
            output.close()


def export_json(result: AggregateResult, indent: int = 2) -> str:
    return json.dumps(to_jsonable(result), indent=indent)


def print_summary(result: AggregateResult):
    """Print the headline figures, timeline and insights to stdout."""
    currency = result.reporting_currency
    print(f"\n=== IP Cost Estimate ({result.calculation_date.isoformat()}) ===\n")
    print(format_cost_table(result))
    print()

    timeline = result.timeline
    print(
        f"Filing to grant: {timeline.filing_to_grant.min}-{timeline.filing_to_grant.max} months "
        f"(average {timeline.filing_to_grant.average})"
    )
    if timeline.estimated_grant_date:
        print(f"Estimated grant date: {timeline.estimated_grant_date.isoformat()}")
    print(f"Suggested filing strategy: {result.filing_strategy}")
    comparison = result.filing_strategy_comparison
    if comparison:
        print(
            f"  Direct filing {comparison.direct_filing.total_cost:,.0f} {currency} / "
            f"{comparison.direct_filing.timeline_months} months; "
            f"PCT route {comparison.pct_route.total_cost:,.0f} {currency} / "
            f"{comparison.pct_route.timeline_months} months"
        )
    print(f"Risk score: {result.risk_score:.2f}")
    print()

    print("Payment schedule:")
    print(format_timeline_table(result))
    print()

    savings = result.savings
    print(f"Potential savings: {savings.total_savings:,.0f} {currency} ({savings.confidence_level})")
    for grant in result.recommended_grants:
        print(f"  Grant: {grant.name} ({grant.country}, {grant.subsidy_percentage:g}% up to {grant.max_subsidy_amount:,.0f})")
    print()

    if result.insights:
        print("Insights:")
        for insight in result.insights:
            print(f"  [{insight.priority}] {insight.title}: {insight.message}")
        print()

    print(result.maintenance_strategy)
    for alert in result.cash_flow_alerts:
        print(f"  ! {alert}")

    if result.calculation_notes:
        print("\nNotes:")
        for note in result.calculation_notes:
            print(f"  - {note}")
    if result.calculation_id is not None:
        print(f"\nSaved as calculation #{result.calculation_id}")


def format_history_table(records: list[CalculationRecord]) -> str:
    """Format stored calculations as a console-friendly table."""
    if not records:
        return "No calculations found."

    id_w = 5
    date_w = 16
    type_w = 10
    juris_w = 18
    total_w = 14

    header = (
        f"{'ID':<{id_w}} "
        f"{'Created':<{date_w}} "
        f"{'IP type':<{type_w}} "
        f"{'Jurisdictions':<{juris_w}} "
        f"{'Total':>{total_w}} "
        f"{'Paid'}"
    )
    separator = "-" * len(header)

    rows = [header, separator]
    for record in records:
        jurisdictions = ", ".join(record.jurisdictions)
        if len(jurisdictions) > juris_w:
            jurisdictions = jurisdictions[:juris_w - 3] + "..."
        rows.append(
            f"{record.id:<{id_w}} "
            f"{record.created_at.strftime('%Y-%m-%d %H:%M'):<{date_w}} "
            f"{record.ip_type:<{type_w}} "
            f"{jurisdictions:<{juris_w}} "
            f"{record.total_cost:>{total_w},.2f} "
            f"{'yes' if record.has_paid else 'no'}"
        )
    return "\n".join(rows)


def format_fee_schedule(records: list[FeeRecord]) -> str:
    """Format fee records as a console-friendly table."""
    if not records:
        return "No fee records found."

    rows = [f"{'Category':<12} {'Stage':<11} {'Year':>4} {'Amount':>10} {'Small':>10} {'Micro':>10} {'Cur':<4} Effective"]
    rows.append("-" * len(rows[0]))
    for record in sorted(records, key=lambda r: (r.lifecycle_stage != "pre-grant", r.category, r.year_due or 0)):
        year = str(record.year_due) if record.year_due is not None else ""
        small = f"{record.small_amount:,.0f}" if record.small_amount is not None else ""
        micro = f"{record.micro_amount:,.0f}" if record.micro_amount is not None else ""
        rows.append(
            f"{record.category:<12} {record.lifecycle_stage:<11} {year:>4} "
            f"{record.base_amount:>10,.0f} {small:>10} {micro:>10} {record.currency:<4} "
            f"{record.effective_date.isoformat()}"
        )
    return "\n".join(rows)
