#!/usr/bin/env python3
"""
CLI for the lecturer claims workflow.

Usage:
    python -m src.claims.cli evaluate --lecturer "Dr. A" --hours 8 --rate 45
    python -m src.claims.cli demo
    python -m src.claims.cli serve
"""

import argparse
import logging
import sys
from typing import List

from dotenv import load_dotenv
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..storage import ClaimsRepository, seed_demo_claims
from ..utils.config import get_settings
from ..workflow import WorkflowOutcome
from .errors import ClaimValidationError
from .schema import Claim, ClaimInput, ClaimStatus, ClaimSummary, WorkflowAnalysis

console = Console()

STATUS_STYLES = {
    ClaimStatus.PENDING: "yellow",
    ClaimStatus.APPROVED: "green",
    ClaimStatus.AUTO_APPROVED: "cyan",
    ClaimStatus.REJECTED: "red",
}


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def truncate(text: str, max_len: int = 50) -> str:
    """Truncate text with ellipsis."""
    if not text:
        return ""
    if len(text) > max_len:
        return text[:max_len - 3] + "..."
    return text


def make_claims_table(claims: List[Claim]) -> Table:
    table = Table(title="📋 Claims", box=box.ROUNDED, header_style="bold cyan")
    table.add_column("ID", style="bold", justify="right")
    table.add_column("Lecturer")
    table.add_column("Hours", justify="right")
    table.add_column("Rate", justify="right")
    table.add_column("Amount", justify="right")
    table.add_column("Status")
    table.add_column("Flags")
    table.add_column("Notes", style="dim")

    for claim in claims:
        style = STATUS_STYLES[claim.status]
        table.add_row(
            str(claim.id),
            claim.lecturer_name,
            f"{claim.hours_worked:g}",
            f"R{claim.hourly_rate:,.2f}",
            f"R{claim.total_amount:,.2f}",
            f"[{style}]{claim.status.value}[/{style}]",
            ", ".join(f.value for f in claim.flags),
            truncate(claim.notes),
        )
    return table


def make_summary_panel(summary: ClaimSummary, analysis: WorkflowAnalysis) -> Panel:
    average = (
        f"{analysis.average_processing_hours:.1f} h"
        if analysis.average_processing_hours is not None
        else "no reviews yet"
    )
    lines = [
        f"Total claims:        {summary.total_claims}",
        f"Pending:             {summary.pending_claims}",
        f"Approved:            {summary.approved_claims} ({summary.auto_approved_claims} automatically)",
        f"Rejected:            {summary.rejected_claims}",
        f"Approved amount:     R{summary.total_amount_approved:,.2f}",
        f"Flagged:             {analysis.flagged_claims}",
        f"Auto-approval rate:  {analysis.auto_approval_rate:.0%}",
        f"Avg. processing:     {average}",
        "",
        "Rule matches:",
    ]
    lines.extend(f"  {name}: {count}" for name, count in analysis.rule_frequency.items())
    return Panel("\n".join(lines), title="📊 Summary", box=box.ROUNDED)


def print_outcome(outcome: WorkflowOutcome):
    claim = outcome.claim
    style = "cyan" if outcome.is_auto_approved else "yellow"
    console.print(
        Panel(
            f"Lecturer:  {claim.lecturer_name}\n"
            f"Amount:    R{claim.total_amount:,.2f}\n"
            f"Status:    [{style}]{outcome.status_label}[/{style}]\n"
            f"Rules:     {', '.join(outcome.flags) or 'none'}\n"
            f"Notes:     {claim.notes or '-'}",
            title=f"Claim {claim.id}",
            box=box.ROUNDED,
        )
    )


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Lecturer claims workflow tools',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run one claim through the approval rules
  python -m src.claims.cli evaluate --lecturer "Dr. A" --hours 8 --rate 45

  # Show the demo data set with analytics
  python -m src.claims.cli demo

  # Start the API server
  python -m src.claims.cli serve
        """
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    subparsers = parser.add_subparsers(dest='command', required=True)

    evaluate = subparsers.add_parser('evaluate', help='Evaluate a single claim')
    evaluate.add_argument('--lecturer', required=True, help='Lecturer name')
    evaluate.add_argument('--hours', type=float, required=True, help='Hours worked')
    evaluate.add_argument('--rate', type=float, required=True, help='Hourly rate')
    evaluate.add_argument('--notes', default=None, help='Additional notes')

    subparsers.add_parser('demo', help='Show demo claims and analytics')
    subparsers.add_parser('serve', help='Run the API server')

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main CLI entry point."""
    load_dotenv()
    args = parse_args(argv)
    setup_logging(args.verbose)

    if args.command == 'serve':
        from ..api.app import main as serve
        serve()
        return 0

    repo = ClaimsRepository(settings=get_settings())

    if args.command == 'evaluate':
        try:
            outcome = repo.create_with_outcome(
                ClaimInput(
                    lecturer_name=args.lecturer,
                    hours_worked=args.hours,
                    hourly_rate=args.rate,
                    notes=args.notes,
                )
            )
        except ClaimValidationError as e:
            console.print("[bold red]Claim rejected:[/bold red]")
            for error in e.errors:
                console.print(f"  • {error}")
            return 1
        print_outcome(outcome)
        return 0

    seed_demo_claims(repo)
    for fields in (
        {"lecturer_name": "Dr. A", "hours_worked": 8, "hourly_rate": 45},
        {"lecturer_name": "Dr. B", "hours_worked": 45, "hourly_rate": 60},
        {"lecturer_name": "Dr. C", "hours_worked": 20, "hourly_rate": 250},
    ):
        repo.create(fields)

    console.print(make_claims_table(repo.get_all()))
    console.print(make_summary_panel(repo.get_summary(), repo.get_workflow_analysis()))
    return 0


if __name__ == '__main__':
    sys.exit(main())
