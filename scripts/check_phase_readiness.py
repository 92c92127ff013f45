"""
Show phase readiness for one or more customers.

Usage:
    python -m scripts.check_phase_readiness --customer-id cust-123
    python -m scripts.check_phase_readiness --all
"""

import argparse
import logging
import sys

from rich import box
from rich.console import Console
from rich.table import Table

from dealscope.database.supabase_client import SupabaseClient
from dealscope.services.phase_service import PhaseService

logging.basicConfig(level=logging.WARNING, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger("check_phase_readiness")

console = Console()


def _mark(requirement) -> str:
    colour = "green" if requirement["met"] else "red"
    return f"[{colour}]{requirement['current']} / {requirement['required']}[/{colour}]"


def main() -> None:
    parser = argparse.ArgumentParser(description="Report algorithm phase readiness.")
    parser.add_argument("--customer-id", action="append", default=[], help="Customer to check (repeatable).")
    parser.add_argument("--all", action="store_true", help="Check every customer with an active license.")
    args = parser.parse_args()

    try:
        db = SupabaseClient()
        service = PhaseService(db)
        customer_ids = list(args.customer_id)
        if args.all:
            customer_ids.extend(c for c in db.list_licensed_customers() if c not in customer_ids)
        if not customer_ids:
            parser.error("Pass --customer-id or --all")

        table = Table(box=box.SIMPLE_HEAVY)
        table.add_column("Customer")
        table.add_column("Phase")
        table.add_column("Deals")
        table.add_column("Avg quality")
        table.add_column("Phase 2 ready")
        table.add_column("BOM deals")
        table.add_column("Phase 3 ready")

        for customer_id in customer_ids:
            report = service.check_readiness(customer_id)
            p2 = report["phase2_requirements"]
            p3 = report["phase3_requirements"]
            table.add_row(
                customer_id,
                str(report["current_phase"]),
                _mark(p2["recorded_deals"]),
                _mark(p2["avg_data_quality"]),
                "yes" if report["phase2_ready"] else "no",
                _mark(p3["deals_with_bom"]),
                "yes" if report["phase3_ready"] else "no",
            )
        console.print(table)
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Readiness check failed:[/red] {exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
