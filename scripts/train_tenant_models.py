"""
CLI script to train per-tenant win/loss models.

Usage:
    python -m scripts.train_tenant_models --customer-id cust-123
    python -m scripts.train_tenant_models --all --workers 4
"""

import argparse
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List

from rich import box
from rich.console import Console
from rich.table import Table

from dealscope.core.ml.trainer import TrainerConfig
from dealscope.database.supabase_client import SupabaseClient
from dealscope.services.training_service import TrainingService

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
logger = logging.getLogger("train_tenant_models")

console = Console()


def _train_one(service: TrainingService, customer_id: str) -> Dict[str, Any]:
    try:
        return service.train_model(customer_id)
    except Exception as exc:  # noqa: BLE001
        logger.error("Training crashed for %s: %s", customer_id, exc, exc_info=True)
        return {"success": False, "code": "error", "reason": str(exc)}


def _render(results: Dict[str, Dict[str, Any]]) -> None:
    table = Table(box=box.SIMPLE_HEAVY)
    table.add_column("Customer")
    table.add_column("Result")
    table.add_column("Deals")
    table.add_column("AUC")
    table.add_column("Epochs")
    table.add_column("Phase")
    table.add_column("Reason")
    for customer_id, result in sorted(results.items()):
        metrics = result.get("metrics") or {}
        auc = metrics.get("auc")
        table.add_row(
            customer_id,
            "[green]trained[/green]" if result.get("success") else f"[yellow]{result.get('code')}[/yellow]",
            str(result.get("deal_count", "-")),
            f"{auc:.3f}" if auc is not None else "-",
            str(result.get("epochs_run", "-")),
            str(result.get("phase", "-")),
            result.get("reason", ""),
        )
    console.print(table)


def main() -> None:
    parser = argparse.ArgumentParser(description="Train per-tenant win/loss models.")
    parser.add_argument("--customer-id", action="append", default=[], help="Customer to train (repeatable).")
    parser.add_argument("--all", action="store_true", help="Train every customer with an active license.")
    parser.add_argument("--workers", type=int, default=4, help="Tenants trained in parallel.")
    parser.add_argument("--epochs", type=int, default=None, help="Override the epoch budget.")
    parser.add_argument("--seed", type=int, default=None, help="Override the random seed.")
    parser.add_argument("--json", action="store_true", help="Print raw results as JSON.")
    args = parser.parse_args()

    db = SupabaseClient()
    customer_ids: List[str] = list(args.customer_id)
    if args.all:
        customer_ids.extend(c for c in db.list_licensed_customers() if c not in customer_ids)
    if not customer_ids:
        parser.error("Pass --customer-id or --all")

    trainer_config = TrainerConfig()
    if args.epochs is not None:
        trainer_config.epochs = args.epochs
    if args.seed is not None:
        trainer_config.seed = args.seed
    service = TrainingService(db, trainer_config=trainer_config)

    logger.info("Training %s tenant(s) with %s worker(s)", len(customer_ids), args.workers)
    results: Dict[str, Dict[str, Any]] = {}
    with ThreadPoolExecutor(max_workers=max(1, args.workers)) as executor:
        futures = {executor.submit(_train_one, service, cid): cid for cid in customer_ids}
        for future in as_completed(futures):
            results[futures[future]] = future.result()

    if args.json:
        print(json.dumps(results, indent=2, default=str))
    else:
        _render(results)

    if any(r.get("code") == "error" for r in results.values()):
        sys.exit(1)


if __name__ == "__main__":
    main()
