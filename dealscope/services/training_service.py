import logging
import threading
from collections import defaultdict
from time import perf_counter
from typing import Any, Dict, List, Optional

from .. import config
from ..core.models import AlgorithmPhase, ModelPackage, RecordedDeal
from ..core.ml.trainer import ModelTrainer, TrainerConfig
from ..database.supabase_client import SupabaseClient
from .phase_service import PhaseService

logger = logging.getLogger(__name__)


def _rejection(code: str, reason: str, deals: Optional[List[RecordedDeal]] = None) -> Dict[str, Any]:
    result: Dict[str, Any] = {"success": False, "code": code, "reason": reason}
    if deals is not None:
        won = sum(1 for deal in deals if deal.is_won)
        result.update({"deal_count": len(deals), "won_count": won, "lost_count": len(deals) - won})
    return result


class TrainingService:
    """
    Trains, stores and serves per-tenant win/loss models.

    A run fetches the tenant's closed deals, checks the minimums, fits a
    model, writes the whole package in one upsert and only then considers
    promoting the tenant to phase 2. Runs for the same tenant are
    serialized; different tenants train independently.
    """

    def __init__(
        self,
        db_client: Optional[SupabaseClient] = None,
        phase_service: Optional[PhaseService] = None,
        trainer_config: Optional[TrainerConfig] = None,
    ):
        self.db = db_client or SupabaseClient()
        self.phases = phase_service or PhaseService(self.db)
        self.trainer_config = trainer_config or TrainerConfig()
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def _tenant_lock(self, customer_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[customer_id]

    def train_model(self, customer_id: str) -> Dict[str, Any]:
        with self._tenant_lock(customer_id):
            return self._train_locked(customer_id)

    def _check_minimums(self, deals: List[RecordedDeal]) -> Optional[Dict[str, Any]]:
        won = sum(1 for deal in deals if deal.is_won)
        lost = len(deals) - won
        counts = f"({won} won, {lost} lost currently)"

        if len(deals) < config.TRAINING_MIN_DEALS:
            needed = config.TRAINING_MIN_DEALS - len(deals)
            return _rejection("insufficient_deals", f"Need {needed} more deals {counts}", deals)
        if won < config.TRAINING_MIN_PER_CLASS:
            needed = config.TRAINING_MIN_PER_CLASS - won
            return _rejection("insufficient_won", f"Need {needed} more won deals {counts}", deals)
        if lost < config.TRAINING_MIN_PER_CLASS:
            needed = config.TRAINING_MIN_PER_CLASS - lost
            return _rejection("insufficient_lost", f"Need {needed} more lost deals {counts}", deals)
        return None

    def _train_locked(self, customer_id: str) -> Dict[str, Any]:
        started = perf_counter()

        org_ids = self.db.get_org_ids(customer_id)
        if not org_ids:
            logger.warning("Training refused for %s: no active licenses with org_id", customer_id)
            return _rejection("no_org", "No active licenses with org_id found")

        deals = [deal for deal in self.db.fetch_recorded_deals(org_ids, closed_only=True) if deal.is_closed]
        rejection = self._check_minimums(deals)
        if rejection:
            logger.warning("Training refused for %s: %s", customer_id, rejection["reason"])
            return rejection

        try:
            outcome = ModelTrainer(self.trainer_config).train(deals)
            self.db.upsert_ml_model(customer_id, outcome.package)
        except Exception:
            logger.exception("Training failed for customer %s", customer_id)
            raise

        current_phase = self.phases.get_phase(customer_id)
        auc = float(outcome.metrics["auc"])
        if current_phase < AlgorithmPhase.MODEL.value and auc >= config.PROMOTION_MIN_AUC:
            self.phases.set_phase(customer_id, AlgorithmPhase.MODEL.value)
            logger.info("Promoted customer %s to phase 2 (auc %.3f)", customer_id, auc)

        phase = self.phases.get_phase(customer_id)
        logger.info(
            "Trained model for %s | deals=%s synthetic=%s epochs=%s auc=%.3f | %.2fs",
            customer_id,
            outcome.deal_count,
            outcome.synthetic_count,
            outcome.epochs_run,
            auc,
            perf_counter() - started,
        )
        return {
            "success": True,
            "deal_count": outcome.deal_count,
            "metrics": outcome.metrics,
            "synthetic_count": outcome.synthetic_count,
            "top_features": outcome.top_features,
            "epochs_run": outcome.epochs_run,
            "phase": phase,
        }

    def get_model(self, customer_id: Optional[str]) -> Optional[ModelPackage]:
        if not customer_id:
            return None
        return self.db.get_ml_model(customer_id)

    def get_model_by_org_id(self, org_id: Optional[str]) -> Optional[ModelPackage]:
        if not org_id:
            return None
        customer_id = self.db.get_customer_id_for_org(org_id)
        return self.get_model(customer_id)
