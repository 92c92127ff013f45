import logging
from typing import Any, Dict, Optional

from .. import config
from ..core.errors import InvalidPhaseError
from ..core.models import AlgorithmPhase
from ..core.quality import average_completeness
from ..database.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)


def _requirement(current: Any, required: Any, met: bool) -> Dict[str, Any]:
    return {"current": current, "required": required, "met": bool(met)}


class PhaseService:
    """
    Reads, evaluates and persists a tenant's algorithm phase.

    Phase 1 is the safe default: unknown tenants, missing config rows and
    null phases all resolve to it without raising. ``set_phase`` is the only
    write path, and nothing here ever lowers a phase on its own.
    """

    def __init__(self, db_client: Optional[SupabaseClient] = None):
        self.db = db_client or SupabaseClient()

    def get_phase(self, customer_id: Optional[str]) -> int:
        if not customer_id:
            return AlgorithmPhase.HEURISTIC.value
        phase = self.db.get_algorithm_phase(customer_id)
        return AlgorithmPhase.HEURISTIC.value if phase is None else phase

    def get_phase_by_org(self, org_id: Optional[str]) -> int:
        if not org_id:
            return AlgorithmPhase.HEURISTIC.value
        customer_id = self.db.get_customer_id_for_org(org_id)
        return self.get_phase(customer_id)

    def set_phase(self, customer_id: str, phase: int) -> None:
        if isinstance(phase, bool) or not isinstance(phase, int) or phase not in config.VALID_PHASES:
            raise InvalidPhaseError(phase)
        self.db.upsert_algorithm_phase(customer_id, int(phase))
        logger.info("Set algorithm phase for customer %s to %s", customer_id, phase)

    def check_readiness(self, customer_id: str) -> Dict[str, Any]:
        """
        Report progress toward phase 2 (volume + data quality) and phase 3
        (an active model plus enough deals with bill-of-materials detail).
        """
        current_phase = self.get_phase(customer_id)
        org_ids = self.db.get_org_ids(customer_id) if customer_id else []

        if org_ids:
            deals = self.db.fetch_recorded_deals(org_ids)
            deal_count = len(deals)
            bom_count = sum(1 for deal in deals if deal.has_bom)
            avg_quality = average_completeness(deals)
        else:
            logger.info("No active licenses with org_id for customer %s", customer_id)
            deal_count = bom_count = avg_quality = 0

        deals_met = bool(org_ids) and deal_count >= config.PHASE2_MIN_DEALS
        quality_met = bool(org_ids) and avg_quality >= config.PHASE2_MIN_QUALITY
        phase2_active = current_phase >= AlgorithmPhase.MODEL.value
        bom_met = bool(org_ids) and bom_count >= config.PHASE3_MIN_BOM_DEALS

        report = {
            "current_phase": current_phase,
            "phase2_ready": deals_met and quality_met,
            "phase3_ready": phase2_active and bom_met,
            "phase2_requirements": {
                "recorded_deals": _requirement(deal_count, config.PHASE2_MIN_DEALS, deals_met),
                "avg_data_quality": _requirement(avg_quality, config.PHASE2_MIN_QUALITY, quality_met),
            },
            "phase3_requirements": {
                "phase2_active": _requirement(phase2_active, True, phase2_active),
                "deals_with_bom": _requirement(bom_count, config.PHASE3_MIN_BOM_DEALS, bom_met),
            },
        }
        logger.debug("Readiness for %s: %s", customer_id, report)
        return report
