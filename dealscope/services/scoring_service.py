import logging
from typing import Any, Dict, Mapping, Optional

from ..core.explain import generate_phase1_guidance, generate_top_drivers
from ..core.ml.inference import recommend_margin
from ..core.models import AlgorithmPhase, RecordedDeal
from ..core.quality import assess_prediction_quality
from ..core.scoring import compute_deal_score
from ..database.supabase_client import SupabaseClient
from .phase_service import PhaseService
from .training_service import TrainingService

logger = logging.getLogger(__name__)


class DealScoringService:
    """
    Scores a live deal for a tenant.

    Tenants at phase 2 or above with a stored model get model-backed win
    probability, confidence and drivers. Everyone else is scored from the
    caller's heuristic recommendation; phase 1 responses also hide the
    suggested margin and carry coaching guidance instead.
    """

    def __init__(
        self,
        db_client: Optional[SupabaseClient] = None,
        phase_service: Optional[PhaseService] = None,
        training_service: Optional[TrainingService] = None,
    ):
        self.db = db_client or SupabaseClient()
        self.phases = phase_service or PhaseService(self.db)
        self.models = training_service or TrainingService(self.db, phase_service=self.phases)

    def score_deal(
        self,
        org_id: str,
        deal: Any,
        planned_margin_pct: Optional[float] = None,
        recommendation: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        deal = deal if isinstance(deal, RecordedDeal) else RecordedDeal.model_validate(deal)
        recommendation = dict(recommendation or {})
        phase = self.phases.get_phase_by_org(org_id)

        package = self.models.get_model_by_org_id(org_id) if phase >= AlgorithmPhase.MODEL.value else None
        if package is not None:
            recommendation = recommend_margin(package, deal)
            source = "ml_model"
        else:
            source = "heuristic"

        confidence = recommendation.get("confidence")
        quality = assess_prediction_quality(deal, confidence)
        score = compute_deal_score(
            planned_margin_pct=planned_margin_pct,
            suggested_margin_pct=recommendation.get("suggested_margin_pct"),
            win_probability=recommendation.get("win_probability"),
            confidence=confidence,
            prediction_quality=quality,
        )
        drivers = recommendation.get("drivers") or []

        response: Dict[str, Any] = {
            "phase": phase,
            "source": source,
            "deal_score": score["deal_score"],
            "score_factors": score["score_factors"],
            "prediction_quality": quality.model_dump(),
            "top_drivers": generate_top_drivers(drivers),
            "suggested_margin_pct": recommendation.get("suggested_margin_pct"),
            "win_probability": recommendation.get("win_probability"),
            "confidence": confidence,
        }
        if phase == AlgorithmPhase.HEURISTIC.value:
            response["suggested_margin_pct"] = None
            response["guidance"] = generate_phase1_guidance(drivers, deal.model_dump())

        logger.debug("Scored deal for org %s: %s (%s)", org_id, response["deal_score"], source)
        return response
