import logging
from typing import Iterable, List, Optional, Tuple

from .models import PredictionQuality, RecordedDeal
from .scoring import round_half_up

logger = logging.getLogger(__name__)

# Points awarded per populated optional field when grading historical deals.
# The remaining 34 points are granted to every row for its required columns.
COMPLETENESS_BASE_POINTS = 34
COMPLETENESS_POINTS: List[Tuple[str, int]] = [
    ("oem", 10),
    ("customer_price_sensitivity", 8),
    ("deal_urgency", 8),
    ("customer_loyalty", 6),
    ("solution_differentiation", 6),
    ("is_new_logo", 4),
    ("services_attached", 4),
    ("quarter_end", 4),
    ("competitor_names", 6),
]
COMPLETENESS_BOM_POINTS = 10

# Live-deal assessment: 75 points from fields, up to 25 from algorithm confidence
LIVE_BASE_POINTS = 22
LIVE_FIELD_POINTS: List[Tuple[str, int, str]] = [
    ("oem", 8, "OEM vendor"),
    ("customer_price_sensitivity", 6, "Price sensitivity (1-5)"),
    ("deal_urgency", 6, "Deal urgency (1-5)"),
    ("customer_loyalty", 5, "Customer loyalty (1-5)"),
    ("solution_differentiation", 5, "Solution differentiation (1-5)"),
    ("is_new_logo", 3, "New logo flag"),
    ("services_attached", 3, "Services attached"),
    ("quarter_end", 3, "Quarter-end timing"),
    ("competitor_names", 6, "Competitor names"),
]
LIVE_BOM_POINTS = 8
LIVE_CONFIDENCE_POINTS = 25
MAX_MISSING_FIELDS = 5


def deal_completeness_score(deal: RecordedDeal) -> int:
    """Score a recorded deal 34-100 by how many optional fields are filled."""
    score = COMPLETENESS_BASE_POINTS
    for field_name, points in COMPLETENESS_POINTS:
        if getattr(deal, field_name) is not None:
            score += points
    if deal.has_bom:
        score += COMPLETENESS_BOM_POINTS
    return score


def average_completeness(deals: Iterable[RecordedDeal]) -> int:
    """Rounded mean completeness across deals; 0 when there are none."""
    scores = [deal_completeness_score(deal) for deal in deals]
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))


def quality_grade(score: float) -> str:
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Fair"
    return "Poor"


def assess_prediction_quality(deal: RecordedDeal, confidence: Optional[float] = None) -> PredictionQuality:
    """
    Grade how trustworthy a prediction for a live deal can be.

    Missing optional inputs are listed (first five) so the seller knows what
    to fill in; algorithm confidence contributes up to 25 points.
    """
    score = float(LIVE_BASE_POINTS)
    missing: List[str] = []
    for field_name, points, label in LIVE_FIELD_POINTS:
        if getattr(deal, field_name) is not None:
            score += points
        else:
            missing.append(label)
    if deal.has_bom:
        score += LIVE_BOM_POINTS
    else:
        missing.append("Bill of materials")

    conf = 0.4 if confidence is None else min(max(float(confidence), 0.0), 1.0)
    score += round_half_up(conf * LIVE_CONFIDENCE_POINTS)
    score = min(100.0, float(round_half_up(score)))

    return PredictionQuality(
        score=score,
        grade=quality_grade(score),
        missing_fields=missing[:MAX_MISSING_FIELDS],
    )
