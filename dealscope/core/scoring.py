import logging
import math
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .models import PredictionQuality

logger = logging.getLogger(__name__)

MARGIN_ALIGNMENT_MAX = 40
WIN_PROBABILITY_MAX = 25
DATA_QUALITY_MAX = 20
ALGORITHM_CONFIDENCE_MAX = 15

# A planned margin this many points away from the recommendation earns nothing
MARGIN_TOLERANCE_PCT = 10.0
DEFAULT_WIN_PROBABILITY = 0.5
DEFAULT_CONFIDENCE = 0.4

# (low, mid, high) phrases per factor, keyed to score/max bands
FACTOR_LABELS: Dict[str, Tuple[str, str, str]] = {
    "win_probability": (
        "Low win probability at this price",
        "Moderate win probability",
        "Strong win probability",
    ),
    "data_quality": (
        "Deal data is incomplete",
        "Deal data is partially complete",
        "Deal data is complete",
    ),
    "algorithm_confidence": (
        "Limited comparable deals behind this estimate",
        "Moderate algorithm confidence",
        "High algorithm confidence",
    ),
}
MARGIN_BELOW_LABEL = "Planned margin is significantly below the recommended range"
MARGIN_ABOVE_LABEL = "Planned margin is significantly above the recommended range"
MARGIN_MID_LABEL = "Planned margin is in the right range"
MARGIN_HIGH_LABEL = "Planned margin is well-aligned with the recommendation"
MARGIN_UNKNOWN_LABEL = "No planned margin to compare yet"
QUALITY_UNKNOWN_LABEL = "Data quality not assessed"

QualityInput = Union[PredictionQuality, Mapping[str, Any], None]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 always going up, unlike round()."""
    return int(math.floor(value + 0.5))


def clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def _band(ratio: float) -> int:
    if ratio < 1 / 3:
        return 0
    if ratio < 2 / 3:
        return 1
    return 2


def _direction(ratio: float) -> str:
    return "positive" if ratio >= 0.5 else "negative"


def _factor(score: float, maximum: int, label: str) -> Dict[str, Any]:
    ratio = score / maximum
    return {
        "score": round_half_up(score),
        "max": maximum,
        "label": label,
        "direction": _direction(ratio),
    }


def _quality_score(prediction_quality: QualityInput) -> Optional[float]:
    if prediction_quality is None:
        return None
    if isinstance(prediction_quality, PredictionQuality):
        return float(prediction_quality.score)
    score = prediction_quality.get("score")
    if isinstance(score, (int, float)) and not isinstance(score, bool):
        return float(score)
    return None


def compute_deal_score(
    *,
    planned_margin_pct: Optional[float],
    suggested_margin_pct: Optional[float],
    win_probability: Optional[float],
    confidence: Optional[float],
    prediction_quality: QualityInput = None,
) -> Dict[str, Any]:
    """
    Compute a 0-100 deal score from four independent factors.

    - Margin alignment (0-40): closeness of the planned margin % to the
      recommendation; 20 when there is no planned margin to compare.
    - Win probability (0-25): linear in the estimate.
    - Data quality (0-20): from the prediction-quality score; 10 when unknown.
    - Algorithm confidence (0-15): linear in the confidence.

    Returns ``{"deal_score": int, "score_factors": {...}}`` where each factor
    carries ``score``, ``max``, ``label`` and ``direction``.
    """
    # 1. Margin alignment
    if planned_margin_pct is not None and suggested_margin_pct is not None:
        diff = abs(float(planned_margin_pct) - float(suggested_margin_pct))
        alignment = clamp(MARGIN_ALIGNMENT_MAX * max(0.0, 1 - diff / MARGIN_TOLERANCE_PCT), 0, MARGIN_ALIGNMENT_MAX)
        band = _band(alignment / MARGIN_ALIGNMENT_MAX)
        if band == 2:
            alignment_label = MARGIN_HIGH_LABEL
        elif band == 1:
            alignment_label = MARGIN_MID_LABEL
        elif planned_margin_pct < suggested_margin_pct:
            alignment_label = MARGIN_BELOW_LABEL
        else:
            alignment_label = MARGIN_ABOVE_LABEL
    else:
        alignment = MARGIN_ALIGNMENT_MAX / 2
        alignment_label = MARGIN_UNKNOWN_LABEL

    # 2. Win probability
    wp = DEFAULT_WIN_PROBABILITY if win_probability is None else float(win_probability)
    win_score = clamp(wp * WIN_PROBABILITY_MAX, 0, WIN_PROBABILITY_MAX)

    # 3. Data quality
    quality = _quality_score(prediction_quality)
    if quality is None:
        dq_score = DATA_QUALITY_MAX / 2
        dq_label = QUALITY_UNKNOWN_LABEL
    else:
        dq_score = clamp(quality / 100 * DATA_QUALITY_MAX, 0, DATA_QUALITY_MAX)
        dq_label = FACTOR_LABELS["data_quality"][_band(dq_score / DATA_QUALITY_MAX)]

    # 4. Algorithm confidence
    conf = DEFAULT_CONFIDENCE if confidence is None else float(confidence)
    conf_score = clamp(conf * ALGORITHM_CONFIDENCE_MAX, 0, ALGORITHM_CONFIDENCE_MAX)

    total = round_half_up(clamp(alignment + win_score + dq_score + conf_score, 0, 100))

    return {
        "deal_score": total,
        "score_factors": {
            "margin_alignment": _factor(alignment, MARGIN_ALIGNMENT_MAX, alignment_label),
            "win_probability": _factor(
                win_score,
                WIN_PROBABILITY_MAX,
                FACTOR_LABELS["win_probability"][_band(win_score / WIN_PROBABILITY_MAX)],
            ),
            "data_quality": _factor(dq_score, DATA_QUALITY_MAX, dq_label),
            "algorithm_confidence": _factor(
                conf_score,
                ALGORITHM_CONFIDENCE_MAX,
                FACTOR_LABELS["algorithm_confidence"][_band(conf_score / ALGORITHM_CONFIDENCE_MAX)],
            ),
        },
    }
