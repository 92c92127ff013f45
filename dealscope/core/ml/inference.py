import logging
from typing import Any, Dict, List, Optional

import numpy as np

from ... import config
from ..models import Driver, ModelPackage, RecordedDeal
from .features import DealLike, display_name
from .logistic import LogisticModel
from .trainer import encode_for_model

logger = logging.getLogger(__name__)


def load_model(package: ModelPackage) -> LogisticModel:
    return LogisticModel.from_dict(package.model)


def predict_win_probability(
    package: ModelPackage,
    deal: DealLike,
    *,
    proposed_margin: Optional[float] = None,
) -> float:
    model = load_model(package)
    features = encode_for_model(package, [deal], proposed_margin=proposed_margin)
    return float(model.predict_proba(features)[0])


def compute_confidence(package: Optional[ModelPackage]) -> float:
    """
    Confidence in a model-backed prediction, 0.1-0.95.

    AUC 0.5 maps to no confidence and 1.0 to full confidence, scaled by how
    much real data the model saw (saturating at 500 deals).
    """
    if package is None:
        return 0.1
    base = (package.auc - 0.5) * 2
    data_factor = min(1.0, package.deal_count / config.CONFIDENCE_SATURATION_DEALS)
    return float(min(0.95, max(0.1, base * data_factor)))


def model_drivers(package: ModelPackage, deal: DealLike, *, limit: int = 5) -> List[Driver]:
    """Signed per-feature contributions (weight x normalized value) for the top-weighted features."""
    features = encode_for_model(package, [deal])[0]
    values = dict(zip(package.feature_names, features))
    drivers: List[Driver] = []
    for item in package.importance[:limit]:
        contribution = float(item["weight"]) * float(values.get(item["name"], 0.0))
        drivers.append(Driver(name=display_name(item["name"]), val=contribution))
    return drivers


def recommend_margin(package: ModelPackage, deal: DealLike) -> Dict[str, Any]:
    """
    Sweep proposed margins and pick optimal, conservative and aggressive options.

    Optimal maximises expected gross profit (GP x pWin). Conservative is the
    highest margin still winning at least 70% of the time, aggressive the
    highest at 45%; each falls back when no sweep point qualifies.
    """
    model = load_model(package)
    margins = np.arange(
        config.MARGIN_SWEEP_MIN,
        config.MARGIN_SWEEP_MAX + config.MARGIN_SWEEP_STEP / 2,
        config.MARGIN_SWEEP_STEP,
    )
    if not isinstance(deal, RecordedDeal):
        deal = RecordedDeal.model_validate(deal)
    candidates = [deal.model_copy(update={"achieved_margin": float(m)}) for m in margins]
    p_win = model.predict_proba(encode_for_model(package, candidates))

    oem_cost = float(deal.oem_cost or 0.0)
    sell_price = oem_cost / (1.0 - margins)
    gross_profit = sell_price - oem_cost
    expected_gp = gross_profit * p_win

    optimal = int(np.argmax(expected_gp))

    conservative_idx = np.flatnonzero(p_win >= config.CONSERVATIVE_MIN_WIN_PROB)
    conservative = int(conservative_idx[-1]) if conservative_idx.size else int(np.argmax(p_win))

    aggressive_idx = np.flatnonzero(p_win >= config.AGGRESSIVE_MIN_WIN_PROB)
    aggressive = int(aggressive_idx[-1]) if aggressive_idx.size else optimal

    curve = [
        {
            "margin": round(float(margins[i]) * 100, 1),
            "p_win": int(round(float(p_win[i]) * 100)),
            "expected_gp": int(round(float(expected_gp[i]))),
        }
        for i in range(0, margins.size, 3)
    ]

    return {
        "suggested_margin_pct": round(float(margins[optimal]) * 100, 1),
        "conservative_margin_pct": round(float(margins[conservative]) * 100, 1),
        "aggressive_margin_pct": round(float(margins[aggressive]) * 100, 1),
        "win_probability": float(p_win[optimal]),
        "expected_gp": float(expected_gp[optimal]),
        "confidence": compute_confidence(package),
        "drivers": model_drivers(package, deal),
        "expected_gp_curve": curve,
        "model_metrics": {
            "auc": package.metrics.get("auc"),
            "deal_count": package.deal_count,
            "trained_at": package.trained_at,
        },
        "source": "ml_model",
    }
