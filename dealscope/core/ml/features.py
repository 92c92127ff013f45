import logging
from typing import Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..models import RecordedDeal

logger = logging.getLogger(__name__)

DealLike = Union[RecordedDeal, Dict]

TOP_OEMS = ["Cisco", "Dell", "HPE", "Microsoft", "Palo Alto", "CrowdStrike"]

CATEGORICAL_FEATURES = [
    "segment",
    "industry",
    "product_category",
    "deal_reg_type",
    "competitors",
    "value_add",
    "relationship_strength",
    "customer_tech_sophistication",
    "solution_complexity",
    "var_strategic_importance",
    "oem",
]
# Continuous inputs and the neutral value used when a deal leaves them blank
NUMERIC_DEFAULTS: Dict[str, float] = {
    "price_sensitivity": 3.0,
    "customer_loyalty": 3.0,
    "deal_urgency": 3.0,
    "solution_differentiation": 3.0,
    "deal_size_log": 0.0,
    "bom_line_count": 0.0,
    "bom_avg_margin_pct": 0.0,
    "competitor_count": 0.0,
    "proposed_margin": 0.0,
}
BINARY_FEATURES = [
    "is_new_logo",
    "services_attached",
    "quarter_end",
    "has_manual_bom",
    "has_bom",
]

# Display names for the non-categorical features; one-hot columns are
# rendered as "<Column>: <value>".
FEATURE_DISPLAY_NAMES = {
    "price_sensitivity": "Price Sensitivity",
    "customer_loyalty": "Customer Loyalty",
    "deal_urgency": "Deal Urgency",
    "solution_differentiation": "Solution Differentiation",
    "deal_size_log": "Deal Size",
    "bom_line_count": "BOM Line Count",
    "bom_avg_margin_pct": "BOM Average Margin",
    "competitor_count": "Competitor Count",
    "proposed_margin": "Proposed Margin",
    "is_new_logo": "New Logo",
    "services_attached": "Services Attached",
    "quarter_end": "Quarter End",
    "has_manual_bom": "Manual BOM",
    "has_bom": "Has BOM",
}


def _flag(value) -> float:
    return 1.0 if isinstance(value, (bool, np.bool_)) and value else 0.0


def competitor_to_num(bucket: Optional[str]) -> float:
    """'0'->0, '1'->1, '2'->2, '3+'->4"""
    if bucket is None:
        return 0.0
    if str(bucket).strip() == "3+":
        return 4.0
    try:
        return float(int(bucket))
    except (TypeError, ValueError):
        return 0.0


def map_oem(oem: Optional[str]) -> str:
    if oem and oem in TOP_OEMS:
        return oem
    return "Other"


def display_name(feature: str) -> str:
    if feature in FEATURE_DISPLAY_NAMES:
        return FEATURE_DISPLAY_NAMES[feature]
    for col in CATEGORICAL_FEATURES:
        prefix = f"{col}_"
        if feature.startswith(prefix):
            label = col.replace("_", " ").title()
            return f"{label}: {feature[len(prefix):]}"
    return feature


def deals_to_frame(deals: Iterable[DealLike]) -> pd.DataFrame:
    """Flatten typed deals (or raw dicts) into a dataframe of raw attributes."""
    rows = []
    for deal in deals:
        if not isinstance(deal, RecordedDeal):
            deal = RecordedDeal.model_validate(deal)
        rows.append(deal.model_dump())
    return pd.DataFrame(rows, columns=list(RecordedDeal.model_fields))


class FeatureEncoder:
    """
    Turns deal attributes into a numeric matrix whose columns are fixed at fit time.

    Categorical columns are one-hot encoded over the values observed during
    fitting; at transform time the matrix is reindexed to the stored names so
    unseen categories become all-zero rows for that group.
    """

    def __init__(self, feature_names: Optional[Sequence[str]] = None) -> None:
        self.feature_names: List[str] = list(feature_names or [])

    @property
    def is_fitted(self) -> bool:
        return bool(self.feature_names)

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        encoded = self._encode(df)
        self.feature_names = list(encoded.columns)
        logger.debug("Encoder fitted with %s features", len(self.feature_names))
        return encoded

    def transform(self, df: pd.DataFrame, *, proposed_margin: Optional[float] = None) -> pd.DataFrame:
        if not self.is_fitted:
            raise RuntimeError("FeatureEncoder must be fitted before transform.")
        encoded = self._encode(df)
        if proposed_margin is not None:
            encoded["proposed_margin"] = float(proposed_margin)
        return encoded.reindex(columns=self.feature_names, fill_value=0.0)

    def _encode(self, df: pd.DataFrame) -> pd.DataFrame:
        working = df.reset_index(drop=True)

        numeric = pd.DataFrame(index=working.index)
        numeric["price_sensitivity"] = pd.to_numeric(working["customer_price_sensitivity"], errors="coerce")
        numeric["customer_loyalty"] = pd.to_numeric(working["customer_loyalty"], errors="coerce")
        numeric["deal_urgency"] = pd.to_numeric(working["deal_urgency"], errors="coerce")
        numeric["solution_differentiation"] = pd.to_numeric(working["solution_differentiation"], errors="coerce")
        oem_cost = pd.to_numeric(working["oem_cost"], errors="coerce").fillna(0.0).clip(lower=0.0)
        numeric["deal_size_log"] = np.log1p(oem_cost)
        numeric["bom_line_count"] = pd.to_numeric(working["bom_line_count"], errors="coerce")
        numeric["bom_avg_margin_pct"] = pd.to_numeric(working["bom_avg_margin_pct"], errors="coerce")
        numeric["competitor_count"] = working["competitors"].map(competitor_to_num)
        numeric["proposed_margin"] = pd.to_numeric(working["achieved_margin"], errors="coerce")
        numeric = numeric.fillna(value=NUMERIC_DEFAULTS).astype(float)

        for col in BINARY_FEATURES:
            if col == "has_bom":
                numeric[col] = (numeric["bom_line_count"] > 0).astype(float)
            else:
                numeric[col] = working[col].map(_flag).astype(float)

        categorical = pd.DataFrame(index=working.index)
        for col in CATEGORICAL_FEATURES:
            series = working[col].fillna("Unknown").astype(str).str.strip().replace("", "Unknown")
            if col == "oem":
                series = series.map(map_oem)
            categorical[col] = series
        dummies = pd.get_dummies(categorical, columns=CATEGORICAL_FEATURES, prefix_sep="_", dtype=float)

        return pd.concat([numeric, dummies], axis=1)


def compute_norm_stats(matrix: pd.DataFrame) -> Dict[str, Dict[str, float]]:
    """Per-feature mean and population std; constant columns get scale 1."""
    means = matrix.mean(axis=0)
    scales = matrix.std(axis=0, ddof=0).replace(0.0, 1.0).fillna(1.0)
    return {
        "means": {name: float(value) for name, value in means.items()},
        "scales": {name: float(value) for name, value in scales.items()},
    }


def apply_norm_stats(matrix: pd.DataFrame, norm_stats: Dict[str, Dict[str, float]]) -> np.ndarray:
    means = pd.Series(norm_stats.get("means", {}), dtype=float).reindex(matrix.columns).fillna(0.0)
    scales = pd.Series(norm_stats.get("scales", {}), dtype=float).reindex(matrix.columns).fillna(1.0)
    scales = scales.replace(0.0, 1.0)
    return ((matrix - means) / scales).to_numpy(dtype=float)
