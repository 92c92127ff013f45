"""
Pydantic models for data validation and type safety.
"""

import logging
import math
from typing import Dict, List, Optional, Any
from enum import Enum
from pydantic import BaseModel, Field
from pydantic import ConfigDict, ValidationInfo
from pydantic import field_validator, model_validator

logger = logging.getLogger(__name__)

SCALE_MIN = 1
SCALE_MAX = 5
_TRUE_STRINGS = {"true", "t", "yes", "y", "1"}
_FALSE_STRINGS = {"false", "f", "no", "n", "0"}


class DealStatus(str, Enum):
    """Terminal outcome of a recorded deal"""
    WON = "Won"
    LOST = "Lost"


class AlgorithmPhase(int, Enum):
    """Maturity tier controlling whether heuristics or a model drive scoring"""
    HEURISTIC = 1
    MODEL = 2
    LINE_ITEM = 3


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def _to_number(value: Any, field_name: Optional[str] = None) -> Optional[float]:
    """Parse loosely typed numerics; unparseable values become None with a warning."""
    value = _blank_to_none(value)
    if value is None:
        return None
    if isinstance(value, str):
        value = value.replace("$", "").replace(",", "")
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning("Dropping unparseable %s value %r", field_name, value)
        return None
    if math.isnan(number):
        return None
    return number


class RecordedDeal(BaseModel):
    """
    One closed opportunity as stored in ``recorded_deals``.

    Rows arrive from PostgREST with stringified decimals and mixed
    null/blank values; every coercion happens here so feature engineering
    can rely on plain Python types. Values that cannot be trusted (1-5
    scales out of range, negative costs or counts, unknown flag strings,
    unparseable numbers) are logged and become None, so neutral imputation
    applies instead of one bad row failing a whole tenant.
    """
    model_config = ConfigDict(extra="ignore")

    org_id: Optional[str] = None

    # Categorical attributes
    segment: Optional[str] = None
    industry: Optional[str] = None
    product_category: Optional[str] = None
    deal_reg_type: Optional[str] = None
    competitors: Optional[str] = None
    value_add: Optional[str] = None
    relationship_strength: Optional[str] = None
    customer_tech_sophistication: Optional[str] = None
    solution_complexity: Optional[str] = None
    var_strategic_importance: Optional[str] = None
    oem: Optional[str] = None

    # Numeric attributes
    customer_price_sensitivity: Optional[int] = None
    customer_loyalty: Optional[int] = None
    deal_urgency: Optional[int] = None
    solution_differentiation: Optional[int] = None
    oem_cost: Optional[float] = None
    bom_line_count: Optional[int] = None
    bom_avg_margin_pct: Optional[float] = None

    # Flags
    is_new_logo: Optional[bool] = None
    services_attached: Optional[bool] = None
    quarter_end: Optional[bool] = None
    has_manual_bom: Optional[bool] = None

    achieved_margin: Optional[float] = None
    status: Optional[str] = None
    loss_reason: Optional[str] = None
    competitor_names: Optional[List[str]] = None

    @field_validator(
        "org_id", "segment", "industry", "product_category", "deal_reg_type",
        "value_add", "relationship_strength", "customer_tech_sophistication",
        "solution_complexity", "var_strategic_importance", "oem", "status",
        "loss_reason",
        mode="before",
    )
    @classmethod
    def parse_text(cls, value: Any) -> Optional[str]:
        value = _blank_to_none(value)
        return None if value is None else str(value)

    @field_validator("competitors", mode="before")
    @classmethod
    def parse_competitor_bucket(cls, value: Any) -> Optional[str]:
        value = _blank_to_none(value)
        if value is None:
            return None
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            count = int(value)
            return "3+" if count >= 3 else str(max(count, 0))
        return str(value)

    @field_validator("bom_line_count", mode="before")
    @classmethod
    def parse_count(cls, value: Any, info: ValidationInfo) -> Optional[int]:
        number = _to_number(value, info.field_name)
        if number is None:
            return None
        if number < 0:
            logger.warning("Dropping negative %s value %r", info.field_name, value)
            return None
        return int(round(number))

    @field_validator(
        "customer_price_sensitivity", "customer_loyalty", "deal_urgency",
        "solution_differentiation",
        mode="before",
    )
    @classmethod
    def parse_scale(cls, value: Any, info: ValidationInfo) -> Optional[int]:
        number = _to_number(value, info.field_name)
        if number is None:
            return None
        scale = int(round(number))
        if not SCALE_MIN <= scale <= SCALE_MAX:
            logger.warning("Dropping out-of-range %s value %r", info.field_name, value)
            return None
        return scale

    @field_validator("oem_cost", mode="before")
    @classmethod
    def parse_cost(cls, value: Any, info: ValidationInfo) -> Optional[float]:
        number = _to_number(value, info.field_name)
        if number is not None and number < 0:
            logger.warning("Dropping negative %s value %r", info.field_name, value)
            return None
        return number

    @field_validator("bom_avg_margin_pct", "achieved_margin", mode="before")
    @classmethod
    def parse_decimal(cls, value: Any, info: ValidationInfo) -> Optional[float]:
        return _to_number(value, info.field_name)

    @field_validator("is_new_logo", "services_attached", "quarter_end", "has_manual_bom", mode="before")
    @classmethod
    def parse_flag(cls, value: Any, info: ValidationInfo) -> Optional[bool]:
        value = _blank_to_none(value)
        if value is None:
            return None
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
            logger.warning("Dropping unrecognised %s value %r", info.field_name, value)
            return None
        return bool(value)

    @field_validator("competitor_names", mode="before")
    @classmethod
    def parse_names(cls, value: Any) -> Optional[List[str]]:
        if value is None:
            return None
        if isinstance(value, str):
            value = [part for part in value.split(",")]
        names = [str(name).strip() for name in value if str(name).strip()]
        return names or None

    @property
    def is_won(self) -> bool:
        return self.status == DealStatus.WON.value

    @property
    def is_closed(self) -> bool:
        return self.status in (DealStatus.WON.value, DealStatus.LOST.value)

    @property
    def has_bom(self) -> bool:
        return (self.bom_line_count or 0) > 0


class Driver(BaseModel):
    """A named feature with a signed impact on the recommendation"""
    name: str
    val: float


class PredictionQuality(BaseModel):
    """Completeness assessment for a live deal"""
    score: float = Field(ge=0, le=100)
    grade: str = "Fair"
    missing_fields: List[str] = Field(default_factory=list)


class ModelPackage(BaseModel):
    """
    Persisted per-tenant model document stored in ``customer_config.ml_model``.

    Field aliases match the stored JSON keys; dump with ``by_alias=True``.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    model: Dict[str, Any]
    norm_stats: Dict[str, Dict[str, float]] = Field(alias="normStats")
    feature_names: List[str] = Field(alias="featureNames")
    metrics: Dict[str, Any] = Field(default_factory=dict)
    importance: List[Dict[str, Any]] = Field(default_factory=list)
    deal_count: int = Field(alias="dealCount", ge=0)
    trained_at: str = Field(alias="trainedAt")
    version: int

    @model_validator(mode="after")
    def check_feature_alignment(self) -> "ModelPackage":
        weights = self.model.get("weights")
        if weights is None or "bias" not in self.model:
            raise ValueError("model document is missing weights or bias")
        if len(weights) != len(self.feature_names):
            raise ValueError(
                f"featureNames length ({len(self.feature_names)}) != "
                f"weights length ({len(weights)})"
            )
        return self

    @property
    def auc(self) -> float:
        return float(self.metrics.get("auc", 0.5))

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)
