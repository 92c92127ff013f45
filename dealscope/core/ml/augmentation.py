"""
Label-preserving synthetic augmentation for small per-tenant training sets.

Every real deal yields exactly one perturbed copy. Categorical shifts stay
plausible for the deal's segment/vendor pairing and numeric attributes get
bounded jitter; the Won/Lost status is never touched.
"""

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np

from ..models import RecordedDeal

logger = logging.getLogger(__name__)

SEGMENT_ORDER = ["SMB", "MidMarket", "Enterprise"]

# Vendors that realistically sell into each segment
SEGMENT_VENDORS: Dict[str, List[str]] = {
    "SMB": ["Microsoft", "Dell", "CrowdStrike"],
    "MidMarket": ["Microsoft", "Dell", "HPE", "Cisco", "CrowdStrike", "Palo Alto"],
    "Enterprise": ["Cisco", "HPE", "Palo Alto", "Microsoft", "Dell"],
}

KNOWN_VENDORS = {vendor for vendors in SEGMENT_VENDORS.values() for vendor in vendors}

SCALE_FIELDS = [
    "customer_price_sensitivity",
    "customer_loyalty",
    "deal_urgency",
    "solution_differentiation",
]

MARGIN_FLOOR = 0.01
MARGIN_CEILING = 0.55


class SyntheticDealGenerator:
    """
    Produce one jittered copy per recorded deal.

    Args:
        seed: RNG seed so a training run is reproducible.
        segment_shift_prob: Chance of moving a deal to an adjacent segment.
        vendor_shift_prob: Chance of swapping the OEM for another vendor
            that sells into the (possibly shifted) segment.
        scale_jitter_prob: Chance of nudging each 1-5 attribute by one step.
        cost_jitter: Relative bound on OEM cost jitter.
        margin_sigma: Std-dev of the additive margin noise.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        *,
        segment_shift_prob: float = 0.15,
        vendor_shift_prob: float = 0.2,
        scale_jitter_prob: float = 0.25,
        cost_jitter: float = 0.10,
        margin_sigma: float = 0.01,
    ) -> None:
        self.rng = np.random.default_rng(seed)
        self.segment_shift_prob = segment_shift_prob
        self.vendor_shift_prob = vendor_shift_prob
        self.scale_jitter_prob = scale_jitter_prob
        self.cost_jitter = cost_jitter
        self.margin_sigma = margin_sigma

    def generate(self, deals: Sequence[RecordedDeal]) -> List[RecordedDeal]:
        synthetic = [self.perturb(deal) for deal in deals]
        logger.debug("Generated %s synthetic deals", len(synthetic))
        return synthetic

    def perturb(self, deal: RecordedDeal) -> RecordedDeal:
        updates: Dict[str, object] = {}

        segment = self._shift_segment(deal.segment)
        if segment != deal.segment:
            updates["segment"] = segment

        oem = self._shift_vendor(deal.oem, segment)
        if oem != deal.oem:
            updates["oem"] = oem

        for field_name in SCALE_FIELDS:
            value = getattr(deal, field_name)
            if value is None or self.rng.random() >= self.scale_jitter_prob:
                continue
            step = int(self.rng.choice([-1, 1]))
            updates[field_name] = int(min(5, max(1, value + step)))

        if deal.oem_cost is not None:
            factor = self.rng.uniform(1.0 - self.cost_jitter, 1.0 + self.cost_jitter)
            updates["oem_cost"] = max(0.0, deal.oem_cost * factor)

        if deal.achieved_margin is not None:
            margin = deal.achieved_margin + self.rng.normal(0.0, self.margin_sigma)
            updates["achieved_margin"] = float(min(MARGIN_CEILING, max(MARGIN_FLOOR, margin)))

        if deal.bom_line_count:
            delta = int(round(deal.bom_line_count * self.rng.uniform(-0.1, 0.1)))
            updates["bom_line_count"] = max(1, deal.bom_line_count + delta)
        if deal.bom_avg_margin_pct is not None:
            updates["bom_avg_margin_pct"] = max(0.0, deal.bom_avg_margin_pct + self.rng.normal(0.0, 0.5))

        return deal.model_copy(update=updates)

    def _shift_segment(self, segment: Optional[str]) -> Optional[str]:
        if segment not in SEGMENT_ORDER or self.rng.random() >= self.segment_shift_prob:
            return segment
        idx = SEGMENT_ORDER.index(segment)
        neighbours = [SEGMENT_ORDER[i] for i in (idx - 1, idx + 1) if 0 <= i < len(SEGMENT_ORDER)]
        return str(self.rng.choice(neighbours))

    def _shift_vendor(self, oem: Optional[str], segment: Optional[str]) -> Optional[str]:
        candidates = SEGMENT_VENDORS.get(segment or "")
        if not oem or not candidates:
            return oem
        if oem in candidates and self.rng.random() >= self.vendor_shift_prob:
            return oem
        if oem not in KNOWN_VENDORS:
            # Long-tail vendors stay as recorded
            return oem
        alternatives = [vendor for vendor in candidates if vendor != oem] or candidates
        return str(self.rng.choice(alternatives))
