"""
DealScope - per-tenant adaptive deal scoring
"""

__version__ = "1.0.0"
__author__ = "DealScope Team"

from .core.scoring import compute_deal_score
from .core.explain import generate_phase1_guidance, generate_top_drivers

__all__ = [
    "compute_deal_score",
    "generate_phase1_guidance",
    "generate_top_drivers",
]
