"""
Plain-language explanations built from signed driver impacts.

Drivers come either from the heuristic recommender (rule names such as
"SMB base") or from a trained model (feature display names such as
"Competitor Count"). Known names map to canned sentences; anything else gets
a generic sentence.
"""

import logging
from itertools import islice
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from .models import Driver

logger = logging.getLogger(__name__)

MAX_DRIVER_SENTENCES = 3
MAX_GUIDANCE_ITEMS = 3

DRIVER_SENTENCES: Dict[str, str] = {
    # Heuristic recommender drivers
    "SMB base": "SMB pricing norms support a higher margin on this deal.",
    "Mid-market base": "Mid-market pricing norms support a balanced margin.",
    "Enterprise base": "Enterprise buyers expect sharper pricing, which caps the margin.",
    "Premium/Hunting registration": "Premium deal registration protects your price against other partners.",
    "Standard/Teaming registration": "Standard deal registration gives you some pricing protection.",
    "No registration benefit": "Without deal registration you have no vendor price protection.",
    "No competitors": "With no direct competition you can hold a stronger margin.",
    "2 competitors": "Two competitors on the deal are adding price pressure.",
    "3+ competitors": "Three or more competitors are creating significant price pressure.",
    "High VAR value-add": "Your high value-add services justify a premium margin.",
    "Medium VAR value-add": "Your value-add services support a modest premium.",
    "Strategic relationship": "A strategic customer relationship supports a stronger margin.",
    "Good relationship": "A good customer relationship gives you some pricing room.",
    "High price sensitivity": "The customer is price sensitive, which pushes the margin down.",
    "Low price sensitivity": "The customer is not price sensitive, leaving room for margin.",
    "High customer loyalty": "Customer loyalty lowers the risk of losing on price.",
    "Low customer loyalty": "Low customer loyalty raises the risk of losing on price.",
    "Services category": "Services carry higher margins than hardware resale.",
    "High deal urgency": "The customer's urgency reduces pressure to discount.",
    "Low deal urgency": "Low urgency gives the customer time to shop around.",
    "New logo deal": "Winning a new logo usually requires a sharper price.",
    "Strong solution differentiation": "Strong solution differentiation reduces head-to-head price comparison.",
    "Weak solution differentiation": "Weak differentiation makes this deal easy to compare on price.",
    "XL deal size": "The large deal size typically comes with lower percentage margins.",
    "Services attached": "Attached services lift the blended margin.",
    "Quarter-end timing": "Quarter-end timing gives you leverage with the vendor.",
    # Model feature drivers
    "Competitor Count": "The number of competitors is driving price pressure on this deal.",
    "Price Sensitivity": "Customer price sensitivity is shaping the win probability at this margin.",
    "Customer Loyalty": "Customer loyalty is influencing how much margin the deal can carry.",
    "Deal Urgency": "Deal urgency is affecting how much the customer will shop on price.",
    "Solution Differentiation": "How differentiated your solution is affects price comparison.",
    "Deal Size": "Deal size is moving the expected margin.",
    "Proposed Margin": "The proposed margin itself is the strongest lever on win probability.",
    "Services Attached": "Attached services lift the blended margin.",
    "New Logo": "New-logo status changes how aggressively you need to price.",
    "Segment: SMB": "SMB pricing norms support a higher margin on this deal.",
    "Segment: Enterprise": "Enterprise buyers expect sharper pricing, which caps the margin.",
    "Deal Reg Type: NotRegistered": "Without deal registration you have no vendor price protection.",
    "Deal Reg Type: PremiumHunting": "Premium deal registration protects your price against other partners.",
    "Relationship Strength: Strategic": "A strategic customer relationship supports a stronger margin.",
}

# Short noun phrases used in phase-1 guidance
DRIVER_PHRASES: Dict[str, str] = {
    "SMB base": "SMB segment pricing",
    "Premium/Hunting registration": "premium deal registration",
    "Standard/Teaming registration": "standard deal registration",
    "No registration benefit": "no deal registration",
    "No competitors": "no direct competition",
    "2 competitors": "two competitors",
    "3+ competitors": "three or more competitors",
    "High VAR value-add": "high value-add services",
    "Strategic relationship": "a strategic relationship",
    "High price sensitivity": "a price-sensitive customer",
    "New logo deal": "new-logo pricing pressure",
    "Weak solution differentiation": "weak solution differentiation",
}

UNREGISTERED_TIP = "Register this deal with the vendor to unlock price protection and better cost."
COMPETITION_TIP = "Three or more competitors are bidding; lead with value and services rather than price."
UNREGISTERED_VALUES = {"NotRegistered", "Not Registered", "None", "none", "No"}

DriverInput = Union[Driver, Mapping[str, Any], Tuple[str, float]]


def _to_driver(item: DriverInput) -> Driver:
    if isinstance(item, Driver):
        return item
    if isinstance(item, Mapping):
        return Driver(name=str(item["name"]), val=float(item.get("val") or 0.0))
    name, val = item
    return Driver(name=str(name), val=float(val or 0.0))


def _normalise(drivers: Optional[Iterable[DriverInput]]) -> List[Driver]:
    if not drivers:
        return []
    return [_to_driver(item) for item in drivers]


def driver_sentence(driver: Driver) -> str:
    return DRIVER_SENTENCES.get(driver.name, f"{driver.name} is influencing the recommendation.")


def iter_driver_sentences(drivers: Optional[Iterable[DriverInput]]) -> Iterator[str]:
    """Yield one sentence per driver, strongest absolute impact first."""
    ranked = sorted(_normalise(drivers), key=lambda d: abs(d.val), reverse=True)
    for driver in ranked:
        yield driver_sentence(driver)


def generate_top_drivers(drivers: Optional[Iterable[DriverInput]], limit: int = MAX_DRIVER_SENTENCES) -> List[str]:
    """At most ``limit`` explanation sentences; empty input gives an empty list."""
    return list(islice(iter_driver_sentences(drivers), limit))


def _phrase(driver: Driver) -> str:
    if driver.name in DRIVER_PHRASES:
        return DRIVER_PHRASES[driver.name]
    # Lowercase mid-sentence, keeping acronyms such as OEM or SMB
    words = driver.name.split()
    return " ".join(word if len(word) > 1 and word.isupper() else word.lower() for word in words)


def generate_phase1_guidance(
    drivers: Optional[Sequence[DriverInput]],
    context: Optional[Mapping[str, Any]] = None,
) -> List[str]:
    """
    Coaching text for tenants still on heuristic scoring.

    Strength and risk sentences come from the most positive and most negative
    drivers; fixed tips fire for unregistered deals and crowded competition.
    """
    context = context or {}
    ranked = _normalise(drivers)
    guidance: List[str] = []

    positives = [d for d in ranked if d.val > 0]
    negatives = [d for d in ranked if d.val < 0]
    if positives:
        best = max(positives, key=lambda d: d.val)
        guidance.append(f"Deal strengths: {_phrase(best)} is working in your favor.")
    if negatives:
        worst = min(negatives, key=lambda d: d.val)
        guidance.append(f"Watch out for: {_phrase(worst)} is pulling the margin down.")

    if str(context.get("deal_reg_type") or "") in UNREGISTERED_VALUES:
        guidance.append(UNREGISTERED_TIP)
    if str(context.get("competitors") or "") == "3+":
        guidance.append(COMPETITION_TIP)

    return guidance[:MAX_GUIDANCE_ITEMS]
