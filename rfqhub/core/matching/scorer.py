"""Supplier shortlist scoring for a new RFQ.

Each signal adds a fixed number of integer points; the total decides the
ranking. The point values are a product fixture and are reproduced as is.
"""

from __future__ import annotations

from collections.abc import Sequence

from rfqhub.common.enums import QuoteStatus
from rfqhub.core.matching.schemas import SupplierCandidate, SupplierMatch

CATEGORY_PREFERENCE_POINTS = 3
LOCATION_POINTS = 3
CITY_PREFERENCE_POINTS = 2
CATEGORY_HISTORY_POINTS = 2
HIGH_TRUST_POINTS = 2
VERIFIED_POINTS = 1
PROVEN_CLOSER_POINTS = 1

HIGH_TRUST_THRESHOLD = 70

SHORTLIST_SIZE = 15
MIN_SCORED_SUPPLIERS = 5


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def text_overlaps(a: str | None, b: str | None) -> bool:
    """Case-insensitive substring match in either direction; blanks never match."""
    a, b = _norm(a), _norm(b)
    if not a or not b:
        return False
    return a in b or b in a


def score_supplier(
    supplier: SupplierCandidate, category: str, location: str | None,
) -> tuple[int, list[str]]:
    score = 0
    reasons: list[str] = []

    if any(text_overlaps(category, pref) for pref in supplier.preferred_categories):
        score += CATEGORY_PREFERENCE_POINTS
        reasons.append("Category preference")

    if text_overlaps(supplier.location, location):
        score += LOCATION_POINTS
        reasons.append("Location match")

    if any(text_overlaps(location, city) for city in supplier.preferred_cities):
        score += CITY_PREFERENCE_POINTS
        reasons.append("Serves this city")

    wanted = _norm(category)
    if wanted and any(_norm(h.category) == wanted for h in supplier.history):
        score += CATEGORY_HISTORY_POINTS
        reasons.append("Quoted in this category before")

    if supplier.trust_score >= HIGH_TRUST_THRESHOLD:
        score += HIGH_TRUST_POINTS
        reasons.append(f"Trust {supplier.trust_score}/100")

    if supplier.is_verified:
        score += VERIFIED_POINTS
        reasons.append("Verified")

    if any(h.status == QuoteStatus.ACCEPTED.value for h in supplier.history):
        score += PROVEN_CLOSER_POINTS
        reasons.append("Has won deals")

    return score, reasons


def rank_suppliers(
    pool: Sequence[SupplierCandidate],
    category: str,
    location: str | None,
    limit: int = SHORTLIST_SIZE,
    min_scored: int = MIN_SCORED_SUPPLIERS,
) -> list[SupplierMatch]:
    """Return at most ``limit`` suppliers, best first.

    Ties keep pool order (``sorted`` is stable). Only suppliers with a positive
    score are returned unless fewer than ``min_scored`` of them exist, in which
    case the whole pool is ranked so a cold-start RFQ still reaches an audience.
    """
    matches = []
    for supplier in pool:
        score, reasons = score_supplier(supplier, category, location)
        matches.append(SupplierMatch(supplier=supplier, score=score, reasons=reasons))

    ranked = sorted(matches, key=lambda m: m.score, reverse=True)
    scored = [m for m in ranked if m.score > 0]
    if len(scored) >= min_scored:
        return scored[:limit]
    return ranked[:limit]
