"""Discounted titles from the Steam storefront's featured categories."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from .client import SteamWebClient
from .errors import UpstreamError

PROMOTION_SECTIONS = ("specials", "top_sellers")
CENTS = Decimal(100)
TWO_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class Promotion:
    game_id: str
    name: str
    image: str
    discount_percent: int
    final_price: Optional[Decimal]
    original_price: Optional[Decimal]
    currency: str
    section: str

    def to_dict(self) -> dict:
        return {
            "game_id": self.game_id,
            "name": self.name,
            "image": self.image,
            "discount_percent": self.discount_percent,
            "final_price": _format_price(self.final_price),
            "original_price": _format_price(self.original_price),
            "currency": self.currency,
            "section": self.section,
        }


def list_promotions(client: SteamWebClient) -> List[Promotion]:
    """Flatten specials and top sellers, keeping only discounted entries."""
    payload = client.get_featured_categories()
    if not isinstance(payload, dict):
        raise UpstreamError("Storefront returned an unexpected payload")

    promotions: List[Promotion] = []
    for section in PROMOTION_SECTIONS:
        items = (payload.get(section) or {}).get("items") or []
        for item in items:
            promotion = _promotion_from_item(item, section)
            if promotion is not None:
                promotions.append(promotion)
    return promotions


def cents_to_major(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        cents = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return (cents / CENTS).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def _promotion_from_item(item: Dict[str, Any], section: str) -> Optional[Promotion]:
    try:
        discount = int(item.get("discount_percent") or 0)
    except (TypeError, ValueError):
        return None
    if discount <= 0 or item.get("id") is None:
        return None
    return Promotion(
        game_id=str(item["id"]),
        name=item.get("name") or "",
        image=item.get("large_capsule_image") or item.get("header_image") or "",
        discount_percent=discount,
        final_price=cents_to_major(item.get("final_price")),
        original_price=cents_to_major(item.get("original_price")),
        currency=item.get("currency") or "",
        section=section,
    )


def _format_price(value: Optional[Decimal]) -> Optional[str]:
    if value is None:
        return None
    return f"{value:.2f}"
