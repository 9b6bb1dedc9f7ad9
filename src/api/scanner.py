# src/api/scanner.py
from __future__ import annotations

import base64
from typing import Any, List, Mapping

from api.client import ApiClient
from api.errors import MalformedResponseError
from api.models import Product, RecognitionResult, VisualMatch
from utils.logger import get_logger

_logger = get_logger(__name__)

_CONFIDENCE_KEYS = ("confidence", "score", "similarity", "match_score", "matchScore")


def _confidence(row: Mapping[str, Any]) -> float:
    for key in _CONFIDENCE_KEYS:
        if row.get(key) is not None:
            try:
                value = float(row[key])
            except (TypeError, ValueError) as e:
                raise MalformedResponseError() from e
            # some matchers report percentages
            return value / 100 if value > 1 else value
    return 0.0


def _matches(rows: Any) -> List[VisualMatch]:
    matches = []
    for row in rows or []:
        # rows are either a product with a score, or {product: {...}, confidence}
        product_row = row.get("product", row) if isinstance(row, Mapping) else None
        if not isinstance(product_row, Mapping) or "id" not in product_row:
            continue
        matches.append(VisualMatch(Product.from_payload(product_row), _confidence(row)))
    matches.sort(key=lambda m: m.confidence, reverse=True)
    return matches


async def recognize_visual(client: ApiClient, image: bytes) -> RecognitionResult:
    """
    Send a still frame (JPEG bytes) to the AI matcher and return its candidates,
    best first. Nothing is added to the cart here; the operator picks.
    """
    encoded = base64.b64encode(image).decode("ascii")
    payload = await client.post("/scanner/visual-recognize/base64", {"image": encoded})

    data = payload.get("data", payload) if isinstance(payload, Mapping) else {}
    data = data or {}
    result = RecognitionResult(
        matched=_matches(data.get("matchedProducts")),
        ranked=_matches(data.get("allRankedProducts")),
        dominant_colors=list(data.get("dominantColors") or []),
        suggestions=list(data.get("suggestions") or []),
    )
    _logger.info(
        f"visual recognition: {len(result.matched)} matched, {len(result.ranked)} ranked"
    )
    return result
