# src/api/products.py
from __future__ import annotations

from typing import Any, List, Optional
from urllib.parse import quote

from api.client import ApiClient
from api.errors import ApiError
from api.models import Product
from utils.logger import get_logger

_logger = get_logger(__name__)

MIN_QUERY_LENGTH = 2


def _unwrap(payload: Any) -> Any:
    # backend wraps results in a 'data' property; tolerate bare bodies too
    if isinstance(payload, dict) and "data" in payload:
        return payload["data"]
    return payload


async def resolve_by_barcode(client: ApiClient, symbol: str) -> Optional[Product]:
    """
    Exact barcode lookup. A miss (404 or `data: null`) returns None;
    only real service failures raise.
    """
    symbol = symbol.strip()
    if not symbol:
        return None
    try:
        payload = await client.get(f"/products/barcode/{quote(symbol, safe='')}")
    except ApiError as e:
        if e.status == 404:
            _logger.info(f"barcode {symbol!r} not found")
            return None
        raise

    data = _unwrap(payload)
    if not data:
        _logger.info(f"barcode {symbol!r} not found")
        return None
    return Product.from_payload(data)


def _matches(product: Product, needle: str) -> bool:
    return needle in product.name.lower() or needle in product.barcode.lower()


async def search(client: ApiClient, query: str, limit: int = 5) -> List[Product]:
    """
    Type-ahead search over name and barcode, case-insensitive, at most `limit` hits.
    Queries shorter than two characters return [] without touching the backend.
    """
    query = query.strip()
    if len(query) < MIN_QUERY_LENGTH or limit < 1:
        return []

    payload = await client.get("/products", params={"search": query, "limit": limit})
    rows = _unwrap(payload) or []

    # the backend may ignore search/limit, so filter and cap here as well
    needle = query.lower()
    results = []
    for row in rows:
        product = Product.from_payload(row)
        if _matches(product, needle):
            results.append(product)
        if len(results) >= limit:
            break
    return results
