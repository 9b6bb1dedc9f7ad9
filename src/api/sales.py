# src/api/sales.py
from __future__ import annotations

from api.client import ApiClient
from api.errors import MalformedResponseError
from api.models import SaleRequest, Settlement
from utils.logger import get_logger

_logger = get_logger(__name__)


async def create_sale(client: ApiClient, request: SaleRequest) -> Settlement:
    """
    Submit the whole sale as one request. The backend either accepts it
    (stock moves, settlement returned) or rejects it with ApiError.
    """
    payload = await client.post("/sales", request.to_payload())
    data = payload.get("data", payload) if isinstance(payload, dict) else None
    try:
        settlement = Settlement.from_payload(data or {})
    except MalformedResponseError:
        # a 2xx means the sale is recorded; settle from what was sent
        _logger.warning(f"sale accepted with an unreadable body: {payload!r}")
        settlement = Settlement.from_request(request)
    _logger.info(
        f"sale_created sale_id={settlement.id} items={len(request.items)} "
        f"total={settlement.total_amount} change={settlement.change_given}"
    )
    return settlement
