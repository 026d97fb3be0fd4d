from typing import Any, Callable, Dict, List, Mapping, Tuple, Union

from storefront.errors import Shortfall
from storefront.models.order import OrderLineItem, OrderPayload
from storefront.models.stock import is_valid_size

Demand = Dict[Tuple[str, str], int]
StockLookup = Callable[[str], Mapping[str, int]]
PayloadLike = Union[OrderPayload, Mapping[str, Any]]


def as_payload(payload: PayloadLike) -> OrderPayload:
    if isinstance(payload, OrderPayload):
        return payload
    return OrderPayload.model_validate(payload or {})


def line_items(payload: PayloadLike) -> List[OrderLineItem]:
    return list(as_payload(payload).items)


def aggregate_demand(payload: PayloadLike) -> Demand:
    """Sum requested quantities per (product, size), dropping unknown sizes."""
    demand: Demand = {}
    for item in line_items(payload):
        if not is_valid_size(item.size):
            continue
        key = (item.product_id, item.size)
        demand[key] = demand.get(key, 0) + item.quantity
    return demand


def shortfalls(payload: PayloadLike, lookup: StockLookup) -> List[Shortfall]:
    """Every (product, size) whose positive demand exceeds current stock."""
    demand = {key: qty for key, qty in aggregate_demand(payload).items() if qty > 0}
    records: Dict[str, Mapping[str, int]] = {}
    missing: List[Shortfall] = []
    for (product_id, size), requested in demand.items():
        if product_id not in records:
            records[product_id] = lookup(product_id)
        available = int(records[product_id].get(size, 0))
        if available < requested:
            missing.append((product_id, size, requested, available))
    return missing


def is_fulfillable(payload: PayloadLike, lookup: StockLookup) -> bool:
    return not shortfalls(payload, lookup)
