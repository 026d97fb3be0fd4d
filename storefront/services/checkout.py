from typing import Any, Mapping, Union

import structlog

from storefront.errors import InsufficientStockError
from storefront.models.order import OrderRecord, PreorderCreate
from storefront.services.order_ledger import OrderLedger
from storefront.services.reservation import ReservationCoordinator

logger = structlog.get_logger(__name__)


class Checkout:
    """Reserve stock for a preorder, then record it in the order ledger."""

    def __init__(self, coordinator: ReservationCoordinator, orders: OrderLedger):
        self._coordinator = coordinator
        self._orders = orders

    def place(self, preorder: Union[PreorderCreate, Mapping[str, Any]]) -> OrderRecord:
        if not isinstance(preorder, PreorderCreate):
            preorder = PreorderCreate.model_validate(preorder)

        result = self._coordinator.reserve(preorder.payload)
        if not result.ok:
            raise InsufficientStockError(list(result.shortfalls))

        try:
            return self._orders.add(preorder)
        except Exception:
            # the order never existed, so the units go back on the shelf
            logger.error("Recording preorder failed, releasing reserved stock", exc_info=True)
            try:
                self._coordinator.release(preorder.payload)
            except Exception:
                logger.critical(
                    "Releasing reserved stock failed, units remain reserved",
                    items=[item.model_dump(by_alias=True) for item in preorder.payload.items],
                    exc_info=True,
                )
            raise
