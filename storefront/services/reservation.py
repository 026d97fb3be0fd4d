"""
All-or-nothing stock reservation.

Both coordinators honour the same contract: a reservation either applies
every decrement or none, and never takes a count below what was checked.
``LockingReservationCoordinator`` serializes callers inside one process;
``TransactionalReservationCoordinator`` relies on the store's transaction
support so separate processes sharing a backend cannot oversell.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Tuple

import structlog

from storefront.errors import Shortfall
from storefront.models.stock import StockRecord, normalize_record
from storefront.services.fulfillment import PayloadLike, aggregate_demand, as_payload, shortfalls
from storefront.services.stock_ledger import StockLedger
from storefront.services.store import Document, DocumentStore

logger = structlog.get_logger(__name__)

INSUFFICIENT_STOCK = "Insufficient stock"


@dataclass(frozen=True)
class ReservationResult:
    ok: bool
    error: Optional[str] = None
    shortfalls: Tuple[Shortfall, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        result = {"ok": self.ok}
        if self.error:
            result["error"] = self.error
        return result


class ReservationCoordinator(Protocol):
    def check(self, payload: PayloadLike) -> List[Shortfall]: ...

    def reserve(self, payload: PayloadLike) -> ReservationResult: ...

    def release(self, payload: PayloadLike) -> None: ...


def _rejected(missing: List[Shortfall]) -> ReservationResult:
    return ReservationResult(ok=False, error=INSUFFICIENT_STOCK, shortfalls=tuple(missing))


class LockingReservationCoordinator:
    """Check and commit under the ledger's lock; for a single writer process."""

    def __init__(self, ledger: StockLedger):
        self._ledger = ledger

    def check(self, payload: PayloadLike) -> List[Shortfall]:
        with self._ledger.lock:
            return shortfalls(payload, self._ledger.get)

    def reserve(self, payload: PayloadLike) -> ReservationResult:
        payload = as_payload(payload)
        with self._ledger.lock:
            missing = shortfalls(payload, self._ledger.get)
            if missing:
                logger.info("Reservation rejected", shortfalls=missing)
                return _rejected(missing)
            with self._ledger.deferred_commit():
                for item in payload.items:
                    # unknown sizes are refused by adjust
                    self._ledger.adjust(item.product_id, item.size, -item.quantity)
        logger.info("Reservation committed", items=len(payload.items))
        return ReservationResult(ok=True)

    def release(self, payload: PayloadLike) -> None:
        payload = as_payload(payload)
        with self._ledger.deferred_commit():
            for item in payload.items:
                self._ledger.adjust(item.product_id, item.size, item.quantity)
        logger.info("Reservation released", items=len(payload.items))


class TransactionalReservationCoordinator:
    """Check and commit inside one store transaction; safe across processes."""

    def __init__(self, store: DocumentStore, collection: str = "stock"):
        self._store = store
        self._collection = collection

    def _lookup(self, product_id: str) -> StockRecord:
        return normalize_record(self._store.get_by_id(self._collection, product_id))

    def check(self, payload: PayloadLike) -> List[Shortfall]:
        return shortfalls(payload, self._lookup)

    def _apply(self, payload: PayloadLike, sign: int) -> ReservationResult:
        payload = as_payload(payload)
        demand = {key: qty for key, qty in aggregate_demand(payload).items() if qty > 0}
        product_ids = sorted({product_id for product_id, _ in demand})
        if not product_ids:
            return ReservationResult(ok=True)

        def step(documents: Dict[str, Optional[Document]]):
            records = {product_id: normalize_record(documents.get(product_id)) for product_id in product_ids}
            if sign < 0:
                missing = shortfalls(payload, lambda product_id: records[product_id])
                if missing:
                    return _rejected(missing), {}
            for (product_id, size), qty in demand.items():
                records[product_id][size] = max(0, records[product_id][size] + sign * qty)
            return ReservationResult(ok=True), records

        return self._store.run_transaction(self._collection, product_ids, step)

    def reserve(self, payload: PayloadLike) -> ReservationResult:
        result = self._apply(payload, -1)
        # logged here, not in step: the store may run step more than once
        if result.ok:
            logger.info("Reservation committed", strategy="transaction")
        else:
            logger.info("Reservation rejected", strategy="transaction", shortfalls=list(result.shortfalls))
        return result

    def release(self, payload: PayloadLike) -> None:
        self._apply(payload, 1)
        logger.info("Reservation released", strategy="transaction")
