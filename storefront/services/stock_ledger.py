import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Union

import structlog

from storefront.models.stock import (
    Size,
    StockRecord,
    is_valid_size,
    normalize_delta,
    normalize_record,
)
from storefront.services.store import Document, DocumentStore

logger = structlog.get_logger(__name__)


class StockLedger:
    """
    Per-product, per-size stock counts kept in a document store.

    Reads go to the store every time. Each mutation is a read-modify-write
    inside one store transaction and is visible only once persisted; inside
    ``deferred_commit`` mutations are staged and written together when the
    block exits.
    """

    def __init__(self, store: DocumentStore, collection: str = "stock"):
        self._store = store
        self._collection = collection
        self._lock = threading.RLock()
        self._staged: Optional[Dict[str, StockRecord]] = None

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def _read(self, product_id: str) -> StockRecord:
        if self._staged is not None and product_id in self._staged:
            return dict(self._staged[product_id])
        return normalize_record(self._store.get_by_id(self._collection, product_id))

    def _update(self, product_id: str, change: Callable[[StockRecord], StockRecord]) -> StockRecord:
        """
        Apply ``change`` to the current record. Outside ``deferred_commit`` the
        read and the write share one store transaction, so a reservation
        committed by another coordinator is never overwritten.
        """
        if self._staged is not None:
            updated = change(self._read(product_id))
            self._staged[product_id] = updated
            return dict(updated)

        def step(documents: Dict[str, Optional[Document]]):
            updated = change(normalize_record(documents.get(product_id)))
            return updated, {product_id: updated}

        return dict(self._store.run_transaction(self._collection, [product_id], step))

    def get(self, product_id: str) -> StockRecord:
        with self._lock:
            return self._read(product_id)

    def get_all(self) -> Dict[str, StockRecord]:
        with self._lock:
            records = {
                product_id: normalize_record(document)
                for product_id, document in self._store.get_all(self._collection).items()
            }
            if self._staged:
                records.update({product_id: dict(record) for product_id, record in self._staged.items()})
            return records

    def set(self, product_id: str, proposed: Mapping[str, Any]) -> StockRecord:
        with self._lock:
            updated = self._update(product_id, lambda current: normalize_record(proposed, base=current))
        logger.info("Stock set", product_id=product_id, sizes=updated)
        return updated

    def adjust(self, product_id: str, size: Union[Size, str], delta: Any) -> bool:
        if not is_valid_size(size):
            logger.warning("Ignoring stock adjustment for unknown size", product_id=product_id, size=size)
            return False
        key = size.value if isinstance(size, Size) else size
        step = normalize_delta(delta)

        def change(current: StockRecord) -> StockRecord:
            record = dict(current)
            record[key] = max(0, record[key] + step)
            return record

        with self._lock:
            record = self._update(product_id, change)
        logger.debug("Stock adjusted", product_id=product_id, size=key, delta=step, quantity=record[key])
        return True

    def delete(self, product_id: str) -> bool:
        with self._lock:
            existed = self._store.get_by_id(self._collection, product_id) is not None
            if existed:
                self._store.delete_by_id(self._collection, product_id)
            if self._staged is not None:
                self._staged.pop(product_id, None)
        if existed:
            logger.info("Stock record deleted", product_id=product_id)
        return existed

    @contextmanager
    def deferred_commit(self) -> Iterator["StockLedger"]:
        """
        Stage every mutation made in the block and persist them in one
        ``set_merge_many`` call on exit. An exception inside the block, or
        from the persist call, discards the staged records.
        """
        with self._lock:
            if self._staged is not None:
                yield self
                return
            self._staged = {}
            try:
                yield self
                staged, self._staged = self._staged, None
                if staged:
                    self._store.set_merge_many(self._collection, staged)
            except Exception:
                logger.error("Discarding staged stock changes", exc_info=True)
                raise
            finally:
                self._staged = None
