import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, List, Mapping, Optional, Union

import structlog

from storefront.models.order import OrderRecord, PreorderCreate
from storefront.services.store import Document, DocumentStore

logger = structlog.get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderLedger:
    """Accepted preorders, newest first. Records are immutable once added."""

    def __init__(
        self,
        store: DocumentStore,
        collection: str = "orders",
        clock: Callable[[], datetime] = utc_now,
    ):
        self._store = store
        self._collection = collection
        self._clock = clock
        self._lock = threading.Lock()
        self._last_created_at: Optional[datetime] = None

    def _next_created_at(self) -> datetime:
        # strictly increasing within this process, even if the clock stalls
        with self._lock:
            now = self._clock()
            if self._last_created_at is not None and now <= self._last_created_at:
                now = self._last_created_at + timedelta(microseconds=1)
            self._last_created_at = now
            return now

    def _to_record(self, doc_id: str, document: Document) -> OrderRecord:
        data = dict(document)
        data["id"] = doc_id
        return OrderRecord.model_validate(data)

    def add(self, order: Union[PreorderCreate, Mapping[str, Any]]) -> OrderRecord:
        preorder = order if isinstance(order, PreorderCreate) else PreorderCreate.model_validate(order)
        document = preorder.model_dump(by_alias=True)
        for key in ("id", "createdAt", "created_at"):
            document.pop(key, None)
        document["createdAt"] = self._next_created_at()

        doc_id = self._store.add_generate_id(self._collection, document)
        logger.info("Preorder recorded", order_id=doc_id, items=len(preorder.payload.items))
        return self._to_record(doc_id, document)

    def get(self, order_id: str) -> Optional[OrderRecord]:
        document = self._store.get_by_id(self._collection, order_id)
        if document is None:
            return None
        return self._to_record(order_id, document)

    def list_all(self) -> List[OrderRecord]:
        documents = self._store.get_all(self._collection)
        records = [self._to_record(doc_id, document) for doc_id, document in documents.items()]
        records.sort(key=lambda record: record.created_at, reverse=True)
        return records

    def delete_by_id(self, order_id: str) -> bool:
        if self._store.get_by_id(self._collection, order_id) is None:
            return False
        self._store.delete_by_id(self._collection, order_id)
        logger.info("Preorder deleted", order_id=order_id)
        return True

    def clear(self) -> int:
        removed = self._store.delete_all(self._collection)
        logger.info("Preorders cleared", removed=removed)
        return removed
