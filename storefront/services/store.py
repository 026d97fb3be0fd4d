"""
Collection-scoped document store used by the stock and order ledgers.

``DocumentStore`` is the contract; ``MemoryDocumentStore`` is the local
single-process realization. The Firestore realization lives in
``storefront.services.firestore_store``.
"""
import copy
import json
import os
import tempfile
import threading
import uuid
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Protocol, Tuple, TypeVar

import structlog

from storefront.errors import PersistenceError

logger = structlog.get_logger(__name__)

Document = Dict[str, Any]
T = TypeVar("T")

# fn(documents by id, missing ids map to None) -> (result, writes to merge)
TransactionFn = Callable[[Dict[str, Optional[Document]]], Tuple[T, Mapping[str, Document]]]


class DocumentStore(Protocol):
    def get_all(self, collection: str) -> Dict[str, Document]: ...

    def get_by_id(self, collection: str, doc_id: str) -> Optional[Document]: ...

    def set_merge(self, collection: str, doc_id: str, partial: Mapping[str, Any]) -> None: ...

    def set_merge_many(self, collection: str, documents: Mapping[str, Mapping[str, Any]]) -> None:
        """Merge several documents in one durable batch."""
        ...

    def add_generate_id(self, collection: str, document: Mapping[str, Any]) -> str: ...

    def delete_by_id(self, collection: str, doc_id: str) -> None: ...

    def delete_all(self, collection: str) -> int:
        """Delete every document in the collection; returns how many were removed."""
        ...

    def run_transaction(self, collection: str, doc_ids: Iterable[str], fn: TransactionFn) -> T:
        """
        Read ``doc_ids`` consistently, hand them to ``fn`` and atomically
        merge the writes it returns. Implementations retry ``fn`` when the
        backend reports contention, so ``fn`` must be free of side effects.
        """
        ...


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class MemoryDocumentStore:
    """
    Dict-backed store guarded by a single lock. When ``file_path`` is given
    every mutation rewrites a JSON snapshot of all collections before it
    becomes visible, and the snapshot is loaded on construction.
    """

    def __init__(self, file_path: Optional[str] = None):
        self._file_path = file_path
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Document]] = {}
        if file_path and os.path.exists(file_path):
            self._collections = self._load_snapshot(file_path)

    @staticmethod
    def _load_snapshot(file_path: str) -> Dict[str, Dict[str, Document]]:
        try:
            with open(file_path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Could not read store snapshot {file_path}: {e}") from e
        if not isinstance(data, dict):
            raise PersistenceError(f"Store snapshot {file_path} is not a JSON object.")
        logger.info("Loaded store snapshot", path=file_path, collections=sorted(data))
        return data

    def _write_snapshot(self, collections: Dict[str, Dict[str, Document]]) -> None:
        if not self._file_path:
            return
        directory = os.path.dirname(os.path.abspath(self._file_path))
        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".store-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(collections, fh, default=_json_default, indent=2, sort_keys=True)
            os.replace(tmp_path, self._file_path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            logger.error("Store snapshot write failed", path=self._file_path, error=str(e))
            raise PersistenceError(f"Could not write store snapshot {self._file_path}: {e}") from e

    def _commit(self, collection: str, updated: Dict[str, Document]) -> None:
        """Persist the new collection contents first, then swap them in."""
        candidate = dict(self._collections)
        candidate[collection] = updated
        self._write_snapshot(candidate)
        self._collections = candidate

    def get_all(self, collection: str) -> Dict[str, Document]:
        with self._lock:
            return copy.deepcopy(self._collections.get(collection, {}))

    def get_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            document = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(document) if document is not None else None

    def set_merge(self, collection: str, doc_id: str, partial: Mapping[str, Any]) -> None:
        self.set_merge_many(collection, {doc_id: partial})

    def set_merge_many(self, collection: str, documents: Mapping[str, Mapping[str, Any]]) -> None:
        if not documents:
            return
        with self._lock:
            updated = dict(self._collections.get(collection, {}))
            for doc_id, partial in documents.items():
                merged = dict(updated.get(doc_id, {}))
                merged.update(copy.deepcopy(dict(partial)))
                updated[doc_id] = merged
            self._commit(collection, updated)

    def add_generate_id(self, collection: str, document: Mapping[str, Any]) -> str:
        with self._lock:
            doc_id = uuid.uuid4().hex
            updated = dict(self._collections.get(collection, {}))
            updated[doc_id] = copy.deepcopy(dict(document))
            self._commit(collection, updated)
            return doc_id

    def delete_by_id(self, collection: str, doc_id: str) -> None:
        with self._lock:
            current = self._collections.get(collection, {})
            if doc_id not in current:
                return
            updated = dict(current)
            del updated[doc_id]
            self._commit(collection, updated)

    def delete_all(self, collection: str) -> int:
        with self._lock:
            removed = len(self._collections.get(collection, {}))
            if removed:
                self._commit(collection, {})
            return removed

    def run_transaction(self, collection: str, doc_ids: Iterable[str], fn: TransactionFn) -> T:
        with self._lock:
            documents = {doc_id: self.get_by_id(collection, doc_id) for doc_id in doc_ids}
            result, writes = fn(documents)
            if writes:
                self.set_merge_many(collection, writes)
            return result
