from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

import structlog
from google.api_core import exceptions as google_exceptions
from google.cloud import firestore

from storefront.errors import PersistenceError
from storefront.services.store import Document, T, TransactionFn

logger = structlog.get_logger(__name__)

# Firestore rejects batches with more than 500 writes.
BATCH_LIMIT = 500


def _chunked(items: List[Any], size: int) -> Iterator[List[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class FirestoreDocumentStore:
    """Document store backed by Cloud Firestore, shared by many processes."""

    def __init__(self, client, max_attempts: int = 5):
        self._client = client
        self._max_attempts = max_attempts

    @contextmanager
    def _errors(self, collection: str, operation: str):
        try:
            yield
        except google_exceptions.GoogleAPIError as e:
            logger.error("Firestore operation failed", collection=collection, operation=operation, error=str(e))
            raise PersistenceError(f"Firestore {operation} failed on '{collection}': {e}", collection=collection) from e

    def get_all(self, collection: str) -> Dict[str, Document]:
        with self._errors(collection, "get_all"):
            return {doc.id: doc.to_dict() or {} for doc in self._client.collection(collection).stream()}

    def get_by_id(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._errors(collection, "get_by_id"):
            doc = self._client.collection(collection).document(doc_id).get()
            if not doc.exists:
                return None
            return doc.to_dict() or {}

    def set_merge(self, collection: str, doc_id: str, partial: Mapping[str, Any]) -> None:
        with self._errors(collection, "set_merge"):
            self._client.collection(collection).document(doc_id).set(dict(partial), merge=True)

    def set_merge_many(self, collection: str, documents: Mapping[str, Mapping[str, Any]]) -> None:
        if not documents:
            return
        collection_ref = self._client.collection(collection)
        with self._errors(collection, "set_merge_many"):
            for chunk in _chunked(list(documents.items()), BATCH_LIMIT):
                batch = self._client.batch()
                for doc_id, partial in chunk:
                    batch.set(collection_ref.document(doc_id), dict(partial), merge=True)
                batch.commit()

    def add_generate_id(self, collection: str, document: Mapping[str, Any]) -> str:
        with self._errors(collection, "add"):
            _, doc_ref = self._client.collection(collection).add(dict(document))
            return doc_ref.id

    def delete_by_id(self, collection: str, doc_id: str) -> None:
        with self._errors(collection, "delete"):
            self._client.collection(collection).document(doc_id).delete()

    def delete_all(self, collection: str) -> int:
        removed = 0
        with self._errors(collection, "delete_all"):
            docs = list(self._client.collection(collection).stream())
            for chunk in _chunked(docs, BATCH_LIMIT):
                batch = self._client.batch()
                for doc in chunk:
                    batch.delete(doc.reference)
                batch.commit()
                removed += len(chunk)
        return removed

    def run_transaction(self, collection: str, doc_ids: Iterable[str], fn: TransactionFn) -> T:
        collection_ref = self._client.collection(collection)
        refs = {doc_id: collection_ref.document(doc_id) for doc_id in doc_ids}

        @firestore.transactional
        def _apply(transaction) -> Any:
            documents: Dict[str, Optional[Document]] = {}
            for doc_id, ref in refs.items():
                snapshot = ref.get(transaction=transaction)
                documents[doc_id] = (snapshot.to_dict() or {}) if snapshot.exists else None
            result, writes = fn(documents)
            for doc_id, partial in writes.items():
                transaction.set(collection_ref.document(doc_id), dict(partial), merge=True)
            return result

        with self._errors(collection, "transaction"):
            transaction = self._client.transaction(max_attempts=self._max_attempts)
            try:
                return _apply(transaction)
            except ValueError as e:
                # raised once the retry limit for contended commits is reached
                raise PersistenceError(f"Transaction on '{collection}' did not commit: {e}", collection=collection) from e
