"""Shared fixtures for the storefront test suite."""

import time

import pytest
from fastapi.testclient import TestClient

from storefront.config import ReservationStrategy, Settings
from storefront.errors import PersistenceError
from storefront.main import create_app
from storefront.services.order_ledger import OrderLedger
from storefront.services.reservation import LockingReservationCoordinator, TransactionalReservationCoordinator
from storefront.services.stock_ledger import StockLedger
from storefront.services.store import MemoryDocumentStore


class FlakyStore(MemoryDocumentStore):
    """Memory store whose writes can be switched to fail."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_writes = False
        self.fail_adds = False
        self.write_calls = 0

    def set_merge_many(self, collection, documents):
        self.write_calls += 1
        if self.fail_writes:
            raise PersistenceError("simulated outage", collection=collection)
        super().set_merge_many(collection, documents)

    def add_generate_id(self, collection, document):
        if self.fail_adds:
            raise PersistenceError("simulated outage", collection=collection)
        return super().add_generate_id(collection, document)


class SlowStore(MemoryDocumentStore):
    """Memory store with a read delay, widening any check-then-act window."""

    def get_by_id(self, collection, doc_id):
        document = super().get_by_id(collection, doc_id)
        time.sleep(0.02)
        return document


@pytest.fixture()
def store():
    return FlakyStore()


@pytest.fixture()
def ledger(store):
    return StockLedger(store, "stock")


@pytest.fixture()
def orders(store):
    return OrderLedger(store, "orders")


@pytest.fixture(params=[ReservationStrategy.LOCK, ReservationStrategy.TRANSACTION], ids=["lock", "transaction"])
def coordinator(request, store, ledger):
    if request.param == ReservationStrategy.LOCK:
        return LockingReservationCoordinator(ledger)
    return TransactionalReservationCoordinator(store, "stock")


@pytest.fixture()
def settings():
    return Settings(log_level="WARNING")


@pytest.fixture()
def client(settings, store):
    app = create_app(settings, store=store)
    return TestClient(app)


def shirt_payload(*items, total=0):
    """Helper: build an order payload from (product_id, size, quantity) tuples."""
    return {
        "items": [{"productId": pid, "size": size, "quantity": qty} for pid, size, qty in items],
        "total": total,
    }
