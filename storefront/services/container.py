from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import Request

from storefront.config import ReservationStrategy, Settings, StoreBackend
from storefront.services.checkout import Checkout
from storefront.services.order_ledger import OrderLedger
from storefront.services.reservation import (
    LockingReservationCoordinator,
    ReservationCoordinator,
    TransactionalReservationCoordinator,
)
from storefront.services.stock_ledger import StockLedger
from storefront.services.store import DocumentStore, MemoryDocumentStore

logger = structlog.get_logger(__name__)


@dataclass
class Services:
    store: DocumentStore
    stock: StockLedger
    reservations: ReservationCoordinator
    orders: OrderLedger
    checkout: Checkout


def build_store(settings: Settings) -> DocumentStore:
    if settings.store_backend == StoreBackend.FIRESTORE:
        # imported here so the memory backend runs without Google credentials
        from storefront.services.firebase_service import get_firestore_client
        from storefront.services.firestore_store import FirestoreDocumentStore

        client = get_firestore_client(
            settings.firebase_service_account_key_path,
            settings.firebase_project_id,
        )
        return FirestoreDocumentStore(client, max_attempts=settings.transaction_max_attempts)
    return MemoryDocumentStore(settings.store_file_path)


def build_services(settings: Settings, store: Optional[DocumentStore] = None) -> Services:
    store = store if store is not None else build_store(settings)
    stock = StockLedger(store, settings.stock_collection)
    if settings.reservation_strategy == ReservationStrategy.TRANSACTION:
        reservations = TransactionalReservationCoordinator(store, settings.stock_collection)
    else:
        reservations = LockingReservationCoordinator(stock)
    orders = OrderLedger(store, settings.orders_collection)
    logger.info(
        "Storefront services ready",
        backend=settings.store_backend.value,
        strategy=settings.reservation_strategy.value,
    )
    return Services(
        store=store,
        stock=stock,
        reservations=reservations,
        orders=orders,
        checkout=Checkout(reservations, orders),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
