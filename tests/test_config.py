import pytest
from pydantic import ValidationError

from storefront.config import ReservationStrategy, Settings, StoreBackend
from storefront.services.container import build_services
from storefront.services.reservation import LockingReservationCoordinator, TransactionalReservationCoordinator
from storefront.services.store import MemoryDocumentStore

ENV_VARS = [
    "STORE_BACKEND",
    "STORE_FILE_PATH",
    "FIREBASE_SERVICE_ACCOUNT_KEY_PATH",
    "FIREBASE_PROJECT_ID",
    "STOCK_COLLECTION",
    "ORDERS_COLLECTION",
    "RESERVATION_STRATEGY",
    "TRANSACTION_MAX_ATTEMPTS",
    "LOG_LEVEL",
    "LOG_JSON",
]


@pytest.fixture()
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings.from_env()
    assert settings.store_backend == StoreBackend.MEMORY
    assert settings.store_file_path is None
    assert settings.stock_collection == "stock"
    assert settings.orders_collection == "orders"
    assert settings.reservation_strategy == ReservationStrategy.LOCK
    assert settings.transaction_max_attempts == 5
    assert settings.log_level == "INFO"
    assert settings.log_json is False


def test_values_from_environment(clean_env):
    clean_env.setenv("STORE_BACKEND", "firestore")
    clean_env.setenv("FIREBASE_PROJECT_ID", "shop-prod")
    clean_env.setenv("STOCK_COLLECTION", "inventory")
    clean_env.setenv("RESERVATION_STRATEGY", "transaction")
    clean_env.setenv("TRANSACTION_MAX_ATTEMPTS", "9")
    clean_env.setenv("LOG_LEVEL", "debug")
    clean_env.setenv("LOG_JSON", "true")

    settings = Settings.from_env()
    assert settings.store_backend == StoreBackend.FIRESTORE
    assert settings.firebase_project_id == "shop-prod"
    assert settings.stock_collection == "inventory"
    assert settings.reservation_strategy == ReservationStrategy.TRANSACTION
    assert settings.transaction_max_attempts == 9
    assert settings.log_level == "DEBUG"
    assert settings.log_json is True


def test_unknown_strategy_is_rejected(clean_env):
    clean_env.setenv("RESERVATION_STRATEGY", "optimistic")
    with pytest.raises(ValidationError):
        Settings.from_env()


def test_build_services_picks_coordinator():
    locking = build_services(Settings(), MemoryDocumentStore())
    assert isinstance(locking.reservations, LockingReservationCoordinator)

    transactional = build_services(
        Settings(reservation_strategy=ReservationStrategy.TRANSACTION),
        MemoryDocumentStore(),
    )
    assert isinstance(transactional.reservations, TransactionalReservationCoordinator)


def test_build_services_uses_snapshot_file(tmp_path):
    path = str(tmp_path / "store.json")
    services = build_services(Settings(store_file_path=path))
    services.stock.set("tee", {"S": 1})
    assert (tmp_path / "store.json").exists()
