import os
from enum import Enum
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load environment variables from .env file
load_dotenv()


class StoreBackend(str, Enum):
    MEMORY = "memory"
    FIRESTORE = "firestore"


class ReservationStrategy(str, Enum):
    LOCK = "lock"
    TRANSACTION = "transaction"


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    store_backend: StoreBackend = Field(StoreBackend.MEMORY, description="Document store realization.")
    store_file_path: Optional[str] = Field(None, description="JSON snapshot file for the memory store.")
    firebase_service_account_key_path: Optional[str] = None
    firebase_project_id: Optional[str] = None
    stock_collection: str = "stock"
    orders_collection: str = "orders"
    reservation_strategy: ReservationStrategy = ReservationStrategy.LOCK
    transaction_max_attempts: int = Field(5, ge=1)
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        values = {
            "store_backend": os.getenv("STORE_BACKEND", StoreBackend.MEMORY.value),
            "store_file_path": os.getenv("STORE_FILE_PATH") or None,
            "firebase_service_account_key_path": os.getenv("FIREBASE_SERVICE_ACCOUNT_KEY_PATH") or None,
            "firebase_project_id": os.getenv("FIREBASE_PROJECT_ID") or None,
            "stock_collection": os.getenv("STOCK_COLLECTION", "stock"),
            "orders_collection": os.getenv("ORDERS_COLLECTION", "orders"),
            "reservation_strategy": os.getenv("RESERVATION_STRATEGY", ReservationStrategy.LOCK.value),
            "transaction_max_attempts": int(os.getenv("TRANSACTION_MAX_ATTEMPTS", "5")),
            "log_level": os.getenv("LOG_LEVEL", "INFO").upper(),
            "log_json": _env_flag("LOG_JSON"),
        }
        return cls(**values)
