from typing import List, Optional, Tuple


class StorefrontError(Exception):
    """Base class for errors surfaced by the storefront services."""


class PersistenceError(StorefrontError):
    """The backing document store failed to read or write."""

    def __init__(self, message: str, *, collection: Optional[str] = None):
        super().__init__(message)
        self.collection = collection


# (product_id, size, requested, available)
Shortfall = Tuple[str, str, int, int]


def shortfall_detail(shortfalls: List[Shortfall]) -> List[dict]:
    return [
        {"product_id": pid, "size": size, "requested": requested, "available": available}
        for pid, size, requested, available in shortfalls
    ]


class InsufficientStockError(StorefrontError):
    """Raised at checkout when a reservation could not be satisfied."""

    def __init__(self, shortfalls: Optional[List[Shortfall]] = None):
        self.shortfalls = list(shortfalls or [])
        super().__init__("Insufficient stock")

    def detail(self) -> List[dict]:
        return shortfall_detail(self.shortfalls)
