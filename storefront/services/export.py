import csv
import io
from typing import Iterable

from storefront.models.order import OrderRecord

CSV_HEADERS = ["ID", "Date", "Name", "Phone", "Email", "Items", "Total", "Notes"]


def _items_text(order: OrderRecord) -> str:
    return "; ".join(
        f"{item.name or item.product_id} (Size: {item.size}) x{item.quantity}"
        for item in order.payload.items
    )


def orders_to_csv(orders: Iterable[OrderRecord]) -> str:
    """Render preorders as CSV, one row per order. No orders gives an empty string."""
    orders = list(orders)
    if not orders:
        return ""

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for order in orders:
        writer.writerow([
            order.id,
            order.created_at.date().isoformat(),
            order.name,
            order.phone,
            order.email or "",
            _items_text(order),
            order.payload.total,
            order.notes or "",
        ])
    return buffer.getvalue().rstrip("\n")
