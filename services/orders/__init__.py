"""Order submission and the server-authoritative order log."""

from .coordinator import OrderCoordinator
from .models import Order, OrderIntent, OrderSide

__all__ = ["OrderCoordinator", "Order", "OrderIntent", "OrderSide"]
