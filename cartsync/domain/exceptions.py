"""
Error taxonomy for the cart and checkout core.

CartSyncError (base)
├── ValidationRefusal          refused locally, no remote call issued
│   ├── InvalidQuantityError
│   ├── StockExceededError
│   └── EmptyCartError
├── RemoteReadError            a store read failed (never "not found")
├── RemoteWriteError           a store insert/update/delete failed
│   └── CheckoutError          a checkout step failed, nothing rolled back
│       ├── OrderCreateError
│       ├── OrderItemsError    order row persists with no items
│       └── CartClearError     order persists, cart still full
└── NotFoundError
    ├── ProductNotFoundError
    ├── CartItemNotFoundError
    └── OrderNotFoundError
"""


class CartSyncError(Exception):
    """
    Base exception for the cart core.

    Attributes:
        message: Human-readable error message
        details: Optional dict with additional context (ids, states)
    """

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class ValidationRefusal(CartSyncError):
    """Operation refused before touching the store."""
    pass


class InvalidQuantityError(ValidationRefusal):
    def __init__(self, quantity: int):
        super().__init__(
            f"Quantity must be at least 1, got {quantity}",
            details={"quantity": quantity},
        )
        self.quantity = quantity


class StockExceededError(ValidationRefusal):
    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            f"Requested {requested} of product {product_id}, only {available} in stock",
            details={"product_id": product_id, "requested": requested, "available": available},
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class EmptyCartError(ValidationRefusal):
    def __init__(self, owner_id: str):
        super().__init__(
            f"Cart is empty for owner {owner_id}",
            details={"owner_id": owner_id},
        )
        self.owner_id = owner_id


class RemoteReadError(CartSyncError):
    """A lookup against the store failed."""
    pass


class RemoteWriteError(CartSyncError):
    """An insert, update or delete against the store failed."""
    pass


class CheckoutError(RemoteWriteError):
    """
    A checkout step failed.

    Steps already completed are not compensated. `reached` is the last state
    the checkout got to before the failing call, `order_id` is set once the
    order row exists.
    """

    step = "checkout"

    def __init__(self, message: str, reached: str, order_id: str | None = None):
        super().__init__(
            message,
            details={"step": self.step, "reached": reached, "order_id": order_id},
        )
        self.reached = reached
        self.order_id = order_id


class OrderCreateError(CheckoutError):
    step = "create_order"


class OrderItemsError(CheckoutError):
    step = "write_order_items"


class CartClearError(CheckoutError):
    step = "clear_cart"


class NotFoundError(CartSyncError):
    pass


class ProductNotFoundError(NotFoundError):
    def __init__(self, product_id: str):
        super().__init__(f"Product {product_id} not found", details={"product_id": product_id})
        self.product_id = product_id


class CartItemNotFoundError(NotFoundError):
    def __init__(self, item_id: str):
        super().__init__(f"Cart item {item_id} not found", details={"item_id": item_id})
        self.item_id = item_id


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} not found", details={"order_id": order_id})
        self.order_id = order_id
