"""
Typed exceptions raised by the ledger services.

Every class carries a machine-readable ``code`` so routers and jobs can
react by type instead of parsing messages.

    LedgerError
    +-- ProductNotFoundError
    +-- MovementNotFoundError
    +-- InvalidMovementError
"""
from typing import Optional


class LedgerError(Exception):
    code: str = "LEDGER_ERROR"


class ProductNotFoundError(LedgerError):
    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class MovementNotFoundError(LedgerError):
    """No stock movement matches the (product, invoice) pair being edited."""

    code: str = "MOVEMENT_NOT_FOUND"

    def __init__(self, product_id: int, invoice_id: int, movement_id: Optional[int] = None):
        self.product_id = product_id
        self.invoice_id = invoice_id
        self.movement_id = movement_id
        target = f"product={product_id} invoice={invoice_id}"
        if movement_id is not None:
            target += f" movement={movement_id}"
        super().__init__(f"Stock movement not found: {target}")


class InvalidMovementError(LedgerError):
    code: str = "INVALID_MOVEMENT"

    def __init__(self, message: str):
        self.reason = message
        super().__init__(message)


__all__ = [
    "InvalidMovementError",
    "LedgerError",
    "MovementNotFoundError",
    "ProductNotFoundError",
]
