"""Domain errors. Each carries the HTTP status and machine code it renders as."""

from typing import Any, Dict, Optional

class ShopError(Exception):
    status_code = 400
    code = "bad_request"

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

class ValidationFailed(ShopError):
    code = "validation_error"

class InsufficientStock(ShopError):
    code = "insufficient_stock"

    def __init__(self, item_id: str, requested: int, available: Optional[int] = None):
        super().__init__(f"InsufficientStock: {item_id}", {"itemId": item_id, "requested": requested})
        self.item_id = item_id
        self.requested = requested
        self.available = available

class IllegalTransition(ShopError):
    code = "illegal_transition"

    def __init__(self, entity: str, current: str, requested: str, message: Optional[str] = None):
        super().__init__(
            message or f"Cannot {requested} {entity} in state {current}",
            {"currentState": current, "requested": requested},
        )
        self.current = current
        self.requested = requested

class InvalidSignature(ShopError):
    code = "invalid_signature"

class AuthenticationRequired(ShopError):
    status_code = 401
    code = "unauthorized"

class Forbidden(ShopError):
    status_code = 403
    code = "forbidden"

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)

class NotFound(ShopError):
    status_code = 404
    code = "not_found"
