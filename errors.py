from typing import Optional


class ValidationError(ValueError):
    """Malformed input rejected before it reaches the store or the analytics."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NotFound(ValueError):
    pass


class AuthError(ValueError):
    pass


class ConflictError(ValueError):
    pass


class StoreUnavailable(RuntimeError):
    pass


class InvalidBudget(ValueError):
    def __init__(self, category: object, amount_cents: Optional[int]) -> None:
        label = getattr(category, "value", category)
        super().__init__(f"Budget for {label} must be positive, got {amount_cents}")
        self.category = category
        self.amount_cents = amount_cents
