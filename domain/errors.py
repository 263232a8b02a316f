class KitchenError(Exception):
    """Base for every error that ends an operation. The message is user facing."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthenticated(KitchenError):
    def __init__(self, message: str = "User not authenticated") -> None:
        super().__init__(message)


class InvalidInput(KitchenError):
    pass


class QuotaExceeded(KitchenError):
    @classmethod
    def for_tier(cls, *, is_pro: bool) -> "QuotaExceeded":
        hint = "Please contact support." if is_pro else "Upgrade to Pro!"
        return cls(f"Monthly AI recipe limit reached. {hint}")


class RequestDenied(KitchenError):
    def __init__(self, message: str = "Request denied") -> None:
        super().__init__(message)


class UpstreamUnavailable(KitchenError):
    pass


class GenerationParseError(KitchenError):
    pass


class PersistenceError(KitchenError):
    pass


class StoreError(Exception):
    """Raised by store adapters. Services translate it before it reaches callers."""
