from __future__ import annotations

import uuid


class SubscriptionError(Exception):
    """Base error raised by the subscription store."""

    def __init__(self, message: str, *, operation: str, subscription_id: uuid.UUID | None = None) -> None:
        self.operation = operation
        self.subscription_id = subscription_id
        super().__init__(message)


class SubscriptionNotFoundError(SubscriptionError):
    def __init__(self, subscription_id: uuid.UUID, *, operation: str) -> None:
        super().__init__(
            f"subscription not found: {subscription_id}",
            operation=operation,
            subscription_id=subscription_id,
        )


class InvalidDateFormatError(SubscriptionError):
    """A date string did not match ``MM-YYYY``. Always a caller input problem."""

    def __init__(
        self,
        field: str,
        value: str | None,
        *,
        operation: str,
        subscription_id: uuid.UUID | None = None,
    ) -> None:
        self.field = field
        self.value = value
        super().__init__(
            f"invalid {field} format, expected MM-YYYY: {value!r}",
            operation=operation,
            subscription_id=subscription_id,
        )


class StorageError(SubscriptionError):
    """Any backend failure. The original SQLAlchemy error is chained as ``__cause__``."""

    def __init__(self, operation: str, *, subscription_id: uuid.UUID | None = None) -> None:
        target = f" for {subscription_id}" if subscription_id is not None else ""
        super().__init__(
            f"storage failure during {operation}{target}",
            operation=operation,
            subscription_id=subscription_id,
        )
