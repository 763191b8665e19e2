from __future__ import annotations

from contextvars import ContextVar, Token

# Set per request by CorrelationIdMiddleware; read by logging, spans and error bodies.
_correlation_id: ContextVar[str | None] = ContextVar("subtrack_correlation_id", default=None)


def set_correlation_id(value: str | None) -> Token[str | None]:
    return _correlation_id.set(value)


def reset_correlation_id(token: Token[str | None]) -> None:
    _correlation_id.reset(token)


def get_correlation_id() -> str | None:
    return _correlation_id.get()
