from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date

from opentelemetry import trace
from opentelemetry.trace import Span
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from subtrack.context import get_correlation_id
from subtrack.metrics import observe_store_operation
from subtrack.subscriptions.dates import (
    format_month_year,
    format_optional_month_year,
    parse_month_year,
    parse_optional_month_year,
)
from subtrack.subscriptions.errors import InvalidDateFormatError, StorageError, SubscriptionNotFoundError
from subtrack.subscriptions.models import Subscription
from subtrack.subscriptions.repository import CostFilter, SubscriptionRepository
from subtrack.subscriptions.schemas import SubscriptionPayload, SubscriptionRead


DEFAULT_PERIOD_END = "12-2100"

tracer = trace.get_tracer("subtrack.subscriptions")


@dataclass(frozen=True, slots=True)
class SubscriptionStore:
    """CRUD and cost aggregation over the ``subscriptions`` table.

    The store keeps no per-call state. Every operation works on the session it
    is given and commits a single statement, so concurrent callers only share
    the engine's connection pool. Failures are raised as
    :class:`SubscriptionNotFoundError`, :class:`InvalidDateFormatError` or
    :class:`StorageError`; nothing is retried.
    """

    logger: logging.Logger = logging.getLogger("subtrack.subscriptions")
    repository: SubscriptionRepository = SubscriptionRepository()
    default_period_end: str = DEFAULT_PERIOD_END

    def create(self, session: Session, payload: SubscriptionPayload) -> uuid.UUID:
        operation = "create"
        subscription_id = uuid.uuid4()
        with self._span(operation, subscription_id):
            start_date, end_date = self._parse_dates(payload, operation, None)

            self.logger.debug(
                "subscription.create.started",
                extra={
                    "operation": operation,
                    "subscription_id": str(subscription_id),
                    "user_id": str(payload.user_id),
                    "service_name": payload.service_name,
                },
            )
            session.add(
                Subscription(
                    id=subscription_id,
                    user_id=payload.user_id,
                    service_name=payload.service_name,
                    price=payload.price,
                    start_date=start_date,
                    end_date=end_date,
                )
            )
            try:
                session.commit()
            except SQLAlchemyError as exc:
                raise self._storage_failure(session, exc, operation, subscription_id) from exc

            self._succeeded(operation, "subscription.created", subscription_id=str(subscription_id))
            return subscription_id

    def get(self, session: Session, subscription_id: uuid.UUID) -> SubscriptionRead:
        operation = "get"
        with self._span(operation, subscription_id):
            self.logger.debug(
                "subscription.get.started",
                extra={"operation": operation, "subscription_id": str(subscription_id)},
            )
            try:
                row = session.scalar(self.repository.by_id(subscription_id))
            except SQLAlchemyError as exc:
                raise self._storage_failure(session, exc, operation, subscription_id) from exc

            if row is None:
                raise self._not_found(operation, subscription_id)

            self._succeeded(operation, "subscription.retrieved", subscription_id=str(subscription_id))
            return self._to_read(row)

    def update(self, session: Session, subscription_id: uuid.UUID, payload: SubscriptionPayload) -> None:
        """Overwrite service name, price and both dates. ``user_id`` on the row is kept."""
        operation = "update"
        with self._span(operation, subscription_id):
            start_date, end_date = self._parse_dates(payload, operation, subscription_id)

            self.logger.debug(
                "subscription.update.started",
                extra={
                    "operation": operation,
                    "subscription_id": str(subscription_id),
                    "service_name": payload.service_name,
                },
            )
            statement = self.repository.replace(
                subscription_id,
                {
                    "service_name": payload.service_name,
                    "price": payload.price,
                    "start_date": start_date,
                    "end_date": end_date,
                },
            )
            try:
                result = session.execute(statement)
                session.commit()
            except SQLAlchemyError as exc:
                raise self._storage_failure(session, exc, operation, subscription_id) from exc

            if result.rowcount == 0:
                raise self._not_found(operation, subscription_id)

            self._succeeded(
                operation,
                "subscription.updated",
                subscription_id=str(subscription_id),
                rows_affected=result.rowcount,
            )

    def delete(self, session: Session, subscription_id: uuid.UUID) -> None:
        operation = "delete"
        with self._span(operation, subscription_id):
            self.logger.debug(
                "subscription.delete.started",
                extra={"operation": operation, "subscription_id": str(subscription_id)},
            )
            try:
                result = session.execute(self.repository.remove(subscription_id))
                session.commit()
            except SQLAlchemyError as exc:
                raise self._storage_failure(session, exc, operation, subscription_id) from exc

            if result.rowcount == 0:
                raise self._not_found(operation, subscription_id)

            self._succeeded(
                operation,
                "subscription.deleted",
                subscription_id=str(subscription_id),
                rows_affected=result.rowcount,
            )

    def list_all(self, session: Session) -> list[SubscriptionRead]:
        operation = "list"
        with self._span(operation, None):
            self.logger.debug("subscription.list.started", extra={"operation": operation})
            try:
                rows = session.scalars(self.repository.all_by_start_desc()).all()
            except SQLAlchemyError as exc:
                raise self._storage_failure(session, exc, operation, None) from exc

            subscriptions = [self._to_read(row) for row in rows]
            self._succeeded(operation, "subscription.listed", count=len(subscriptions))
            return subscriptions

    def total_cost(
        self,
        session: Session,
        *,
        period_start: str,
        period_end: str | None = None,
        user_id: uuid.UUID | None = None,
        service_name: str | None = None,
    ) -> int:
        """Sum ``price`` over subscriptions active at some point in the period.

        ``period_end`` falls back to ``default_period_end`` when not supplied.
        Open-ended subscriptions count as active through any future period.
        """
        operation = "total_cost"
        period_end = period_end or self.default_period_end
        with self._span(operation, None):
            try:
                criteria = CostFilter(
                    period_start=parse_month_year(period_start, field="period_start", operation=operation),
                    period_end=parse_month_year(period_end, field="period_end", operation=operation),
                    user_id=user_id,
                    service_name=service_name,
                )
            except InvalidDateFormatError as exc:
                self._rejected(exc)
                raise

            log_fields = {
                "operation": operation,
                "user_id": str(user_id) if user_id is not None else None,
                "service_name": service_name,
                "period_start": period_start,
                "period_end": period_end,
            }
            self.logger.debug("subscription.total_cost.started", extra=log_fields)
            try:
                total = session.scalar(self.repository.total_price(criteria))
            except SQLAlchemyError as exc:
                raise self._storage_failure(session, exc, operation, None) from exc

            total = int(total or 0)
            self._succeeded(operation, "subscription.total_cost.calculated", total=total)
            return total

    @contextmanager
    def _span(self, operation: str, subscription_id: uuid.UUID | None) -> Iterator[Span]:
        with tracer.start_as_current_span(f"subscription.{operation}") as span:
            if subscription_id is not None:
                span.set_attribute("subscription_id", str(subscription_id))
            correlation_id = get_correlation_id()
            if correlation_id:
                span.set_attribute("correlation_id", correlation_id)
            yield span

    def _parse_dates(
        self,
        payload: SubscriptionPayload,
        operation: str,
        subscription_id: uuid.UUID | None,
    ) -> tuple[date, date | None]:
        try:
            start_date = parse_month_year(payload.start_date, field="start_date", operation=operation)
            end_date = parse_optional_month_year(payload.end_date, field="end_date", operation=operation)
        except InvalidDateFormatError as exc:
            exc.subscription_id = subscription_id
            self._rejected(exc)
            raise
        return start_date, end_date

    def _rejected(self, exc: InvalidDateFormatError) -> None:
        observe_store_operation(exc.operation, "invalid_date")
        self.logger.error(
            "subscription.invalid_date",
            extra={
                "operation": exc.operation,
                "subscription_id": str(exc.subscription_id) if exc.subscription_id is not None else None,
                "error": str(exc),
            },
        )

    def _not_found(self, operation: str, subscription_id: uuid.UUID) -> SubscriptionNotFoundError:
        observe_store_operation(operation, "not_found")
        self.logger.warning(
            "subscription.not_found",
            extra={"operation": operation, "subscription_id": str(subscription_id)},
        )
        return SubscriptionNotFoundError(subscription_id, operation=operation)

    def _storage_failure(
        self,
        session: Session,
        exc: SQLAlchemyError,
        operation: str,
        subscription_id: uuid.UUID | None,
    ) -> StorageError:
        session.rollback()
        observe_store_operation(operation, "storage_error")
        self.logger.error(
            "subscription.storage_failure",
            extra={
                "operation": operation,
                "subscription_id": str(subscription_id) if subscription_id is not None else None,
                "error": str(exc),
            },
        )
        return StorageError(operation, subscription_id=subscription_id)

    def _succeeded(self, operation: str, message: str, **fields: object) -> None:
        observe_store_operation(operation, "ok")
        self.logger.info(message, extra={"operation": operation, **fields})

    @staticmethod
    def _to_read(row: Subscription) -> SubscriptionRead:
        return SubscriptionRead(
            id=row.id,
            service_name=row.service_name,
            price=row.price,
            user_id=row.user_id,
            start_date=format_month_year(row.start_date),
            end_date=format_optional_month_year(row.end_date),
        )
