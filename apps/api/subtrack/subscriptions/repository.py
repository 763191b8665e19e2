from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy import ColumnElement, Delete, Select, Update, delete, func, or_, select, update

from subtrack.subscriptions.models import Subscription


NIL_UUID = uuid.UUID(int=0)


@dataclass(frozen=True, slots=True)
class CostFilter:
    """Conjunctive criteria for the total cost query.

    A row qualifies when its active interval ``[start_date, end_date or +inf)``
    overlaps ``[period_start, period_end]`` and it matches every optional filter
    that is set.
    """

    period_start: date
    period_end: date
    user_id: uuid.UUID | None = None
    service_name: str | None = None

    def predicates(self) -> list[ColumnElement[bool]]:
        conditions: list[ColumnElement[bool]] = [
            Subscription.start_date <= self.period_end,
            or_(Subscription.end_date >= self.period_start, Subscription.end_date.is_(None)),
        ]
        if self.user_id is not None and self.user_id != NIL_UUID:
            conditions.append(Subscription.user_id == self.user_id)
        if self.service_name:
            conditions.append(Subscription.service_name == self.service_name)
        return conditions


class SubscriptionRepository:
    """Builds the statements the store issues against the ``subscriptions`` table."""

    def by_id(self, subscription_id: uuid.UUID) -> Select[Any]:
        return select(Subscription).where(Subscription.id == subscription_id)

    def all_by_start_desc(self) -> Select[Any]:
        return select(Subscription).order_by(Subscription.start_date.desc())

    def replace(self, subscription_id: uuid.UUID, values: dict[str, Any]) -> Update:
        return update(Subscription).where(Subscription.id == subscription_id).values(**values)

    def remove(self, subscription_id: uuid.UUID) -> Delete:
        return delete(Subscription).where(Subscription.id == subscription_id)

    def total_price(self, criteria: CostFilter) -> Select[Any]:
        return select(func.coalesce(func.sum(Subscription.price), 0)).where(*criteria.predicates())
