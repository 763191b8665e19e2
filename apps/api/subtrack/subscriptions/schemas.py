from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# price is stored in a 32-bit INTEGER column
MAX_PRICE = 2**31 - 1


class SubscriptionPayload(BaseModel):
    """Body of create and update requests. Dates are ``MM-YYYY`` strings."""

    service_name: str = Field(min_length=1, examples=["Yandex Plus"])
    price: int = Field(ge=0, le=MAX_PRICE, examples=[400])
    user_id: UUID = Field(examples=["60601fee-2bf1-4721-ae6f-7636e79a0cba"])
    start_date: str = Field(min_length=1, examples=["07-2025"])
    end_date: str | None = Field(default=None, examples=["12-2025"])


class SubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    service_name: str
    price: int
    user_id: UUID
    start_date: str
    end_date: str | None = None


class SubscriptionList(BaseModel):
    subscriptions: list[SubscriptionRead] = Field(default_factory=list)
    count: int


class CreatedResponse(BaseModel):
    sub_id: UUID


class IDResponse(BaseModel):
    id: UUID


class TotalCostResponse(BaseModel):
    total_cost: int = Field(examples=[2997])


class ErrorResponse(BaseModel):
    code: str
    message: str
    details: object | None = None
    correlation_id: str | None = None
