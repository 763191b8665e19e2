from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Body, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from subtrack.api.errors import error_response
from subtrack.core.config import get_settings
from subtrack.core.database import get_db
from subtrack.subscriptions.errors import (
    InvalidDateFormatError,
    StorageError,
    SubscriptionError,
    SubscriptionNotFoundError,
)
from subtrack.subscriptions.schemas import (
    CreatedResponse,
    ErrorResponse,
    IDResponse,
    SubscriptionList,
    SubscriptionPayload,
    SubscriptionRead,
    TotalCostResponse,
)
from subtrack.subscriptions.service import SubscriptionStore


router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])

_STORAGE_FAILURE_MESSAGES = {
    "create": "Failed to create subscription",
    "get": "Failed to get subscription",
    "update": "Failed to update subscription",
    "delete": "Failed to delete subscription",
    "list": "Failed to list subscriptions",
    "total_cost": "Failed to calculate total cost",
}

_ERROR_RESPONSES = {
    status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


def get_subscription_store() -> SubscriptionStore:
    settings = get_settings()
    return SubscriptionStore(
        logger=logging.getLogger("subtrack.subscriptions"),
        default_period_end=settings.default_period_end,
    )


def store_error_response(request: Request, exc: SubscriptionError) -> JSONResponse:
    if isinstance(exc, SubscriptionNotFoundError):
        return error_response(
            request,
            status_code=status.HTTP_404_NOT_FOUND,
            code="not_found",
            message="Subscription not found",
        )
    if isinstance(exc, InvalidDateFormatError):
        return error_response(
            request,
            status_code=status.HTTP_400_BAD_REQUEST,
            code="invalid_date_format",
            message="Invalid date format, expected MM-YYYY",
            details={"field": exc.field},
        )
    if isinstance(exc, StorageError):
        return error_response(
            request,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code="storage_failure",
            message=_STORAGE_FAILURE_MESSAGES.get(exc.operation, "Failed to process request"),
        )
    return error_response(
        request,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        code="internal_error",
        message="Failed to process request",
    )


def _invalid_id(request: Request) -> JSONResponse:
    return error_response(
        request,
        status_code=status.HTTP_400_BAD_REQUEST,
        code="invalid_id",
        message="Invalid ID format",
    )


def _parse_uuid(raw: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(raw)
    except ValueError:
        return None


@router.post("", response_model=CreatedResponse, status_code=status.HTTP_201_CREATED, responses=_ERROR_RESPONSES)
def create_subscription(
    request: Request,
    payload: SubscriptionPayload = Body(...),
    db: Session = Depends(get_db),
    store: SubscriptionStore = Depends(get_subscription_store),
) -> CreatedResponse | JSONResponse:
    try:
        return CreatedResponse(sub_id=store.create(db, payload))
    except SubscriptionError as exc:
        return store_error_response(request, exc)


@router.get("/list", response_model=SubscriptionList, responses=_ERROR_RESPONSES)
def list_subscriptions(
    request: Request,
    db: Session = Depends(get_db),
    store: SubscriptionStore = Depends(get_subscription_store),
) -> SubscriptionList | JSONResponse:
    try:
        subscriptions = store.list_all(db)
    except SubscriptionError as exc:
        return store_error_response(request, exc)
    return SubscriptionList(subscriptions=subscriptions, count=len(subscriptions))


@router.get("/totalCost", response_model=TotalCostResponse, responses=_ERROR_RESPONSES)
def get_total_cost(
    request: Request,
    period_start: str | None = Query(default=None, examples=["07-2025"]),
    period_end: str | None = Query(default=None, examples=["12-2025"]),
    user_id: str | None = Query(default=None),
    service_name: str | None = Query(default=None),
    db: Session = Depends(get_db),
    store: SubscriptionStore = Depends(get_subscription_store),
) -> TotalCostResponse | JSONResponse:
    if not period_start:
        return error_response(
            request,
            status_code=status.HTTP_400_BAD_REQUEST,
            code="period_start_required",
            message="period_start is required",
        )

    owner_id = None
    if user_id:
        owner_id = _parse_uuid(user_id)
        if owner_id is None:
            return error_response(
                request,
                status_code=status.HTTP_400_BAD_REQUEST,
                code="invalid_user_id",
                message="Invalid user_id format",
            )

    try:
        total = store.total_cost(
            db,
            period_start=period_start,
            period_end=period_end or None,
            user_id=owner_id,
            service_name=service_name or None,
        )
    except SubscriptionError as exc:
        return store_error_response(request, exc)
    return TotalCostResponse(total_cost=total)


@router.get("/{subscription_id}", response_model=SubscriptionRead, responses=_ERROR_RESPONSES)
def get_subscription(
    request: Request,
    subscription_id: str,
    db: Session = Depends(get_db),
    store: SubscriptionStore = Depends(get_subscription_store),
) -> SubscriptionRead | JSONResponse:
    parsed_id = _parse_uuid(subscription_id)
    if parsed_id is None:
        return _invalid_id(request)
    try:
        return store.get(db, parsed_id)
    except SubscriptionError as exc:
        return store_error_response(request, exc)


@router.put("/{subscription_id}", response_model=IDResponse, responses=_ERROR_RESPONSES)
def update_subscription(
    request: Request,
    subscription_id: str,
    payload: SubscriptionPayload = Body(...),
    db: Session = Depends(get_db),
    store: SubscriptionStore = Depends(get_subscription_store),
) -> IDResponse | JSONResponse:
    parsed_id = _parse_uuid(subscription_id)
    if parsed_id is None:
        return _invalid_id(request)
    try:
        store.update(db, parsed_id, payload)
    except SubscriptionError as exc:
        return store_error_response(request, exc)
    return IDResponse(id=parsed_id)


@router.delete("/{subscription_id}", response_model=IDResponse, responses=_ERROR_RESPONSES)
def delete_subscription(
    request: Request,
    subscription_id: str,
    db: Session = Depends(get_db),
    store: SubscriptionStore = Depends(get_subscription_store),
) -> IDResponse | JSONResponse:
    parsed_id = _parse_uuid(subscription_id)
    if parsed_id is None:
        return _invalid_id(request)
    try:
        store.delete(db, parsed_id)
    except SubscriptionError as exc:
        return store_error_response(request, exc)
    return IDResponse(id=parsed_id)
