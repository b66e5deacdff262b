from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from app.api.deps import Scope, guard, require_perm, to_http_exception
from app.domain.errors import CoreError
from app.domain.models import (
    FeeCreate,
    FeePageRead,
    FeePaymentRequest,
    FeeRead,
    FeeStatus,
    FeeSummaryRead,
    FeeType,
    FeeUpdate,
)
from app.domain.permissions import Action, Resource, Role
from app.services.fee_service import FeeService

router = APIRouter()


def get_fee_service() -> FeeService:
    return FeeService()


Service = Annotated[FeeService, Depends(get_fee_service)]


@router.post(
    "",
    response_model=FeeRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.FEES, actions=(Action.CREATE,)))],
)
def create_fee(payload: FeeCreate, scope: Scope, service: Service) -> FeeRead:
    try:
        fee = service.create_fee(scope, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return FeeRead.model_validate(fee)


@router.get(
    "",
    response_model=FeePageRead,
    dependencies=[Depends(require_perm(Resource.FEES, Action.READ))],
)
def list_fees(
    scope: Scope,
    service: Service,
    student_id: str | None = None,
    class_id: str | None = None,
    fee_status: Annotated[FeeStatus | None, Query(alias="status")] = None,
    fee_type: FeeType | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=200)] = 10,
) -> FeePageRead:
    try:
        result = service.list_fees(
            scope,
            student_id=student_id,
            class_id=class_id,
            status=fee_status,
            fee_type=fee_type,
            page=page,
            limit=limit,
        )
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return FeePageRead(
        fees=[FeeRead.model_validate(item) for item in result.records],
        count=result.count,
        page=result.page,
        total_pages=result.total_pages,
    )


@router.get(
    "/summary",
    response_model=FeeSummaryRead,
    dependencies=[Depends(require_perm(Resource.FEES, Action.READ))],
)
def fee_summary(scope: Scope, service: Service) -> FeeSummaryRead:
    summary = service.summary(scope)
    return FeeSummaryRead(
        total_amount=summary.total_amount,
        paid_amount=summary.paid_amount,
        pending_amount=summary.pending_amount,
        overdue_amount=summary.overdue_amount,
        collection_rate=summary.collection_rate,
    )


@router.get(
    "/{fee_id}",
    response_model=FeeRead,
    dependencies=[Depends(require_perm(Resource.FEES, Action.READ))],
)
def get_fee(fee_id: str, scope: Scope, service: Service) -> FeeRead:
    try:
        fee = service.get_fee(scope, fee_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return FeeRead.model_validate(fee)


@router.put(
    "/{fee_id}",
    response_model=FeeRead,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.FEES, actions=(Action.UPDATE,)))],
)
def update_fee(fee_id: str, payload: FeeUpdate, scope: Scope, service: Service) -> FeeRead:
    try:
        fee = service.update_fee(scope, fee_id, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return FeeRead.model_validate(fee)


@router.post(
    "/{fee_id}/pay",
    response_model=FeeRead,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.FEES, actions=(Action.UPDATE,)))],
)
def pay_fee(fee_id: str, payload: FeePaymentRequest, scope: Scope, service: Service) -> FeeRead:
    try:
        fee = service.pay(scope, fee_id, payload)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return FeeRead.model_validate(fee)


@router.delete(
    "/{fee_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(guard(roles=(Role.ADMIN,), resource=Resource.FEES, actions=(Action.DELETE,)))],
)
def delete_fee(fee_id: str, scope: Scope, service: Service) -> Response:
    try:
        service.delete_fee(scope, fee_id)
    except CoreError as exc:
        raise to_http_exception(exc) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
