from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date

from sqlalchemy import func, update
from sqlmodel import Session, col, select

from app.domain.errors import ConflictError, ValidationError
from app.domain.models import (
    Fee,
    FeeCreate,
    FeePaymentRequest,
    FeeStatus,
    FeeType,
    FeeUpdate,
    SchoolClass,
    Student,
    now_utc,
)
from app.infra.db import get_engine
from app.infra.events import event_bus
from app.infra.tenant import TenantScope
from app.services.paging import Page, paginate

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeeSummary:
    total_amount: float
    paid_amount: float
    pending_amount: float
    overdue_amount: float
    collection_rate: int


class FeeService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def create_fee(self, scope: TenantScope, payload: FeeCreate) -> Fee:
        with self._session() as session:
            student = scope.get(session, Student, payload.student_id, "student")
            scope.get(session, SchoolClass, payload.class_id, "class")
            if student.class_id != payload.class_id:
                raise ValidationError("student is not enrolled in this class")
            fee = scope.new(Fee, **payload.model_dump(), created_by=scope.principal.principal_id)
            session.add(fee)
            session.commit()
            session.refresh(fee)
        event_bus.publish_dict(
            "fee.created",
            scope.tenant_id,
            {"fee_id": fee.id, "student_id": fee.student_id, "amount": fee.amount},
            actor_id=scope.principal.principal_id,
        )
        return fee

    def list_fees(
        self,
        scope: TenantScope,
        *,
        student_id: str | None = None,
        class_id: str | None = None,
        status: FeeStatus | None = None,
        fee_type: FeeType | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page[Fee]:
        with self._session() as session:
            statement = scope.select(Fee)
            if student_id is not None:
                statement = statement.where(Fee.student_id == student_id)
            if class_id is not None:
                statement = statement.where(Fee.class_id == class_id)
            if status is not None:
                statement = statement.where(Fee.status == status)
            if fee_type is not None:
                statement = statement.where(Fee.fee_type == fee_type)
            return paginate(session, statement, col(Fee.due_date).desc(), page=page, limit=limit)

    def summary(self, scope: TenantScope) -> FeeSummary:
        totals = {status: 0.0 for status in FeeStatus}
        with self._session() as session:
            statement = scope.where(select(Fee.status, func.sum(Fee.amount)), Fee).group_by(Fee.status)
            for status, amount in session.exec(statement).all():
                totals[FeeStatus(status)] = float(amount or 0)
        total_amount = sum(totals.values())
        paid_amount = totals[FeeStatus.PAID]
        return FeeSummary(
            total_amount=total_amount,
            paid_amount=paid_amount,
            pending_amount=totals[FeeStatus.PENDING],
            overdue_amount=totals[FeeStatus.OVERDUE],
            # Rounded half-up.
            collection_rate=math.floor(paid_amount * 100 / total_amount + 0.5) if total_amount else 0,
        )

    def get_fee(self, scope: TenantScope, fee_id: str) -> Fee:
        with self._session() as session:
            return scope.get(session, Fee, fee_id, "fee record")

    def update_fee(self, scope: TenantScope, fee_id: str, payload: FeeUpdate) -> Fee:
        with self._session() as session:
            fee = scope.get(session, Fee, fee_id, "fee record")
            scope.assign(fee, payload.model_dump(exclude_none=True))
            fee.updated_at = now_utc()
            session.add(fee)
            session.commit()
            session.refresh(fee)
            return fee

    def pay(self, scope: TenantScope, fee_id: str, payload: FeePaymentRequest) -> Fee:
        """Mark a fee paid exactly once; a second payment is a conflict."""
        with self._session() as session:
            fee = scope.get(session, Fee, fee_id, "fee record")
            statement = (
                update(Fee)
                .where(
                    col(Fee.tenant_id) == scope.tenant_id,
                    col(Fee.id) == fee_id,
                    col(Fee.status) != FeeStatus.PAID,
                )
                .values(
                    status=FeeStatus.PAID,
                    paid_date=payload.paid_date or date.today(),
                    payment_method=payload.payment_method,
                    transaction_id=payload.transaction_id,
                    updated_at=now_utc(),
                )
            )
            result = session.execute(statement)
            session.commit()
            if not getattr(result, "rowcount", 0):
                raise ConflictError("fee already paid")
            session.refresh(fee)
        log.info("fee.paid tenant_id=%s fee_id=%s method=%s", scope.tenant_id, fee_id, fee.payment_method)
        event_bus.publish_dict(
            "fee.paid",
            scope.tenant_id,
            {"fee_id": fee.id, "student_id": fee.student_id, "amount": fee.amount},
            actor_id=scope.principal.principal_id,
        )
        return fee

    def delete_fee(self, scope: TenantScope, fee_id: str) -> None:
        with self._session() as session:
            fee = scope.get(session, Fee, fee_id, "fee record")
            session.delete(fee)
            session.commit()
