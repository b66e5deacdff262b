from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from sqlalchemy import func
from sqlmodel import Session, SQLModel, select
from sqlmodel.sql.expression import SelectOfScalar

from app.domain.errors import ValidationError

ModelT = TypeVar("ModelT", bound=SQLModel)

MAX_PAGE_SIZE = 200


@dataclass
class Page(Generic[ModelT]):
    records: list[ModelT]
    count: int
    page: int
    total_pages: int


def paginate(
    session: Session,
    statement: SelectOfScalar[ModelT],
    *order_by: Any,
    page: int = 1,
    limit: int = 50,
) -> Page[ModelT]:
    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")
    limit = min(limit, MAX_PAGE_SIZE)
    total = session.exec(select(func.count()).select_from(statement.subquery())).one()
    rows = session.exec(statement.order_by(*order_by).offset((page - 1) * limit).limit(limit)).all()
    return Page(
        records=list(rows),
        count=total,
        page=page,
        total_pages=math.ceil(total / limit) if total else 0,
    )
