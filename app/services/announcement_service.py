from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import case, or_
from sqlmodel import Session, col

from app.domain.errors import ValidationError
from app.domain.models import (
    Announcement,
    AnnouncementCreate,
    AnnouncementPriority,
    AnnouncementStatus,
    AnnouncementType,
    AnnouncementUpdate,
    TargetAudience,
    now_utc,
)
from app.infra.db import get_engine
from app.infra.events import event_bus
from app.infra.tenant import TenantScope
from app.services.paging import Page, paginate

ACTIVE_LIMIT = 10


class AnnouncementService:
    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    @staticmethod
    def _as_utc(value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def _normalize_dates(self, fields: dict[str, Any]) -> dict[str, Any]:
        for name in ("publish_date", "expiry_date"):
            if fields.get(name) is not None:
                fields[name] = self._as_utc(fields[name])
        return fields

    def _check_window(self, publish_date: datetime | None, expiry_date: datetime | None) -> None:
        if publish_date is not None and expiry_date is not None:
            if self._as_utc(expiry_date) < self._as_utc(publish_date):
                raise ValidationError("expiry date is before publish date")

    def create_announcement(self, scope: TenantScope, payload: AnnouncementCreate) -> Announcement:
        self._check_window(payload.publish_date, payload.expiry_date)
        with self._session() as session:
            announcement = scope.new(
                Announcement,
                **self._normalize_dates(payload.model_dump()),
                created_by=scope.principal.principal_id,
            )
            session.add(announcement)
            session.commit()
            session.refresh(announcement)
            return announcement

    def list_announcements(
        self,
        scope: TenantScope,
        *,
        announcement_type: AnnouncementType | None = None,
        status: AnnouncementStatus | None = None,
        target_audience: TargetAudience | None = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page[Announcement]:
        with self._session() as session:
            statement = scope.select(Announcement)
            if announcement_type is not None:
                statement = statement.where(Announcement.announcement_type == announcement_type)
            if status is not None:
                statement = statement.where(Announcement.status == status)
            if target_audience is not None:
                statement = statement.where(Announcement.target_audience == target_audience)
            return paginate(session, statement, col(Announcement.created_at).desc(), page=page, limit=limit)

    def active(self, scope: TenantScope, now: datetime | None = None) -> list[Announcement]:
        """Published and inside their window, most urgent first."""
        now = self._as_utc(now or now_utc())
        rank = case(
            (col(Announcement.priority) == AnnouncementPriority.HIGH, 0),
            (col(Announcement.priority) == AnnouncementPriority.MEDIUM, 1),
            else_=2,
        )
        with self._session() as session:
            statement = (
                scope.select(Announcement)
                .where(Announcement.status == AnnouncementStatus.PUBLISHED)
                .where(col(Announcement.publish_date) <= now)
                .where(or_(col(Announcement.expiry_date).is_(None), col(Announcement.expiry_date) >= now))
                .order_by(rank, col(Announcement.publish_date).desc())
                .limit(ACTIVE_LIMIT)
            )
            return list(session.exec(statement).all())

    def get_announcement(self, scope: TenantScope, announcement_id: str) -> Announcement:
        with self._session() as session:
            return scope.get(session, Announcement, announcement_id, "announcement")

    def update_announcement(
        self,
        scope: TenantScope,
        announcement_id: str,
        payload: AnnouncementUpdate,
    ) -> Announcement:
        with self._session() as session:
            announcement = scope.get(session, Announcement, announcement_id, "announcement")
            scope.assign(announcement, self._normalize_dates(payload.model_dump(exclude_none=True)))
            self._check_window(announcement.publish_date, announcement.expiry_date)
            announcement.updated_at = now_utc()
            session.add(announcement)
            session.commit()
            session.refresh(announcement)
            return announcement

    def publish(self, scope: TenantScope, announcement_id: str) -> Announcement:
        now = now_utc()
        with self._session() as session:
            announcement = scope.get(session, Announcement, announcement_id, "announcement")
            announcement.status = AnnouncementStatus.PUBLISHED
            # A future or missing publish date is pulled forward to now.
            if announcement.publish_date is None or self._as_utc(announcement.publish_date) > now:
                announcement.publish_date = now
            announcement.updated_at = now
            session.add(announcement)
            session.commit()
            session.refresh(announcement)
        event_bus.publish_dict(
            "announcement.published",
            scope.tenant_id,
            {"announcement_id": announcement.id, "target_audience": announcement.target_audience.value},
            actor_id=scope.principal.principal_id,
        )
        return announcement

    def delete_announcement(self, scope: TenantScope, announcement_id: str) -> None:
        with self._session() as session:
            announcement = scope.get(session, Announcement, announcement_id, "announcement")
            session.delete(announcement)
            session.commit()
