from __future__ import annotations

from datetime import date

from sqlmodel import Session

from app.domain.models import SettingsUpdate, TenantSettings, current_academic_year
from app.infra.db import get_engine
from app.infra.tenant import TenantScope
from app.infra.upsert import KeyedUpsert


def academic_years(today: date | None = None) -> list[str]:
    today = today or date.today()
    return [current_academic_year(date(today.year + offset, 1, 1)) for offset in (-1, 0, 1)]


class SettingsService:
    """Per-school settings; one row per tenant, created on first write."""

    store = KeyedUpsert(TenantSettings, ())

    def _session(self) -> Session:
        return Session(get_engine(), expire_on_commit=False)

    def get_settings(self, scope: TenantScope) -> TenantSettings:
        with self._session() as session:
            existing = self.store.find(session, scope, {})
        if existing is not None:
            return existing
        # Unsaved defaults; nothing is persisted until an admin writes.
        return scope.new(TenantSettings)

    def update_settings(self, scope: TenantScope, payload: SettingsUpdate) -> TenantSettings:
        changes = payload.model_dump(exclude_none=True)
        changes["updated_by"] = scope.principal.principal_id
        return self.store.upsert(scope, {}, changes).record
