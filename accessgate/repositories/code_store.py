# accessgate/repositories/code_store.py
"""
Vertrag zwischen den Services (Generator, Validator, Cleanup) und dem Speicher.

Die Services kennen nur diese Typen; die SQLAlchemy-Implementierung steht in
access_code_repo.py / usage_log_repo.py, Tests verwenden eine In-Memory-Variante.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional, Protocol, Sequence

from accessgate.core.policy import OneTime, Policy, StoreCapabilities

UsageAction = Literal["generated", "used", "expired", "revoked"]


@dataclass
class AccessCodeRecord:
    code: str
    expires_at: datetime
    created_at: datetime
    is_active: bool = True
    used_at: Optional[datetime] = None
    used_by: Optional[str] = None
    duration_minutes: int = 10
    created_by: Optional[str] = "admin"
    prefix: Optional[str] = None
    policy: Policy = field(default_factory=OneTime)
    current_uses: int = 0


@dataclass(frozen=True)
class UseUpdate:
    """
    Bedingtes Update nach erfolgreicher Prüfung (Compare-and-Swap).
    Greift nur, wenn der Datensatz noch aktiv ist und
    - expected_uses gesetzt: current_uses == expected_uses
    - require_unused: used_at IS NULL
    """

    code: str
    used_at: datetime
    used_by: str
    deactivate: bool
    expected_uses: Optional[int] = None
    require_unused: bool = False


@dataclass
class UsageLogEntry:
    code: str
    action: UsageAction
    timestamp: datetime
    details: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class UsageStatistics:
    total_codes: int
    active_codes: int
    used_codes: int
    expired_codes: int
    codes_with_usage_limit: int
    average_usage_per_code: float


@dataclass
class LogQuery:
    actions: Sequence[str] = ()
    codes: Sequence[str] = ()
    ip_addresses: Sequence[str] = ()
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    search: Optional[str] = None
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = 1
    limit: int = 50


@dataclass
class LogPage:
    entries: list[UsageLogEntry]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1


class CodeStore(Protocol):
    capabilities: StoreCapabilities

    def refresh_capabilities(self) -> StoreCapabilities: ...

    def get(self, code: str) -> Optional[AccessCodeRecord]: ...

    def insert(self, record: AccessCodeRecord) -> AccessCodeRecord: ...

    def record_use(self, update: UseUpdate) -> bool: ...

    def deactivate(self, code: str) -> bool: ...

    def deactivate_expired(self, now: datetime) -> list[str]: ...

    def list_active(self) -> list[AccessCodeRecord]: ...

    def count_all(self) -> int: ...

    def usage_statistics(self, now: datetime) -> UsageStatistics: ...


class UsageLogSink(Protocol):
    def append(self, entry: UsageLogEntry) -> None: ...

    def recent(self, limit: int = 50) -> list[UsageLogEntry]: ...

    def query(self, query: LogQuery) -> LogPage: ...
