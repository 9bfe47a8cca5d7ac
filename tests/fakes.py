from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from accessgate.core.errors import DuplicateCodeError, StoreError
from accessgate.core.policy import FULL_CAPABILITIES, Capped, StoreCapabilities
from accessgate.repositories.code_store import (
    AccessCodeRecord,
    LogPage,
    LogQuery,
    UsageLogEntry,
    UsageStatistics,
    UseUpdate,
)


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class MemoryCodeStore:
    """Single-threaded; record_use folgt derselben Compare-and-Swap-Semantik wie SqlCodeStore."""

    def __init__(self, capabilities: StoreCapabilities = FULL_CAPABILITIES):
        self.capabilities = capabilities
        self.rows: dict[str, AccessCodeRecord] = {}
        self.fail_reads = False
        self.fail_writes = False

    def _check(self, write: bool) -> None:
        if self.fail_reads or (write and self.fail_writes):
            raise StoreError("store unavailable")

    def refresh_capabilities(self) -> StoreCapabilities:
        return self.capabilities

    def get(self, code: str) -> Optional[AccessCodeRecord]:
        self._check(write=False)
        row = self.rows.get(code)
        return replace(row) if row else None

    def insert(self, record: AccessCodeRecord) -> AccessCodeRecord:
        self._check(write=True)
        if record.code in self.rows:
            raise DuplicateCodeError(record.code)
        self.rows[record.code] = replace(record)
        return replace(record)

    def record_use(self, update: UseUpdate) -> bool:
        self._check(write=True)
        row = self.rows.get(update.code)
        if row is None or not row.is_active:
            return False
        if update.expected_uses is not None and row.current_uses != update.expected_uses:
            return False
        if update.require_unused and row.used_at is not None:
            return False
        row.used_at = update.used_at
        row.used_by = update.used_by
        row.is_active = not update.deactivate
        if update.expected_uses is not None:
            row.current_uses = update.expected_uses + 1
        return True

    def deactivate(self, code: str) -> bool:
        self._check(write=True)
        row = self.rows.get(code)
        if row is None or not row.is_active:
            return False
        row.is_active = False
        return True

    def deactivate_expired(self, now: datetime) -> list[str]:
        self._check(write=True)
        due = [r.code for r in self.rows.values() if r.is_active and r.expires_at < now]
        for code in due:
            self.rows[code].is_active = False
        return due

    def list_active(self) -> list[AccessCodeRecord]:
        self._check(write=False)
        active = [replace(r) for r in self.rows.values() if r.is_active]
        return sorted(active, key=lambda r: r.created_at, reverse=True)

    def count_all(self) -> int:
        self._check(write=False)
        return len(self.rows)

    def usage_statistics(self, now: datetime) -> UsageStatistics:
        rows = list(self.rows.values())
        return UsageStatistics(
            total_codes=len(rows),
            active_codes=sum(1 for r in rows if r.is_active),
            used_codes=sum(1 for r in rows if r.used_at is not None),
            expired_codes=sum(1 for r in rows if r.expires_at < now),
            codes_with_usage_limit=sum(1 for r in rows if isinstance(r.policy, Capped)),
            average_usage_per_code=round(sum(r.current_uses for r in rows) / len(rows), 2) if rows else 0.0,
        )


class MemoryLogSink:
    def __init__(self):
        self.entries: list[UsageLogEntry] = []
        self.fail = False

    def append(self, entry: UsageLogEntry) -> None:
        if self.fail:
            raise StoreError("usage_logs unavailable")
        self.entries.append(entry)

    def recent(self, limit: int = 50) -> list[UsageLogEntry]:
        return sorted(self.entries, key=lambda e: e.timestamp, reverse=True)[:limit]

    def query(self, query: LogQuery) -> LogPage:
        rows = [e for e in self.entries if not query.actions or e.action in query.actions]
        rows.sort(key=lambda e: e.timestamp, reverse=query.sort_order == "desc")
        offset = (query.page - 1) * query.limit
        return LogPage(entries=rows[offset:offset + query.limit], total=len(rows), page=query.page, limit=query.limit)


class InterleavingStore:
    """Führt vor dem ersten record_use einen konkurrierenden Request aus."""

    def __init__(self, inner, before_first_write):
        self._inner = inner
        self._hook = before_first_write

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def record_use(self, update: UseUpdate) -> bool:
        if self._hook is not None:
            hook, self._hook = self._hook, None
            hook()
        return self._inner.record_use(update)
