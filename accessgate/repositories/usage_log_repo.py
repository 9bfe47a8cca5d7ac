from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List

from sqlalchemy import asc, desc, func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from accessgate.core.errors import StoreError
from accessgate.models.usage_log import UsageLog
from accessgate.repositories.code_store import LogPage, LogQuery, UsageLogEntry
from accessgate.utils.time_utils import as_utc


def _entry(row: UsageLog) -> UsageLogEntry:
    return UsageLogEntry(
        id=row.id,
        code=row.code,
        action=row.action,  # type: ignore[arg-type]
        timestamp=as_utc(row.timestamp),
        details=row.details,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
    )


def create_usage_log(db: Session, entry: UsageLogEntry) -> UsageLog:
    log = UsageLog(
        code=entry.code.upper(),
        action=entry.action,
        timestamp=entry.timestamp,
        details=entry.details,
        ip_address=(entry.ip_address[:45] if entry.ip_address else None),
        user_agent=(entry.user_agent[:512] if entry.user_agent else None),
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def recent_usage_logs(db: Session, limit: int = 50) -> List[UsageLogEntry]:
    stmt = select(UsageLog).order_by(desc(UsageLog.timestamp)).limit(limit)
    return [_entry(row) for row in db.execute(stmt).scalars().all()]


def _filters(q: LogQuery) -> list:
    cond = []
    actions = [a for a in q.actions if a and a != "all"]
    if actions:
        cond.append(UsageLog.action.in_(actions))
    if q.codes:
        cond.append(UsageLog.code.in_([c.upper() for c in q.codes]))
    if q.ip_addresses:
        cond.append(UsageLog.ip_address.in_(list(q.ip_addresses)))
    if q.start is not None:
        cond.append(UsageLog.timestamp >= q.start)
    if q.end is not None:
        cond.append(UsageLog.timestamp <= q.end)
    if q.search:
        like = f"%{q.search.strip()}%"
        cond.append(
            or_(
                UsageLog.code.ilike(like),
                UsageLog.details.ilike(like),
                UsageLog.ip_address.ilike(like),
            )
        )
    return cond


def search_usage_logs(db: Session, q: LogQuery) -> LogPage:
    """
    Liefert eine Seite Audit-Einträge plus Gesamtanzahl.
    Sortierung nach timestamp (Standard: neueste zuerst).
    """
    cond = _filters(q)
    order = asc(UsageLog.timestamp) if q.sort_order == "asc" else desc(UsageLog.timestamp)
    offset = (q.page - 1) * q.limit

    stmt = select(UsageLog).where(*cond).order_by(order).limit(q.limit).offset(offset)
    rows = db.execute(stmt).scalars().all()

    total_stmt = select(func.count()).select_from(UsageLog).where(*cond)
    total = int(db.execute(total_stmt).scalar() or 0)

    return LogPage(entries=[_entry(r) for r in rows], total=total, page=q.page, limit=q.limit)


class SqlUsageLogSink:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as ex:
            db.rollback()
            raise StoreError(str(ex)) from ex
        finally:
            db.close()

    def append(self, entry: UsageLogEntry) -> None:
        with self._session() as db:
            create_usage_log(db, entry)

    def recent(self, limit: int = 50) -> List[UsageLogEntry]:
        with self._session() as db:
            return recent_usage_logs(db, limit)

    def query(self, query: LogQuery) -> LogPage:
        with self._session() as db:
            return search_usage_logs(db, query)
