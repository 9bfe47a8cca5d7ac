# accessgate/repositories/access_code_repo.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

from sqlalchemy import Engine, func, inspect, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from accessgate.core.errors import DuplicateCodeError, SchemaMismatchError, StoreError
from accessgate.core.policy import (
    Capped,
    OneTime,
    Policy,
    Reusable,
    StoreCapabilities,
)
from accessgate.models.access_code import POLICY_COLUMNS, USAGE_COLUMNS, AccessCode
from accessgate.repositories.code_store import AccessCodeRecord, UsageStatistics, UseUpdate
from accessgate.utils.time_utils import as_utc

logger = logging.getLogger(__name__)

access_codes = AccessCode.__table__

BASE_COLUMNS = (
    "code",
    "expires_at",
    "created_at",
    "is_active",
    "used_at",
    "used_by",
    "duration_minutes",
    "created_by",
)


def _column_names(caps: StoreCapabilities) -> list[str]:
    names = list(BASE_COLUMNS)
    if caps.supports_policy_flags:
        names.extend(POLICY_COLUMNS)
    if caps.supports_usage_cap:
        names.extend(USAGE_COLUMNS)
    return names


# ------------------------------------------------------------
# Mapping Zeile <-> Record
# ------------------------------------------------------------
def _policy_from_row(row: dict[str, Any], caps: StoreCapabilities) -> Policy:
    if caps.supports_usage_cap and row.get("max_uses") is not None:
        return Capped(int(row["max_uses"]))
    if caps.supports_policy_flags and row.get("auto_expire_on_use") is False:
        return Reusable()
    return OneTime()


def _record_from_row(row: dict[str, Any], caps: StoreCapabilities) -> AccessCodeRecord:
    return AccessCodeRecord(
        code=row["code"],
        expires_at=as_utc(row["expires_at"]),
        created_at=as_utc(row["created_at"]),
        is_active=bool(row["is_active"]),
        used_at=as_utc(row["used_at"]),
        used_by=row["used_by"],
        duration_minutes=row["duration_minutes"],
        created_by=row["created_by"],
        prefix=row.get("prefix"),
        policy=_policy_from_row(row, caps),
        current_uses=int(row.get("current_uses") or 0),
    )


def _row_from_record(record: AccessCodeRecord, caps: StoreCapabilities) -> dict[str, Any]:
    values: dict[str, Any] = {
        "code": record.code,
        "expires_at": record.expires_at,
        "created_at": record.created_at,
        "is_active": record.is_active,
        "used_at": record.used_at,
        "used_by": record.used_by,
        "duration_minutes": record.duration_minutes,
        "created_by": record.created_by,
    }
    if caps.supports_policy_flags:
        values["prefix"] = record.prefix
        values["auto_expire_on_use"] = not isinstance(record.policy, Reusable)
    if caps.supports_usage_cap:
        values["max_uses"] = record.policy.max_uses if isinstance(record.policy, Capped) else None
        values["current_uses"] = record.current_uses
    return values


# ------------------------------------------------------------
# READ
# ------------------------------------------------------------
def get_by_code(db: Session, code: str, caps: StoreCapabilities) -> Optional[AccessCodeRecord]:
    cols = [access_codes.c[name] for name in _column_names(caps)]
    row = db.execute(select(*cols).where(access_codes.c.code == code).limit(1)).mappings().first()
    if row is None:
        return None
    return _record_from_row(dict(row), caps)


def get_active(db: Session, caps: StoreCapabilities) -> list[AccessCodeRecord]:
    cols = [access_codes.c[name] for name in _column_names(caps)]
    stmt = (
        select(*cols)
        .where(access_codes.c.is_active.is_(True))
        .order_by(access_codes.c.created_at.desc())
    )
    return [_record_from_row(dict(row), caps) for row in db.execute(stmt).mappings()]


def count_all(db: Session) -> int:
    return int(db.scalar(select(func.count()).select_from(access_codes)) or 0)


def usage_statistics(db: Session, caps: StoreCapabilities, now: datetime) -> UsageStatistics:
    c = access_codes.c

    def _count(*where) -> int:
        return int(db.scalar(select(func.count()).select_from(access_codes).where(*where)) or 0)

    capped = 0
    average = 0.0
    if caps.supports_usage_cap:
        capped = _count(c.max_uses.is_not(None))
        average = float(db.scalar(select(func.avg(func.coalesce(c.current_uses, 0)))) or 0.0)

    return UsageStatistics(
        total_codes=count_all(db),
        active_codes=_count(c.is_active.is_(True)),
        used_codes=_count(c.used_at.is_not(None)),
        expired_codes=_count(c.expires_at < now),
        codes_with_usage_limit=capped,
        average_usage_per_code=round(average, 2),
    )


# ------------------------------------------------------------
# CREATE
# ------------------------------------------------------------
def create_code(db: Session, record: AccessCodeRecord, caps: StoreCapabilities) -> AccessCodeRecord:
    db.execute(insert(access_codes).values(**_row_from_record(record, caps)))
    db.commit()
    created = get_by_code(db, record.code, caps)
    if created is None:
        raise StoreError(f"Insert of access code {record.code} not confirmed")
    return created


# ------------------------------------------------------------
# UPDATE
# ------------------------------------------------------------
def apply_use(db: Session, upd: UseUpdate, caps: StoreCapabilities) -> bool:
    """
    UPDATE access_codes
       SET used_at = :used_at, used_by = :used_by, is_active = :active [, current_uses = :n + 1]
     WHERE code = :code AND is_active [AND current_uses = :n] [AND used_at IS NULL]
    """
    c = access_codes.c
    values: dict[str, Any] = {
        "used_at": upd.used_at,
        "used_by": upd.used_by,
        "is_active": not upd.deactivate,
    }
    stmt = update(access_codes).where(c.code == upd.code, c.is_active.is_(True))
    if caps.supports_usage_cap and upd.expected_uses is not None:
        stmt = stmt.where(func.coalesce(c.current_uses, 0) == upd.expected_uses)
        values["current_uses"] = upd.expected_uses + 1
    if upd.require_unused:
        stmt = stmt.where(c.used_at.is_(None))

    result = db.execute(stmt.values(**values))
    db.commit()
    return result.rowcount == 1


def set_inactive(db: Session, code: str) -> bool:
    result = db.execute(
        update(access_codes)
        .where(access_codes.c.code == code, access_codes.c.is_active.is_(True))
        .values(is_active=False)
    )
    db.commit()
    return result.rowcount > 0


def deactivate_expired(db: Session, now: datetime) -> list[str]:
    """
    Liefert nur die Codes, die dieses UPDATE selbst deaktiviert hat.
    Parallel per Lazy-Expire umgelegte Codes zählen nicht mit.
    """
    c = access_codes.c
    due = (c.is_active.is_(True), c.expires_at < now)

    if db.get_bind().dialect.update_returning:
        stmt = update(access_codes).where(*due).values(is_active=False).returning(c.code)
        flipped = list(db.execute(stmt).scalars())
        db.commit()
        return flipped

    # Ohne RETURNING (z.B. MySQL): Zeile für Zeile bedingt umlegen
    flipped = []
    for code in db.scalars(select(c.code).where(*due)).all():
        result = db.execute(
            update(access_codes).where(c.code == code, c.is_active.is_(True)).values(is_active=False)
        )
        if result.rowcount == 1:
            flipped.append(code)
    db.commit()
    return flipped


# ------------------------------------------------------------
# Store-Objekt (Session-Verwaltung + Fehlerübersetzung)
# ------------------------------------------------------------
def detect_capabilities(engine: Engine) -> StoreCapabilities:
    insp = inspect(engine)
    if not insp.has_table(AccessCode.__tablename__):
        raise SchemaMismatchError("Table access_codes does not exist")
    present = {col["name"] for col in insp.get_columns(AccessCode.__tablename__)}
    return StoreCapabilities(
        supports_policy_flags=all(name in present for name in POLICY_COLUMNS),
        supports_usage_cap=all(name in present for name in USAGE_COLUMNS),
    )


def _mentions_optional_column(exc: SQLAlchemyError) -> bool:
    msg = str(getattr(exc, "orig", exc)).lower()
    return any(name in msg for name in POLICY_COLUMNS + USAGE_COLUMNS)


class SqlCodeStore:
    def __init__(
        self,
        session_factory: sessionmaker,
        engine: Engine,
        capabilities: Optional[StoreCapabilities] = None,
    ):
        self._session_factory = session_factory
        self._engine = engine
        self.capabilities = capabilities or StoreCapabilities()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except IntegrityError as ex:
            db.rollback()
            msg = str(ex.orig).lower()
            if "unique" in msg or "duplicate" in msg:
                raise DuplicateCodeError(str(ex.orig)) from ex
            raise StoreError(str(ex)) from ex
        except SQLAlchemyError as ex:
            db.rollback()
            if _mentions_optional_column(ex):
                raise SchemaMismatchError(str(ex)) from ex
            raise StoreError(str(ex)) from ex
        finally:
            db.close()

    def refresh_capabilities(self) -> StoreCapabilities:
        try:
            self.capabilities = detect_capabilities(self._engine)
        except SQLAlchemyError as ex:
            raise StoreError(str(ex)) from ex
        if self.capabilities.legacy:
            logger.warning("access_codes runs in legacy mode: %s", self.capabilities)
        return self.capabilities

    def get(self, code: str) -> Optional[AccessCodeRecord]:
        with self._session() as db:
            return get_by_code(db, code, self.capabilities)

    def insert(self, record: AccessCodeRecord) -> AccessCodeRecord:
        with self._session() as db:
            return create_code(db, record, self.capabilities)

    def record_use(self, update: UseUpdate) -> bool:
        with self._session() as db:
            return apply_use(db, update, self.capabilities)

    def deactivate(self, code: str) -> bool:
        with self._session() as db:
            return set_inactive(db, code)

    def deactivate_expired(self, now: datetime) -> list[str]:
        with self._session() as db:
            return deactivate_expired(db, now)

    def list_active(self) -> list[AccessCodeRecord]:
        with self._session() as db:
            return get_active(db, self.capabilities)

    def count_all(self) -> int:
        with self._session() as db:
            return count_all(db)

    def usage_statistics(self, now: datetime) -> UsageStatistics:
        with self._session() as db:
            return usage_statistics(db, self.capabilities, now)
