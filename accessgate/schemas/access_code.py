# accessgate/schemas/access_code.py
from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from accessgate.core.policy import Capped, Reusable
from accessgate.repositories.code_store import AccessCodeRecord, UsageLogEntry, UsageStatistics


# ---------- Request ----------
class AccessCodeActionIn(BaseModel):
    """Ein Endpunkt, Aktion im Body (wie vom Frontend gesendet)."""

    model_config = ConfigDict(populate_by_name=True)

    action: str
    code: Optional[str] = None
    duration: Optional[int] = Field(default=None, description="Gültigkeit in Minuten")
    prefix: Optional[str] = Field(default=None, max_length=32)
    auto_expire: Optional[bool] = Field(default=None, alias="autoExpire")
    max_uses: Optional[int] = Field(default=None, alias="maxUses")


# ---------- Responses ----------
class _CamelOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerateOut(_CamelOut):
    code: str
    expires_at: datetime = Field(alias="expiresAt")
    expiration_minutes: int = Field(alias="expirationMinutes")
    prefix: Optional[str] = None
    auto_expire: bool = Field(alias="autoExpire")
    max_uses: Optional[int] = Field(default=None, alias="maxUses")
    policy: Literal["one_time", "reusable", "capped"]
    legacy_mode: bool = Field(alias="legacyMode")

    @classmethod
    def from_record(cls, record: AccessCodeRecord, legacy_mode: bool) -> "GenerateOut":
        return cls(
            code=record.code,
            expires_at=record.expires_at,
            expiration_minutes=record.duration_minutes,
            prefix=record.prefix,
            auto_expire=not isinstance(record.policy, Reusable),
            max_uses=record.policy.max_uses if isinstance(record.policy, Capped) else None,
            policy=record.policy.kind,
            legacy_mode=legacy_mode,
        )


class AccessCodeOut(_CamelOut):
    code: str
    expires_at: datetime = Field(alias="expiresAt")
    created_at: datetime = Field(alias="createdAt")
    used_at: Optional[datetime] = Field(default=None, alias="usedAt")
    used_by: Optional[str] = Field(default=None, alias="usedBy")
    prefix: Optional[str] = None
    auto_expire_on_use: bool = Field(default=True, alias="autoExpireOnUse")
    max_uses: Optional[int] = Field(default=None, alias="maxUses")
    current_uses: int = Field(default=0, alias="currentUses")
    policy: str

    @classmethod
    def from_record(cls, record: AccessCodeRecord) -> "AccessCodeOut":
        return cls(
            code=record.code,
            expires_at=record.expires_at,
            created_at=record.created_at,
            used_at=record.used_at,
            used_by=record.used_by,
            prefix=record.prefix,
            auto_expire_on_use=not isinstance(record.policy, Reusable),
            max_uses=record.policy.max_uses if isinstance(record.policy, Capped) else None,
            current_uses=record.current_uses,
            policy=record.policy.kind,
        )


class UsageLogOut(_CamelOut):
    id: Optional[str] = None
    code: str
    action: str
    timestamp: datetime
    details: Optional[str] = None
    ip_address: Optional[str] = Field(default=None, alias="ipAddress")

    @classmethod
    def from_entry(cls, entry: UsageLogEntry) -> "UsageLogOut":
        return cls(
            id=entry.id,
            code=entry.code,
            action=entry.action,
            timestamp=entry.timestamp,
            details=entry.details,
            ip_address=entry.ip_address,
        )


class AdminOverviewOut(_CamelOut):
    active_codes: list[AccessCodeOut] = Field(alias="activeCodes")
    total_codes: int = Field(alias="totalCodes")
    usage_logs: list[UsageLogOut] = Field(alias="usageLogs")


class UsageStatisticsOut(_CamelOut):
    total_codes: int = Field(alias="totalCodes")
    active_codes: int = Field(alias="activeCodes")
    used_codes: int = Field(alias="usedCodes")
    expired_codes: int = Field(alias="expiredCodes")
    codes_with_usage_limit: int = Field(alias="codesWithUsageLimit")
    average_usage_per_code: float = Field(alias="averageUsagePerCode")

    @classmethod
    def from_stats(cls, stats: UsageStatistics) -> "UsageStatisticsOut":
        return cls(**asdict(stats))


class ActivityLogPageOut(_CamelOut):
    logs: list[UsageLogOut]
    total: int
    page: int
    limit: int
    total_pages: int = Field(alias="totalPages")
    has_next_page: bool = Field(alias="hasNextPage")
    has_previous_page: bool = Field(alias="hasPreviousPage")
