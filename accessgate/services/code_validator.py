# accessgate/services/code_validator.py
"""
Einlösen von Zugangscodes.

Reihenfolge der Prüfungen (jede Stufe ist eine endgültige Ablehnung):

  1. Existenz           -> "invalid code"   (auch für formal ungültige Eingaben)
  2. is_active          -> "already used" wenn used_at gesetzt, sonst "expired"
  3. Nutzungslimit      -> "already used"   (nur Capped)
  4. Wiederverwendung   -> "already used"   (nur OneTime, ohne Limit)
  5. Ablauf             -> "expired"        (Lazy-Expire, schreibt is_active=False)
  6. Annahme            -> bedingtes Update im Store, Audit-Eintrag

Nutzung/Limit wird vor dem Ablauf geprüft: ein ausgeschöpfter und zugleich
abgelaufener Code meldet "already used".
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from typing import Optional

from accessgate.core.errors import StoreError
from accessgate.core.policy import Capped, OneTime, Reusable
from accessgate.repositories.code_store import AccessCodeRecord, CodeStore, UseUpdate
from accessgate.services.usage_log_service import EXPIRED, USED, UsageLogService
from accessgate.utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)

INVALID_CODE = "invalid code"
ALREADY_USED = "already used"
CODE_EXPIRED = "expired"
VALIDATED = "validated"

# Spaltenbreite access_codes.used_by
REQUESTER_MAX_LENGTH = 255

_CODE_PATTERN = re.compile(r"^[A-Z0-9]{8}$")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: str
    access_code: Optional[AccessCodeRecord] = None


def normalize_code(code: Optional[str]) -> Optional[str]:
    if not code:
        return None
    value = code.strip().upper()
    return value if _CODE_PATTERN.match(value) else None


class CodeValidator:
    def __init__(
        self,
        store: CodeStore,
        usage_log: UsageLogService,
        *,
        clock: Clock = utcnow,
        max_attempts: int = 5,
    ):
        self.store = store
        self.usage_log = usage_log
        self.clock = clock
        self.max_attempts = max_attempts

    def validate(self, code: Optional[str], requester_id: Optional[str] = None) -> ValidationResult:
        normalized = normalize_code(code)
        if normalized is None:
            return ValidationResult(False, INVALID_CODE)

        for attempt in range(1, self.max_attempts + 1):
            result = self._decide(normalized, requester_id)
            if result is not None:
                return result
            # Bedingtes Update hat keine Zeile getroffen: parallele Einlösung, neu entscheiden
            logger.info("Concurrent update on %s, re-evaluating (attempt %d)", normalized, attempt)

        raise StoreError(f"Could not record use of {normalized}: too many concurrent updates")

    # ------------------------------------------------------------
    # Entscheidung
    # ------------------------------------------------------------
    def _decide(self, code: str, requester_id: Optional[str]) -> Optional[ValidationResult]:
        record = self.store.get(code)
        if record is None:
            return ValidationResult(False, INVALID_CODE)

        if not record.is_active:
            return ValidationResult(False, ALREADY_USED if record.used_at else CODE_EXPIRED, record)

        policy = record.policy
        if isinstance(policy, Capped):
            if record.current_uses >= policy.max_uses:
                return ValidationResult(False, ALREADY_USED, record)
        elif record.used_at is not None and isinstance(policy, OneTime):
            return ValidationResult(False, ALREADY_USED, record)

        now = self.clock()
        if record.expires_at < now:
            self._lazy_expire(record)
            return ValidationResult(False, CODE_EXPIRED, replace(record, is_active=False))

        return self._accept(record, requester_id, now)

    def _lazy_expire(self, record: AccessCodeRecord) -> None:
        if self.store.deactivate(record.code):
            self.usage_log.try_log(record.code, EXPIRED, "Expired on validation attempt")

    def _accept(self, record: AccessCodeRecord, requester_id: Optional[str], now) -> Optional[ValidationResult]:
        caps = self.store.capabilities
        policy = record.policy
        uses = record.current_uses + 1

        if isinstance(policy, Capped):
            deactivate = uses >= policy.max_uses
        else:
            deactivate = not isinstance(policy, Reusable)

        used_by = (requester_id or "unknown")[:REQUESTER_MAX_LENGTH]
        update = UseUpdate(
            code=record.code,
            used_at=now,
            used_by=used_by,
            deactivate=deactivate,
            expected_uses=record.current_uses if caps.supports_usage_cap else None,
            require_unused=isinstance(policy, OneTime),
        )
        if not self.store.record_use(update):
            return None

        if isinstance(policy, Capped):
            usage_type = f"Use {uses}/{policy.max_uses}"
            if deactivate:
                usage_type += " (limit reached)"
        elif deactivate:
            usage_type = "One-time use"
        else:
            usage_type = "Reusable"
        legacy_note = " (legacy mode)" if caps.legacy else ""
        self.usage_log.try_log(
            record.code,
            USED,
            f"Used by {used_by} - {usage_type}{legacy_note}",
            ip_address=requester_id,
        )

        accepted = replace(
            record,
            used_at=now,
            used_by=used_by,
            is_active=not deactivate,
            current_uses=uses if caps.supports_usage_cap else record.current_uses,
        )
        return ValidationResult(True, VALIDATED, accepted)
