# accessgate/services/code_generator.py
from __future__ import annotations

import logging
import re
import secrets
import string
from datetime import timedelta
from typing import Optional

from accessgate.core.errors import CodeGenerationError, DuplicateCodeError, SchemaMismatchError, StoreError
from accessgate.core.policy import describe_policy, effective_policy, policy_from_options
from accessgate.repositories.code_store import AccessCodeRecord, CodeStore
from accessgate.services.usage_log_service import GENERATED, UsageLogService
from accessgate.utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)

CODE_LENGTH = 8
PREFIX_MAX_LENGTH = 4
CODE_ALPHABET = string.ascii_uppercase + string.digits  # 36 Zeichen

_NON_ALNUM = re.compile(r"[^A-Z0-9]")


def sanitize_prefix(prefix: Optional[str]) -> Optional[str]:
    """Großbuchstaben, nur A-Z/0-9, max. 4 Zeichen; leer -> None."""
    if not prefix:
        return None
    clean = _NON_ALNUM.sub("", prefix.upper())[:PREFIX_MAX_LENGTH]
    return clean or None


def generate_secure_code(prefix: Optional[str] = None) -> str:
    """Präfix + kryptografisch zufällige Zeichen, insgesamt immer 8 Stellen."""
    head = sanitize_prefix(prefix) or ""
    tail = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH - len(head)))
    return head + tail


class CodeGenerator:
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

    def generate(
        self,
        duration_minutes: int,
        prefix: Optional[str] = None,
        auto_expire_on_use: bool = True,
        max_uses: Optional[int] = None,
        *,
        created_by: str = "admin",
    ) -> AccessCodeRecord:
        if duration_minutes is None or duration_minutes <= 0:
            raise ValueError("duration_minutes must be > 0")
        if max_uses is not None and max_uses < 1:
            raise ValueError("max_uses must be >= 1")

        clean_prefix = sanitize_prefix(prefix)
        requested = policy_from_options(auto_expire_on_use, max_uses)

        saved: Optional[AccessCodeRecord] = None
        schema_retry_done = False
        attempts = 0
        while saved is None:
            attempts += 1
            now = self.clock()
            record = AccessCodeRecord(
                code=generate_secure_code(clean_prefix),
                created_at=now,
                expires_at=now + timedelta(minutes=duration_minutes),
                duration_minutes=duration_minutes,
                created_by=created_by,
                prefix=clean_prefix,
                policy=effective_policy(requested, self.store.capabilities),
            )
            try:
                saved = self.store.insert(record)
            except DuplicateCodeError:
                logger.warning("Code-Kollision bei %s (Versuch %d/%d)", record.code, attempts, self.max_attempts)
                if attempts >= self.max_attempts:
                    raise CodeGenerationError("Failed to generate a unique access code")
            except SchemaMismatchError as ex:
                # Schema-Drift: Spalten neu ermitteln und genau einmal ohne sie versuchen
                if schema_retry_done:
                    raise CodeGenerationError(f"Failed to generate access code: {ex}") from ex
                schema_retry_done = True
                logger.warning("Optionale Spalten fehlen, wechsle in Legacy-Modus: %s", ex)
                try:
                    self.store.refresh_capabilities()
                except StoreError as refresh_ex:
                    raise CodeGenerationError(f"Failed to generate access code: {refresh_ex}") from refresh_ex
                attempts -= 1
            except StoreError as ex:
                raise CodeGenerationError(f"Failed to generate access code: {ex}") from ex

        caps = self.store.capabilities
        settings_info = []
        if saved.prefix:
            settings_info.append(f"prefix: {saved.prefix}")
        settings_info.append(describe_policy(saved.policy))
        if caps.legacy:
            settings_info.append("legacy mode")
        self.usage_log.try_log(
            saved.code,
            GENERATED,
            f"Expires in {duration_minutes} minutes ({', '.join(settings_info)})",
        )
        logger.info("Access code %s generated (%s)", saved.code, describe_policy(saved.policy))
        return saved
