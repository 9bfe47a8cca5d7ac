# accessgate/services/usage_log_service.py
from __future__ import annotations

import logging
from typing import Optional

from accessgate.repositories.code_store import UsageAction, UsageLogEntry, UsageLogSink
from accessgate.utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)

GENERATED = "generated"
USED = "used"
EXPIRED = "expired"
REVOKED = "revoked"


class UsageLogService:
    """Schreibt Audit-Einträge, ohne die eigentliche Aktion zu blockieren."""

    def __init__(self, sink: UsageLogSink, clock: Clock = utcnow):
        self.sink = sink
        self.clock = clock

    def try_log(
        self,
        code: str,
        action: UsageAction,
        details: Optional[str] = None,
        *,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> bool:
        entry = UsageLogEntry(
            code=code.upper(),
            action=action,
            timestamp=self.clock(),
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        try:
            self.sink.append(entry)
            return True
        except Exception as ex:
            logger.exception("Usage-Log fehlgeschlagen (%s %s): %r", action, entry.code, ex)
            return False
