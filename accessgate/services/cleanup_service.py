# accessgate/services/cleanup_service.py
from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Optional

from accessgate.core.errors import StoreError
from accessgate.repositories.code_store import CodeStore
from accessgate.services.usage_log_service import EXPIRED, UsageLogService
from accessgate.utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)


class CleanupService:
    """Deaktiviert abgelaufene Codes; wird vom Aufrufer (Request, Cron) ausgelöst."""

    def __init__(
        self,
        store: CodeStore,
        usage_log: UsageLogService,
        *,
        clock: Clock = utcnow,
        interval_seconds: int = 60,
    ):
        self.store = store
        self.usage_log = usage_log
        self.clock = clock
        self.interval = timedelta(seconds=interval_seconds)
        self._last_run: Optional[datetime] = None
        self._lock = threading.Lock()

    def sweep(self) -> int:
        expired = self.store.deactivate_expired(self.clock())
        for code in expired:
            self.usage_log.try_log(code, EXPIRED, "Automatically expired by cleanup")
        if expired:
            logger.info("Cleanup: %d access code(s) expired", len(expired))
        return len(expired)

    def ensure_cleanup(self) -> Optional[int]:
        """Gedrosselter Sweep vor Requests; Fehler blockieren den Request nicht."""
        now = self.clock()
        with self._lock:
            if self._last_run is not None and now - self._last_run < self.interval:
                return None
            self._last_run = now
        try:
            return self.sweep()
        except StoreError as ex:
            logger.error("Cleanup fehlgeschlagen: %s", ex)
            return None
