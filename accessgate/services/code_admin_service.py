from __future__ import annotations

import logging
from dataclasses import dataclass

from accessgate.repositories.code_store import (
    AccessCodeRecord,
    CodeStore,
    LogPage,
    LogQuery,
    UsageLogEntry,
    UsageLogSink,
    UsageStatistics,
)
from accessgate.services.usage_log_service import REVOKED, UsageLogService
from accessgate.utils.time_utils import Clock, utcnow

logger = logging.getLogger(__name__)


@dataclass
class AdminOverview:
    active_codes: list[AccessCodeRecord]
    total_codes: int
    usage_logs: list[UsageLogEntry]


class CodeAdminService:
    def __init__(
        self,
        store: CodeStore,
        sink: UsageLogSink,
        usage_log: UsageLogService,
        *,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.sink = sink
        self.usage_log = usage_log
        self.clock = clock

    def revoke(self, code: str) -> None:
        """
        Setzt is_active=False, unabhängig vom Nutzungsstand.
        Jeder Aufruf erzeugt einen 'revoked'-Eintrag, auch bei bereits inaktiven Codes.
        """
        normalized = code.strip().upper()
        changed = self.store.deactivate(normalized)
        if not changed:
            logger.info("Revoke on inactive or unknown code %s", normalized)
        self.usage_log.try_log(normalized, REVOKED, "Manually revoked by admin")

    def overview(self, log_limit: int = 50) -> AdminOverview:
        return AdminOverview(
            active_codes=self.store.list_active(),
            total_codes=self.store.count_all(),
            usage_logs=self.sink.recent(log_limit),
        )

    def statistics(self) -> UsageStatistics:
        return self.store.usage_statistics(self.clock())

    def activity_logs(self, query: LogQuery) -> LogPage:
        return self.sink.query(query)
