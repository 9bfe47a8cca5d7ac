# accessgate/services/container.py
from __future__ import annotations

from dataclasses import dataclass

from accessgate.core.config import Settings
from accessgate.repositories.code_store import CodeStore, UsageLogSink
from accessgate.services.cleanup_service import CleanupService
from accessgate.services.code_admin_service import CodeAdminService
from accessgate.services.code_generator import CodeGenerator
from accessgate.services.code_validator import CodeValidator
from accessgate.services.usage_log_service import UsageLogService
from accessgate.utils.time_utils import Clock, utcnow


@dataclass
class Services:
    store: CodeStore
    generator: CodeGenerator
    validator: CodeValidator
    admin: CodeAdminService
    cleanup: CleanupService


def build_services(
    store: CodeStore,
    sink: UsageLogSink,
    settings: Settings,
    clock: Clock = utcnow,
) -> Services:
    """Verdrahtet alle Services mit demselben Store / Log-Sink / Clock."""
    usage_log = UsageLogService(sink, clock=clock)
    return Services(
        store=store,
        generator=CodeGenerator(
            store, usage_log, clock=clock, max_attempts=settings.CODE_GENERATION_ATTEMPTS
        ),
        validator=CodeValidator(store, usage_log, clock=clock),
        admin=CodeAdminService(store, sink, usage_log, clock=clock),
        cleanup=CleanupService(
            store, usage_log, clock=clock, interval_seconds=settings.CLEANUP_INTERVAL_SECONDS
        ),
    )
