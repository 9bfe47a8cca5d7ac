# accessgate/api/routes/access_codes.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials

from accessgate.api.deps import get_client_ip, get_services, get_settings, is_admin, security
from accessgate.core.config import Settings
from accessgate.core.errors import bad_request, unauthorized, unprocessable
from accessgate.schemas.access_code import (
    AccessCodeActionIn,
    AccessCodeOut,
    AdminOverviewOut,
    GenerateOut,
    UsageLogOut,
    UsageStatisticsOut,
)
from accessgate.services.container import Services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/access-codes", tags=["access-codes"])


# ============================================================
# GET: Admin-Übersicht / Statistik
# ============================================================
@router.get("")
def access_codes_get(
    action: Optional[str] = Query(default=None),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    services: Services = Depends(get_services),
    settings: Settings = Depends(get_settings),
):
    services.cleanup.ensure_cleanup()

    if action not in ("admin", "stats"):
        bad_request("INVALID_ACTION", "Invalid action")
    if not is_admin(credentials, settings):
        unauthorized()

    if action == "stats":
        return UsageStatisticsOut.from_stats(services.admin.statistics())

    overview = services.admin.overview(settings.USAGE_LOG_LIMIT)
    return AdminOverviewOut(
        active_codes=[AccessCodeOut.from_record(r) for r in overview.active_codes],
        total_codes=overview.total_codes,
        usage_logs=[UsageLogOut.from_entry(e) for e in overview.usage_logs],
    )


# ============================================================
# POST: generate / validate / revoke
# ============================================================
@router.post("")
def access_codes_post(
    body: AccessCodeActionIn,
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    services: Services = Depends(get_services),
    settings: Settings = Depends(get_settings),
):
    client_ip = get_client_ip(request)
    services.cleanup.ensure_cleanup()

    if body.action == "generate":
        if not is_admin(credentials, settings):
            unauthorized()

        duration = body.duration if body.duration is not None else settings.DEFAULT_DURATION_MINUTES
        try:
            record = services.generator.generate(
                duration,
                prefix=(body.prefix.strip() if body.prefix and body.prefix.strip() else None),
                auto_expire_on_use=body.auto_expire is not False,
                max_uses=body.max_uses,
            )
        except ValueError as ex:
            unprocessable("INVALID_PARAMETERS", str(ex))

        return GenerateOut.from_record(record, services.store.capabilities.legacy)

    if body.action == "validate":
        # Öffentlich: Einlösen ohne Admin-Token
        if not body.code:
            bad_request("CODE_REQUIRED", "Code is required")

        result = services.validator.validate(body.code, client_ip)
        if result.valid:
            return {"valid": True, "message": result.reason}
        return JSONResponse(status_code=400, content={"valid": False, "error": result.reason})

    if body.action == "revoke":
        if not is_admin(credentials, settings):
            unauthorized()
        if not body.code:
            bad_request("CODE_REQUIRED", "Code is required")

        services.admin.revoke(body.code)
        return {"message": "Code revoked successfully"}

    logger.info("Invalid action received: %r", body.action)
    bad_request("INVALID_ACTION", "Invalid action")
