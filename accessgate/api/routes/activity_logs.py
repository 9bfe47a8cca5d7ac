from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query

from accessgate.api.deps import get_services, require_admin
from accessgate.repositories.code_store import LogQuery
from accessgate.schemas.access_code import ActivityLogPageOut, UsageLogOut
from accessgate.services.container import Services

router = APIRouter(prefix="/api/activity-logs", tags=["activity-logs"], dependencies=[Depends(require_admin)])


@router.get("", response_model=ActivityLogPageOut)
def list_activity_logs(
    actions: List[str] = Query(default=[]),
    codes: List[str] = Query(default=[]),
    ip_addresses: List[str] = Query(default=[], alias="ip"),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    search: Optional[str] = Query(default=None, max_length=100),
    sort_order: Literal["asc", "desc"] = Query(default="desc", alias="sortOrder"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=50, ge=1, le=500),
    services: Services = Depends(get_services),
):
    result = services.admin.activity_logs(
        LogQuery(
            actions=actions,
            codes=codes,
            ip_addresses=ip_addresses,
            start=start,
            end=end,
            search=search,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
    )
    return ActivityLogPageOut(
        logs=[UsageLogOut.from_entry(e) for e in result.entries],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
        has_next_page=result.has_next_page,
        has_previous_page=result.has_previous_page,
    )
