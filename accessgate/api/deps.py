# accessgate/api/deps.py
from __future__ import annotations

import ipaddress
import logging
import secrets
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from accessgate.core.config import Settings
from accessgate.core.errors import unauthorized
from accessgate.services.container import Services

logger = logging.getLogger(__name__)

# ----------------------------------------------------------
# Security
# ----------------------------------------------------------
security = HTTPBearer(auto_error=False)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# ----------------------------------------------------------
# Helper
# ----------------------------------------------------------
def _parse_ip(value: Optional[str]) -> Optional[str]:
    """Nur gültige IPv4/IPv6-Adressen; alles andere aus Headern wird verworfen."""
    if not value:
        return None
    try:
        return str(ipaddress.ip_address(value.strip()))
    except ValueError:
        return None


def get_client_ip(request: Request) -> str:
    xff = request.headers.get("x-forwarded-for")
    if xff:
        ip = _parse_ip(xff.split(",")[0])
        if ip:
            return ip
    ip = _parse_ip(request.headers.get("x-real-ip"))
    if ip:
        return ip
    if request.client and request.client.host:
        return str(request.client.host)
    return "unknown"


def is_admin(credentials: Optional[HTTPAuthorizationCredentials], settings: Settings) -> bool:
    expected = settings.ADMIN_TOKEN
    if not expected:
        return False
    if not credentials or credentials.scheme.lower() != "bearer":
        return False
    return secrets.compare_digest(credentials.credentials.encode("utf-8"), expected.encode("utf-8"))


# ----------------------------------------------------------
# Statisches Admin-Token (Bearer)
# ----------------------------------------------------------
def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    settings: Settings = Depends(get_settings),
) -> None:
    if not is_admin(credentials, settings):
        if not settings.ADMIN_TOKEN:
            logger.warning("Admin request refused: ADMIN_TOKEN is not configured")
        unauthorized()
