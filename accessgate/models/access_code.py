# accessgate/models/access_code.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Integer, String, func, true
from sqlalchemy.orm import Mapped, mapped_column

from accessgate.db.database import Base

# Optionale Spalten: fehlen in Alt-Datenbanken ohne Migration.
# Nur server_default: Core-Inserts dürfen sie nicht implizit mitschicken.
POLICY_COLUMNS = ("prefix", "auto_expire_on_use")
USAGE_COLUMNS = ("max_uses", "current_uses")


class AccessCode(Base):
    __tablename__ = "access_codes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    code: Mapped[str] = mapped_column(String(8), unique=True, nullable=False, index=True)

    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    used_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    created_by: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, default="admin")

    # Advanced Settings
    prefix: Mapped[Optional[str]] = mapped_column(String(4), nullable=True, index=True)
    auto_expire_on_use: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True, server_default=true())

    # Usage-Tracking
    max_uses: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    current_uses: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
