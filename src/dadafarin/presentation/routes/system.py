"""Liveness and server-clock diagnostics."""

from __future__ import annotations

import os
import time
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Request

router = APIRouter(tags=["system"])


@router.get("/health")
async def health():
    """Simple liveness / readiness check."""
    return {"status": "ok"}


@router.get("/api/time")
async def server_time(raw_request: Request):
    """Report how the server sees the current time (subscription checks use Iran time)."""
    settings = raw_request.app.state.settings
    local = datetime.now().astimezone()
    return {
        "serverTimezone": local.tzname() or time.tzname[0],
        "serverTime": local.isoformat(),
        "serverTimeUTC": datetime.now(UTC).isoformat(),
        "iranTime": datetime.now(ZoneInfo(settings.timezone)).isoformat(),
        "envTZ": os.environ.get("TZ"),
    }
