"""
api/middleware.py

Guards for the plugin server.

1.  API-Key Authentication  (FastAPI Depends)
    ─────────────────────────────────────────
    /configure, /stop and every remote-operation endpoint require the
    X-API-Key header. Key is set via API_KEY env var.  If unset → 503.

2.  Ops Audit Log
    ─────────────────────────────────────────────────
    Every guarded call appends to the audit log (AUDIT_LOG, default
    audit.log):
        2026-02-27T12:34:56Z  CREATE  1.2.3.4  azurerm_mysql_server
    Credentials and resource configs are never written.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import APIKeyHeader

_API_KEY:   Optional[str] = os.getenv("API_KEY")
_AUDIT_LOG: str           = os.getenv("AUDIT_LOG", "audit.log")

# ─────────────────────────────────────────────────────────────────────────────
# Audit logger
# ─────────────────────────────────────────────────────────────────────────────

_audit_logger = logging.getLogger("azurerm.audit")
_audit_logger.setLevel(logging.INFO)
_audit_logger.propagate = False
_audit_handler = logging.FileHandler(_AUDIT_LOG, encoding="utf-8", delay=True)
_audit_handler.setFormatter(logging.Formatter("%(message)s"))
_audit_logger.addHandler(_audit_handler)


def write_audit(operation: str, ip: str, extra: str = "") -> None:
    """Append one line to the audit log: timestamp  OPERATION  ip  [extra]."""
    ts    = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    parts = [ts, operation.upper(), ip]
    if extra:
        parts.append(extra)
    _audit_logger.info("  ".join(parts))


# ─────────────────────────────────────────────────────────────────────────────
# API-key authentication  (FastAPI Depends)
# ─────────────────────────────────────────────────────────────────────────────

_api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def require_api_key(
    request: Request,
    key: Optional[str] = Depends(_api_key_header),
) -> None:
    """
    FastAPI dependency for all guarded endpoints.

    - API_KEY not set        → 503  (operator must configure first)
    - Header missing / wrong → 401
    """
    if _API_KEY is None:
        raise HTTPException(
            status_code=503,
            detail="The server operator must set the API_KEY environment variable.",
        )

    if key != _API_KEY:
        write_audit("AUTH_FAIL", _get_client_ip(request), request.url.path)
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API key. Set it in the X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )


# ─────────────────────────────────────────────────────────────────────────────
# Shared helper
# ─────────────────────────────────────────────────────────────────────────────

def _get_client_ip(request: Request) -> str:
    fwd = request.headers.get("X-Forwarded-For")
    if fwd:
        return fwd.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
