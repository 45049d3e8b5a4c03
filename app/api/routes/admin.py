"""Admin API endpoints.

Password check and database diagnostics. Every endpoint except ``/auth``
requires the admin password in ``x-admin-password``.
"""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel

from app.api.dependencies import get_gate, get_storage
from app.services.authorization import IngestionGate
from app.storage import Storage

router = APIRouter(prefix="/api/admin", tags=["admin"])
logger = structlog.get_logger(__name__)


class AuthRequest(BaseModel):
    password: str | None = None


class AuthResponse(BaseModel):
    success: bool
    message: str


class TableInfo(BaseModel):
    name: str
    row_count: int


class DatabaseInfoResponse(BaseModel):
    """Storage diagnostics."""

    database_type: str
    database_name: str | None = None
    connection_status: str
    tables: list[TableInfo]
    error: str | None = None


@router.post("/auth", response_model=AuthResponse)
async def validate_password(
    body: AuthRequest,
    gate: IngestionGate = Depends(get_gate),
) -> AuthResponse:
    """Validate an admin password."""
    gate.authorize_admin(body.password)
    return AuthResponse(success=True, message="Password validated")


@router.get("/database", response_model=DatabaseInfoResponse)
async def database_info(
    x_admin_password: str | None = Header(default=None),
    gate: IngestionGate = Depends(get_gate),
    storage: Storage = Depends(get_storage),
) -> dict[str, Any]:
    """Backend type, connection status and per-table row counts."""
    gate.authorize_admin(x_admin_password)
    info = await storage.describe()
    logger.info(
        "database_described",
        backend=info["database_type"],
        status=info["connection_status"],
    )
    return info
