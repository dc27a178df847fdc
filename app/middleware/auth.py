"""
API key authentication — the capability check in front of the engine.

Two scopes:
  - ingest (cl_ing_...) — may only submit conversions (partner postbacks, shop backends)
  - admin  (cl_adm_...) — analytics reads, campaign and conversion lifecycle

Key rules:
  - Keys are hashed (SHA-256) in the database — plaintext is never stored
  - Admin keys satisfy ingest-only endpoints too
  - Services and core never see auth state; routes depend on these checks
"""

import hashlib
import secrets
from dataclasses import dataclass
from uuid import UUID, uuid4

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import APIKeyHeader
from sqlalchemy import Boolean, Column, DateTime, String, func, select
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.database import get_db
from app.models.tables import Base

import structlog

logger = structlog.get_logger()

SCOPE_ADMIN = "admin"
SCOPE_INGEST = "ingest"
_PREFIXES = {SCOPE_ADMIN: "cl_adm_", SCOPE_INGEST: "cl_ing_"}


# ─── Database model ────────────────────────────────────────────────

class APIKey(Base):
    """Hashed API keys with a capability scope."""
    __tablename__ = "api_keys"

    id = Column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    key_hash = Column(String(64), nullable=False, unique=True, index=True)  # SHA-256 hex
    key_prefix = Column(String(12), nullable=False)  # e.g. "cl_adm_a3f8" for identification
    scope = Column(String(20), nullable=False)  # "admin" or "ingest"
    name = Column(String(255), nullable=True)  # human label ("Dashboard", "Shop postback")
    is_active = Column(Boolean, default=True)
    last_used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


# ─── Key generation ────────────────────────────────────────────────

def hash_key(raw_key: str) -> str:
    """SHA-256 hash of the raw API key."""
    return hashlib.sha256(raw_key.encode()).hexdigest()


def generate_api_key(scope: str = SCOPE_ADMIN) -> tuple[str, str]:
    """Generate a new API key.

    Returns (raw_key, key_hash).
    The raw_key is shown to the operator ONCE. Only the hash is stored.
    """
    if scope not in _PREFIXES:
        raise ValueError(f"Unknown API key scope: {scope!r}")
    raw_key = f"{_PREFIXES[scope]}{secrets.token_urlsafe(32)}"
    return raw_key, hash_key(raw_key)


# ─── Auth dependencies ─────────────────────────────────────────────

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


@dataclass
class AuthContext:
    """Resolved capability for the current request."""
    key_id: UUID
    scope: str

    @property
    def is_admin(self) -> bool:
        return self.scope == SCOPE_ADMIN


async def _resolve_key(raw_key: str | None, db: AsyncSession) -> AuthContext:
    if not raw_key:
        raise HTTPException(
            status_code=401,
            detail="Missing API key. Include X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    result = await db.execute(
        select(APIKey).where(APIKey.key_hash == hash_key(raw_key), APIKey.is_active.is_(True))
    )
    api_key = result.scalar_one_or_none()

    if not api_key:
        raise HTTPException(
            status_code=401,
            detail="Invalid API key.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    api_key.last_used_at = func.now()
    await db.commit()

    return AuthContext(key_id=api_key.id, scope=api_key.scope)


async def require_ingest_key(
    request: Request,
    api_key: str | None = Security(api_key_header),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Any valid key. Postback networks may pass it as ?key= instead of a header."""
    if not api_key:
        api_key = request.query_params.get("key")
    return await _resolve_key(api_key, db)


async def require_admin_key(
    api_key: str | None = Security(api_key_header),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """Admin scope only. Header only — admin keys never travel in URLs."""
    auth = await _resolve_key(api_key, db)
    if not auth.is_admin:
        logger.warning("admin_scope_denied", key_id=str(auth.key_id))
        raise HTTPException(
            status_code=403,
            detail="This endpoint requires an admin key (cl_adm_...).",
        )
    return auth
