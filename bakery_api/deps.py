"""Authorization gate.

Every request yields exactly one ``AuthContext``:

- ``DeveloperOverride``: the Authorization header equals the configured
  developer key. Full access, ownership checks always pass.
- ``SessionIdentity``: the header is a live session token.
- ``Unauthenticated``: anything else.

The token is the raw header value, no ``Bearer`` scheme.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Union

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from .auth import resolve_session, short_id
from .config import Config
from .database import get_db
from .models import PERM_ADMIN, User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeveloperOverride:
    pass


@dataclass(frozen=True)
class SessionIdentity:
    user_id: str
    session_id: str
    perms: int = 0

    @property
    def is_admin(self) -> bool:
        return bool(self.perms & PERM_ADMIN)


@dataclass(frozen=True)
class Unauthenticated:
    pass


AuthContext = Union[DeveloperOverride, SessionIdentity, Unauthenticated]


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=403, detail=detail)


def get_config(request: Request) -> Config:
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is None:
        raise HTTPException(status_code=500, detail="Server configuration missing")
    return cfg


def is_developer_key(cfg: Config, token: Optional[str]) -> bool:
    if not token or not cfg.dev_override_enabled:
        return False
    return secrets.compare_digest(token.encode(), cfg.DEV_AUTH_KEY.encode())


async def authenticate(
    cfg: Config,
    db: AsyncSession,
    token: Optional[str],
    allow_override: bool = True,
) -> AuthContext:
    if allow_override and is_developer_key(cfg, token):
        logger.info("Request authorized via developer override")
        return DeveloperOverride()

    session = await resolve_session(
        db, token or "", window=timedelta(days=cfg.SESSION_EXPIRY_DAYS)
    )
    if session is None:
        return Unauthenticated()

    user = await db.get(User, session.user_id)
    if user is None:
        logger.error(f"Session {short_id(session.id)} references missing user {session.user_id}")
        raise HTTPException(status_code=500, detail="Session references a missing user")
    return SessionIdentity(user_id=user.id, session_id=session.id, perms=user.perms or 0)


async def require_session(
    authorization: Optional[str] = Header(None),
    cfg: Config = Depends(get_config),
    db: AsyncSession = Depends(get_db),
) -> SessionIdentity:
    ctx = await authenticate(cfg, db, authorization, allow_override=False)
    if not isinstance(ctx, SessionIdentity):
        raise _forbidden("Not authenticated")
    return ctx


async def require_session_or_dev(
    authorization: Optional[str] = Header(None),
    cfg: Config = Depends(get_config),
    db: AsyncSession = Depends(get_db),
) -> Union[DeveloperOverride, SessionIdentity]:
    ctx = await authenticate(cfg, db, authorization)
    if isinstance(ctx, Unauthenticated):
        raise _forbidden("Not authenticated")
    return ctx


async def require_admin(
    ctx: Union[DeveloperOverride, SessionIdentity] = Depends(require_session_or_dev),
) -> Union[DeveloperOverride, SessionIdentity]:
    if isinstance(ctx, DeveloperOverride) or ctx.is_admin:
        return ctx
    logger.warning(f"User {ctx.user_id} denied admin-only resource")
    raise _forbidden("Not authorized")


def ensure_owner(ctx: AuthContext, user_id: str) -> None:
    """Reject a session acting on another user's resources."""
    if isinstance(ctx, DeveloperOverride):
        return
    if not isinstance(ctx, SessionIdentity) or ctx.user_id != user_id:
        logger.warning(f"Ownership check failed for user {user_id}")
        raise _forbidden("Not authorized")
