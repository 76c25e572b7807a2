"""Credential hashing and the session store.

Sessions are opaque uuid tokens stored server side. A user holds at most one
session; opening a new one removes the previous. A session is valid for a
fixed window after its creation date and every successful resolution bumps
its last-active date.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from passlib.hash import hex_sha256
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from .models import User, UserSession

logger = logging.getLogger(__name__)

DEFAULT_SESSION_WINDOW = timedelta(days=3)


def utcnow() -> datetime:
    # naive UTC, matching what the DateTime columns store
    return datetime.now(timezone.utc).replace(tzinfo=None)


def short_id(token: str) -> str:
    return (token or "")[:8]


def hash_secret(secret: str) -> str:
    """Lowercase hex SHA-256 of ``secret``."""
    return hex_sha256.hash(secret)


def new_salt() -> str:
    return str(uuid.uuid4())


def hash_password(password: str, salt: str) -> str:
    return hash_secret(password + salt)


def verify_password(password: str, salt: str, digest: str) -> bool:
    if not digest:
        return False
    return hex_sha256.verify(password + salt, digest)


async def get_session(db: AsyncSession, token: str) -> Optional[UserSession]:
    if not token:
        return None
    return await db.get(UserSession, token)


async def list_sessions(db: AsyncSession) -> List[UserSession]:
    result = await db.execute(select(UserSession).order_by(UserSession.creation_date))
    return result.scalars().all()


async def open_session(
    db: AsyncSession, user: User, now: Optional[datetime] = None
) -> UserSession:
    """Create a fresh session for ``user``, replacing any existing one."""
    now = now or utcnow()
    result = await db.execute(select(UserSession).where(UserSession.user_id == user.id))
    previous = result.scalars().first()
    if previous is not None:
        await db.delete(previous)
        # user_id is unique: the old row must be gone before the insert
        await db.flush()
        logger.info(f"Replaced session {short_id(previous.id)} for user {user.id}")

    session = UserSession(
        id=str(uuid.uuid4()),
        user_id=user.id,
        creation_date=now,
        last_active_date=now,
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)
    logger.info(f"Opened session {short_id(session.id)} for user {user.id}")
    return session


async def close_session(db: AsyncSession, session: UserSession) -> None:
    await db.delete(session)
    await db.commit()
    logger.info(f"Closed session {short_id(session.id)}")


async def resolve_session(
    db: AsyncSession,
    token: str,
    window: timedelta = DEFAULT_SESSION_WINDOW,
    now: Optional[datetime] = None,
) -> Optional[UserSession]:
    """Return the live session for ``token`` or None.

    Not read-only: a live session has its last-active date bumped, an
    expired one is deleted. The window boundary is inclusive.
    """
    session = await get_session(db, token)
    if session is None:
        return None

    now = now or utcnow()
    age = now - session.creation_date
    try:
        if age <= window:
            session.last_active_date = now
            await db.commit()
            return session

        await db.delete(session)
        await db.commit()
    except StaleDataError:
        # row removed by a concurrent request
        await db.rollback()
        return None

    logger.info(f"Session {short_id(token)} expired after {age}, deleted")
    return None


def purge_expired_sessions(
    db: Session, window: timedelta = DEFAULT_SESSION_WINDOW, now: Optional[datetime] = None
) -> int:
    """Bulk delete every session older than ``window``. Sync, for Celery."""
    cutoff = (now or utcnow()) - window
    result = db.execute(delete(UserSession).where(UserSession.creation_date < cutoff))
    db.commit()
    return result.rowcount or 0
