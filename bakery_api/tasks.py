from datetime import timedelta
from sqlalchemy.orm import Session
import logging

from .auth import purge_expired_sessions as purge_sessions, utcnow
from .celery_app import celery_app, cfg
from .database import get_db_sync

logger = logging.getLogger('celery')


@celery_app.task(name='tasks.purge_expired_sessions')
def purge_expired_sessions():
    logger.info("Starting purge_expired_sessions task")
    db: Session = next(get_db_sync())
    try:
        now = utcnow()
        window = timedelta(days=cfg.SESSION_EXPIRY_DAYS)
        purged = purge_sessions(db, window=window, now=now)
        logger.info(f"Purged {purged} expired sessions")
        return {"purged": purged, "cutoff": (now - window).isoformat()}
    except Exception as e:
        logger.error(f"Task failed: {str(e)}")
        raise Exception(f"Failed to purge expired sessions: {str(e)}")
    finally:
        db.close()
