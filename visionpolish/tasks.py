from celery import Celery
from . import models
from .config import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, ENVIRONMENT
from .database import SessionLocal
from .logger import logger

broker_url = CELERY_BROKER_URL
backend_url = CELERY_RESULT_BACKEND

# For rediss:// URLs, add the required SSL parameter that Celery expects
if broker_url.startswith('rediss://'):
    broker_url = broker_url + ('&' if '?' in broker_url else '?') + 'ssl_cert_reqs=none'

if backend_url.startswith('rediss://'):
    backend_url = backend_url + ('&' if '?' in backend_url else '?') + 'ssl_cert_reqs=none'

logger.info(f"Initializing Celery with environment: {ENVIRONMENT}")

celery = Celery(
    __name__,
    broker=broker_url,
    backend=backend_url,
)

celery.conf.update(
    task_serializer='json',
    result_serializer='json',
    accept_content=['json'],
    result_expires=3600,
    task_ignore_result=True,
    task_acks_late=True,
    broker_connection_retry_on_startup=True,
)

@celery.task(name='visionpolish.tasks.sync_profile', acks_late=True)
def sync_profile(user_id: str, full_name: str, role: str):
    """
    Persist a fallback profile after the request that needed it has answered.
    An existing row is left alone so a real role is never overwritten by a guess.
    """
    db = SessionLocal()
    try:
        existing = db.query(models.Profile).filter(models.Profile.id == user_id).first()
        if existing:
            logger.info(f"Profile sync skipped for {user_id}: row already exists")
            return
        db.add(models.Profile(id=user_id, full_name=full_name, role=role, is_active=True))
        db.commit()
        logger.info(f"Profile synced to database in background for {user_id}")
    except Exception as e:
        db.rollback()
        logger.warning(f"Background profile sync failed for {user_id}: {e}")
    finally:
        db.close()
