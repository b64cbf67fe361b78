# cartsync/services/notification_service.py
from celery.exceptions import CeleryError
from fastapi.concurrency import run_in_threadpool
from kombu.exceptions import KombuError
from redis.exceptions import RedisError

from cartsync.celery_worker import celery_app
from cartsync.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Non-blocking notices to the user ("Added to cart!", "Failed to clear cart").
    Queued through Celery from a worker thread; the request never waits on
    the broker and a notice that cannot be queued is logged, not raised.
    """

    @staticmethod
    async def success(owner_id: str, message: str):
        return await run_in_threadpool(_queue, owner_id, "success", message)

    @staticmethod
    async def error(owner_id: str, message: str):
        return await run_in_threadpool(_queue, owner_id, "error", message)


def _queue(owner_id: str, level: str, message: str):
    try:
        return send_user_notification_task.delay(owner_id, level, message)
    except (CeleryError, KombuError, RedisError, OSError, RuntimeError) as e:
        logger.error(f"Could not queue {level} notice for {owner_id} ({message!r}): {e}")
        return None


@celery_app.task(name="cartsync.services.notification_service.send_user_notification_task")
def send_user_notification_task(owner_id: str, level: str, message: str):
    """
    Delivery to the user's open sessions is the transport's job;
    the task records what was sent.
    """
    if level == "error":
        logger.warning(f"[NOTIFICATION] {owner_id}: {message}")
    else:
        logger.info(f"[NOTIFICATION] {owner_id}: {message}")

    return {"owner_id": owner_id, "level": level, "message": message, "status": "sent"}
