# Celery app + static beat schedule (replaces the external cron triggers)

from celery import Celery
from kombu import Exchange, Queue
from app.core.config import settings
from app.core.logging import configure_logging

configure_logging()


'''
Celery application
   - Beat: 1 instance
   - Worker: ml_sync (slow marketplace I/O) and ml_queue (claims drain) can scale apart
'''
celery_app = Celery(
    "marketplace_sync_hub",
    broker=settings.CELERY_BROKER_URL,          # queue (Redis)
    backend=settings.CELERY_RESULT_BACKEND,     # results (Redis)
    include=[
        # modules whose tasks register at worker start
        "app.orchestration.ml_sync.auto_sync",                      # orders / claims incremental sync
        "app.orchestration.ml_sync.cache_purge",                    # expired cache cleanup
        "app.orchestration.claims_queue.process_claims_queue",      # claims detail queue drain
    ],
)


'''
  Common Celery settings
'''
celery_app.conf.update(
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=True,                             # stored as UTC internally
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_track_started=True,
    broker_connection_retry_on_startup=True,
    # === fault tolerance ===
    worker_prefetch_multiplier=1,    # one task at a time per worker process
    task_acks_late=True,             # a crashed worker's task goes back to the queue
    broker_heartbeat=30,
    broker_pool_limit=10,
)



'''
Queues per workload
   - ml_sync: marketplace API paging, slow I/O
   - ml_queue: claims detail drain, one item at a time
'''
celery_app.conf.task_queues = (
    Queue("default", Exchange("default"), routing_key="default"),
    Queue("ml_sync", Exchange("ml_sync"), routing_key="ml_sync"),
    Queue("ml_queue", Exchange("ml_queue"), routing_key="ml_queue"),
)


celery_app.conf.task_routes = {
    "app.orchestration.ml_sync.ml_orders_auto_sync": {"queue": "ml_sync"},
    "app.orchestration.ml_sync.ml_claims_auto_sync": {"queue": "ml_sync"},
    "app.orchestration.ml_sync.purge_expired_cache": {"queue": "default"},
    "app.orchestration.claims_queue.process_claims_queue": {"queue": "ml_queue"},
}



# static schedule (seconds)
celery_app.conf.beat_schedule = {

    "ml-orders-auto-sync": {
        "task": "app.orchestration.ml_sync.ml_orders_auto_sync",
        "schedule": settings.CRON_ORDERS_SYNC_SEC,
    },

    "ml-claims-auto-sync": {
        "task": "app.orchestration.ml_sync.ml_claims_auto_sync",
        "schedule": settings.CRON_CLAIMS_SYNC_SEC,
    },

    "process-claims-queue": {
        "task": "app.orchestration.claims_queue.process_claims_queue",
        "schedule": settings.CRON_CLAIMS_QUEUE_SEC,
    },

    "purge-expired-cache": {
        "task": "app.orchestration.ml_sync.purge_expired_cache",
        "schedule": settings.CRON_CACHE_PURGE_SEC,
    },
}
