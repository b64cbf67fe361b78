# cartsync/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./cartsync.db")
REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
CHANGE_FEED_BACKEND = os.getenv("CHANGE_FEED_BACKEND", "redis")  # redis | memory
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://redis:6379/1")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "redis://redis:6379/2")
CELERY_TASK_ALWAYS_EAGER = os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower() == "true"
FEATURED_PRODUCTS_LIMIT = int(os.getenv("FEATURED_PRODUCTS_LIMIT", 4))
SEED_PRODUCTS = os.getenv("SEED_PRODUCTS", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CURRENCY = os.getenv("CURRENCY", "KES")
PAYMENT_METHOD = os.getenv("PAYMENT_METHOD", "cash_on_delivery")
