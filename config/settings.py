"""
POS – Django Settings (Infrastructure Only)
============================================
Django serves as the framework container for the order lifecycle
core: ORM persistence (core.orders_store), settings and logging.
The engine itself is storage-agnostic and never imports Django
except through load_order_config().
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("POS_SECRET_KEY", "pos-dev-key-replace-before-deployment")

DEBUG = os.environ.get("POS_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    # ── POS Modules ───────────────────────────────────────
    "core.orders_store",
]

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Production DB configured separately.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("POS_DB_PATH", BASE_DIR / "db.sqlite3"),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Order Lifecycle ───────────────────────────────────────────
# Overrides for engines.orders.config.OrderLifecycleConfig.
# Amounts are integer minor units.
ORDER_LIFECYCLE = {
    "approval_threshold": 1_000_000,
    "approval_steps": [("MANAGER", 1_000_000), ("OWNER", 5_000_000)],
    "default_net_days": 30,
    "recurring_order_timeout_seconds": 30.0,
    "max_conflict_retries": 3,
}

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "pos": {
            "handlers": ["console"],
            "level": os.environ.get("POS_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}
