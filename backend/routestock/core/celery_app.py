"""
Central Celery application object for the RouteStock backend.

Usage
-----
* **Worker**: ``celery -A routestock.core.celery_app worker --loglevel=info``
* **Beat (scheduled jobs)**: ``celery -A routestock.core.celery_app beat --loglevel=info``

The broker/result backend URLs can be overridden via environment variables:

    CELERY_BROKER_URL   (default: redis://localhost:6379/0)
    CELERY_RESULT_BACKEND (default: same as broker)
"""

from __future__ import annotations

import os
from datetime import timedelta

from celery import Celery
from celery.schedules import crontab
from kombu import Exchange, Queue

from routestock.core.config import load_env_files

# Workers do not go through routestock.main, so pick up .env files here too
load_env_files()

# --------------------------------------------------------------------------- #
# Configuration via environment variables                                     #
# --------------------------------------------------------------------------- #

BROKER_URL: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
RESULT_BACKEND: str = os.getenv("CELERY_RESULT_BACKEND", BROKER_URL)
TIMEZONE: str = os.getenv("APP_TIMEZONE", "Asia/Colombo")

# --------------------------------------------------------------------------- #
# Celery application                                                          #
# --------------------------------------------------------------------------- #

celery_app = Celery(
    "routestock",
    broker=BROKER_URL,
    backend=RESULT_BACKEND,
    include=[
        "routestock.services.report_tasks",
    ],
)

# --------------------------------------------------------------------------- #
# Default settings                                                            #
# --------------------------------------------------------------------------- #

celery_app.conf.update(
    # Serialisation
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    # Reliability
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Time
    timezone=TIMEZONE,
    enable_utc=True,
    # Queues / routing
    task_default_queue="default",
    task_default_exchange="default",
    task_default_routing_key="default",
    task_queues=(
        Queue("default", Exchange("default"), routing_key="default"),
        Queue("reports", Exchange("reports"), routing_key="reports"),
    ),
    task_routes={
        "reports.*": {"queue": "reports", "routing_key": "reports"},
    },
    beat_schedule={
        "low-stock-scan": {
            "task": "reports.low_stock_scan",
            "schedule": crontab(minute=0, hour="7-19"),
        },
        "daily-summary": {
            "task": "reports.daily_summary",
            "schedule": crontab(minute=30, hour=21),
        },
    },
    # Result expiry
    result_expires=timedelta(days=1),
)

# --------------------------------------------------------------------------- #
# Helper for FastAPI integration                                              #
# --------------------------------------------------------------------------- #


def init_celery() -> None:  # called from FastAPI startup
    """
    Import all celery tasks so they are registered when the web API
    process (uvicorn) starts and ``.delay`` calls do not fail with
    *NotRegistered*.
    """
    from importlib import import_module

    for module in celery_app.conf.include:
        import_module(module)
