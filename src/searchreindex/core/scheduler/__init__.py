"""Scheduler service - APScheduler integration."""

from .locks import LockManager, lock_name_for
from .service import SchedulerService, execute_scheduled_reindex, sync_config_schedules

__all__ = [
    "LockManager",
    "lock_name_for",
    "SchedulerService",
    "execute_scheduled_reindex",
    "sync_config_schedules",
]
