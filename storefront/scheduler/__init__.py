"""Scheduler module for background tasks."""

from storefront.scheduler.token_cleanup_scheduler import (
    get_scheduler_status,
    shutdown_scheduler,
    start_scheduler,
)

__all__ = [
    "start_scheduler",
    "shutdown_scheduler",
    "get_scheduler_status",
]
