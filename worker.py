"""
Dramatiq Background Worker
Runs scheduled HubSpot pulls asynchronously

Usage:
    dramatiq worker -p 1 -t 1

Enqueue a pull:
    from hubsync.services.jobs.tasks import pull_hubspot_task
    pull_hubspot_task.send()

One process / thread keeps pulls for the same accounts from overlapping.
"""
import logging

from hubsync.core.config import settings
from hubsync.core.logging import configure_logging, init_sentry

configure_logging(settings.environment)
logger = logging.getLogger(__name__)

init_sentry(settings.sentry_dsn, settings.environment)

# Import tasks (this registers them with Dramatiq)
try:
    from hubsync.services.jobs.broker import broker  # noqa: F401
    from hubsync.services.jobs.tasks import pull_hubspot_task  # noqa: F401

    logger.info("✅ HubSync worker initialized")
    logger.info("📋 Registered tasks: pull_hubspot_task")

except Exception as e:
    logger.error(f"❌ Failed to initialize worker: {e}", exc_info=True)
    raise

# This module is imported by Dramatiq CLI
# Dramatiq will find the broker and tasks automatically
