"""
HubSync - HubSpot incremental pull
==================================

One-shot entry point: pulls companies, contacts and meetings for every
configured HubSpot account and delivers them as actions.

Usage:
    python main.py

Exit codes:
    0 - run completed (individual account / entity failures are logged)
    1 - no accounts to sync, or a fatal startup error
"""
import asyncio
import sys
import logging
import traceback

# Startup error handling
try:
    from hubsync.core.config import settings
    from hubsync.core.exceptions import NoAccountsError
    from hubsync.core.logging import configure_logging, init_sentry
    from hubsync.services.jobs.tasks import pull_data_from_hubspot
except Exception as e:
    print(f"🚨 FATAL STARTUP ERROR: {e}", file=sys.stderr)
    print(f"Traceback:\n{traceback.format_exc()}", file=sys.stderr)
    sys.exit(1)

configure_logging(settings.environment)
logger = logging.getLogger(__name__)


def main() -> int:
    init_sentry(settings.sentry_dsn, settings.environment)
    logger.info(f"🚀 HubSync starting (environment: {settings.environment})")

    try:
        summaries = asyncio.run(pull_data_from_hubspot())
    except NoAccountsError as e:
        logger.error(f"❌ {e}")
        return 1

    for summary in summaries:
        logger.info(
            f"account {summary.account_id}: {summary.status}, {summary.actions_enqueued} actions"
            + (f" ({'; '.join(summary.errors)})" if summary.errors else "")
        )
    logger.info("✅ HubSync finished")
    return 0


if __name__ == "__main__":
    sys.exit(main())
