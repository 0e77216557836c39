"""
Logging setup and operation timing
Shared by main.py (one-shot run) and worker.py (Dramatiq)
"""
import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(environment: str = "production") -> None:
    logging.basicConfig(
        level=logging.INFO if environment == "production" else logging.DEBUG,
        format=LOG_FORMAT
    )


def init_sentry(dsn: Optional[str], environment: str = "production") -> bool:
    """
    Initialize Sentry error tracking (if configured).

    Returns:
        True if Sentry was initialized
    """
    if not dsn:
        logger.info("ℹ️  Sentry not configured (SENTRY_DSN not set)")
        return False

    try:
        import sentry_sdk
        from sentry_sdk.integrations.logging import LoggingIntegration

        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            traces_sample_rate=0.1,
            integrations=[
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)
            ]
        )
        logger.info("✅ Sentry initialized")
        return True
    except Exception as e:
        logger.warning(f"⚠️  Failed to initialize Sentry: {e}")
        return False


# ============================================================================
# OPERATION TIMING
# ============================================================================

def log_start(operation: str) -> float:
    """Log the start of an operation and return its start time."""
    start = time.time()
    logger.info(f"start processing {operation}", extra={"operation": operation})
    return start


def format_duration(total_seconds: float) -> str:
    """Render a duration as m:ss."""
    minutes = int(total_seconds // 60)
    seconds = int(round(total_seconds % 60))
    if seconds == 60:
        minutes, seconds = minutes + 1, 0
    return f"{minutes}:{seconds:02d}"


def log_finish(operation: str, start: float) -> float:
    """Log the end of an operation with its duration; returns elapsed seconds."""
    elapsed = time.time() - start
    logger.info(
        f"finish processing {operation} in {format_duration(elapsed)} minutes",
        extra={"operation": operation, "duration_ms": round(elapsed * 1000, 2)}
    )
    return elapsed
