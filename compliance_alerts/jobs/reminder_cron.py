"""
Reminder Cron Job: daily due-date reminders for open client actions.

Runs as a scheduled job (cron, systemd timer or similar).

Typical cron schedule: 0 7 * * * (daily at 7 AM)
"""

import asyncio
import logging
import os
import traceback
from datetime import date, datetime, timezone
from typing import Any

import httpx
from sqlalchemy.ext.asyncio import async_sessionmaker

from ..core.database import build_engine
from ..services.reminders import ActionReminderEngine
from ..services.transport import MessageTransport, get_transport

logger = logging.getLogger(__name__)


# =============================================================================
# ALERTING
# =============================================================================


async def send_failure_alert(title: str, message: str, details: dict | None = None) -> None:
    """
    Report a crashed job.

    Always logged; additionally posted to ALERT_WEBHOOK_URL (PagerDuty,
    Opsgenie, custom) when configured.
    """
    log_message = f"[CRON ALERT] {title}: {message}"
    if details:
        log_message += f" | Details: {details}"
    logger.critical(log_message)

    webhook_url = os.getenv("ALERT_WEBHOOK_URL")
    if not webhook_url:
        return

    payload = {
        "title": title,
        "message": message,
        "severity": "critical",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "source": "compliance-alerts-cron",
        "details": details or {},
    }
    try:
        async with httpx.AsyncClient() as client:
            await client.post(webhook_url, json=payload, timeout=10)
    except httpx.HTTPError as e:
        logger.error(f"Failed to send webhook alert: {e}")


# =============================================================================
# JOB
# =============================================================================


async def run_reminder_job(
    database_url: str | None = None,
    today: date | None = None,
    transport: MessageTransport | None = None,
    session_factory: async_sessionmaker | None = None,
) -> dict[str, Any]:
    """
    Send all action reminders due today.

    Args:
        database_url: connection string, used when no session_factory is given
        today: reference date (defaults to the current date)
        transport: message transport (defaults to the configured one)
        session_factory: existing session factory, e.g. in tests

    Returns:
        Job result summary
    """
    start_time = datetime.now(timezone.utc)
    logger.info(f"Starting reminder job at {start_time.isoformat()}")

    engine = None
    if session_factory is None:
        engine = build_engine(database_url)
        session_factory = async_sessionmaker(engine, expire_on_commit=False)

    owns_transport = transport is None
    transport = transport or get_transport()

    results: dict[str, Any] = {
        "started_at": start_time.isoformat(),
        "completed_at": None,
        "actions": 0,
        "sent": 0,
        "errors": 0,
    }

    try:
        async with session_factory() as session:
            reminder_engine = ActionReminderEngine(session, transport=transport)
            summary = await reminder_engine.process_due_reminders(today)
            await session.commit()

        results["actions"] = summary.actions
        results["sent"] = summary.sent
        results["errors"] = summary.errors

    except Exception as e:
        logger.exception("Reminder job failed")
        await send_failure_alert(
            title="Reminder Cron Job Failed",
            message="The daily action reminder job crashed unexpectedly.",
            details={
                "error": str(e),
                "traceback": traceback.format_exc()[-500:],
                "started_at": results["started_at"],
            },
        )
        raise

    finally:
        if owns_transport:
            await transport.close()
        if engine is not None:
            await engine.dispose()

    end_time = datetime.now(timezone.utc)
    results["completed_at"] = end_time.isoformat()
    results["duration_seconds"] = (end_time - start_time).total_seconds()

    logger.info(
        f"Reminder job completed in {results['duration_seconds']:.2f}s: "
        f"{results['actions']} action(s), {results['sent']} sent, {results['errors']} failed"
    )
    return results


# =============================================================================
# CLI ENTRY POINT
# =============================================================================


def main():
    """CLI entry point for the reminder job."""
    import argparse

    parser = argparse.ArgumentParser(description="Send due-date reminders for client actions")
    parser.add_argument(
        "--database-url",
        default=None,
        help="Async SQLAlchemy connection string (defaults to DATABASE_URL settings)",
    )
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Reference date in ISO format (defaults to today)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        results = asyncio.run(run_reminder_job(database_url=args.database_url, today=args.date))
        logger.info(f"Job completed: {results}")
    except Exception as e:
        logger.error(f"Job failed: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main()
