"""Send today's verse to every opted-in device.

Intended for cron or a scheduler job that does not go through the HTTP task
endpoint. Exits non-zero when no push channel is configured.
"""

from __future__ import annotations

import argparse
import asyncio
import datetime
import logging
import os
import sys

# Add the project root to the path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
  parser = argparse.ArgumentParser(description="Send the daily verse broadcast.")
  parser.add_argument("--date", type=datetime.date.fromisoformat, default=None, help="Override the broadcast date (YYYY-MM-DD).")
  return parser.parse_args(argv)


async def run_broadcast(*, today: datetime.date | None = None) -> int:
  """Initialize channels, run one broadcast, and release resources."""
  # Import after path setup so the script works when run directly.
  from app.config import get_settings
  from app.core.database import dispose_db_engine
  from app.core.firebase import delete_firebase_app, initialize_firebase_app
  from app.core.logging import _initialize_logging
  from app.notifications.factory import build_notification_dispatcher

  settings = get_settings()
  _initialize_logging(settings)
  logger = logging.getLogger("scripts.send_daily_broadcast")

  firebase_app = initialize_firebase_app(settings)
  try:
    dispatcher = build_notification_dispatcher(settings, firebase_app=firebase_app)
    if not dispatcher.web_sender.enabled and not dispatcher.native_sender.enabled:
      logger.error("No push channel is configured; nothing to send.")
      return 1

    result = await dispatcher.send_daily_broadcast(today=today)
    logger.info("Daily broadcast finished sent=%s failed=%s", result.sent, result.failed)
    return 0
  finally:
    delete_firebase_app(firebase_app)
    await dispose_db_engine()


def main(argv: list[str] | None = None) -> int:
  args = _parse_args(argv)
  return asyncio.run(run_broadcast(today=args.date))


if __name__ == "__main__":
  raise SystemExit(main())
