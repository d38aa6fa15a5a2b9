import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import get_settings
from app.core.database import dispose_db_engine
from app.core.firebase import delete_firebase_app, initialize_firebase_app
from app.core.logging import _initialize_logging
from app.notifications.factory import build_notification_dispatcher


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Initialize logging and the push channels once per process."""
  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  _initialize_logging(settings)
  logger.info("Starting Gospel Era push service environment=%s", settings.environment)

  # Provider credentials are parsed here, not at import time, so tests can inject fakes.
  firebase_app = initialize_firebase_app(settings)
  dispatcher = build_notification_dispatcher(settings, firebase_app=firebase_app)
  app.state.dispatcher = dispatcher
  logger.info("Push channels ready web=%s native=%s", dispatcher.web_sender.enabled, dispatcher.native_sender.enabled)

  if not settings.pg_dsn:
    logger.warning("GOSPEL_PG_DSN not set; the device token registry is unavailable.")

  try:
    yield
  finally:
    delete_firebase_app(firebase_app)
    await dispose_db_engine()
    logger.info("Shutdown complete.")
