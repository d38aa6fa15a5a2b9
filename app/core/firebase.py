import json
import logging

import firebase_admin
from firebase_admin import App, credentials

from app.config import Settings

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "gospel-era-push"


def initialize_firebase_app(settings: Settings, *, name: str = FIREBASE_APP_NAME) -> App | None:
  """Initialize a named Firebase Admin app from the service-account descriptor.

  Returns None when the descriptor is absent or malformed; the two cases are only
  distinguished in the logs so a bad deploy never crashes the process.
  """
  raw = settings.firebase_service_account_json
  if not raw:
    logger.warning("FIREBASE_SERVICE_ACCOUNT_JSON not set. Native push notifications are disabled.")
    return None

  try:
    return firebase_admin.get_app(name)
  except ValueError:
    pass

  try:
    descriptor = json.loads(raw)
  except json.JSONDecodeError as exc:
    logger.error("FIREBASE_SERVICE_ACCOUNT_JSON is malformed (invalid JSON at line %s column %s). Native push notifications are disabled.", exc.lineno, exc.colno)
    return None

  if not isinstance(descriptor, dict):
    logger.error("FIREBASE_SERVICE_ACCOUNT_JSON is malformed (expected a JSON object). Native push notifications are disabled.")
    return None

  try:
    cred = credentials.Certificate(descriptor)
  except (ValueError, KeyError) as exc:
    # Never log the descriptor itself; it carries the private key.
    logger.error("FIREBASE_SERVICE_ACCOUNT_JSON is malformed (%s). Native push notifications are disabled.", type(exc).__name__)
    return None

  options = {"httpTimeout": settings.push_timeout_seconds}
  project_id = descriptor.get("project_id")
  if project_id:
    options["projectId"] = project_id

  try:
    app = firebase_admin.initialize_app(cred, options, name=name)
  except ValueError as exc:
    logger.error("Failed to initialize Firebase Admin app %s: %s", name, exc)
    return None

  logger.info("Firebase Admin app %s initialized for project %s.", name, project_id or "<unknown>")
  return app


def delete_firebase_app(app: App | None) -> None:
  """Tear down a named app so a later startup can initialize it again."""
  if app is None:
    return
  try:
    firebase_admin.delete_app(app)
  except ValueError:
    logger.debug("Firebase app %s already deleted.", app.name)
