"""Native (ios/android) push delivery through Firebase Cloud Messaging."""

from __future__ import annotations

import logging
import time

from firebase_admin import App, exceptions, messaging

from app.notifications.contracts import InvalidDeviceTokenError, NativePushChannel, NotificationPayload, TransientPushProviderError

logger = logging.getLogger(__name__)

ANDROID_CHANNEL_ID = "gospel-era"
_BACKOFF_SECONDS = (0.5, 1.0)

# Error classes FCM uses for tokens that will never accept deliveries again.
_UNREGISTERED_ERRORS: tuple[type[exceptions.FirebaseError], ...] = (messaging.UnregisteredError, messaging.SenderIdMismatchError, exceptions.NotFoundError)
_RETRYABLE_ERRORS: tuple[type[exceptions.FirebaseError], ...] = (exceptions.UnavailableError, exceptions.InternalError, messaging.QuotaExceededError)


def build_message(registration_id: str, payload: NotificationPayload) -> messaging.Message:
  """Build the FCM envelope with per-platform presentation hints."""
  return messaging.Message(
    token=registration_id,
    notification=messaging.Notification(title=payload.title, body=payload.body),
    data={"url": payload.url, "tag": payload.tag},
    android=messaging.AndroidConfig(priority="high", notification=messaging.AndroidNotification(channel_id=ANDROID_CHANNEL_ID, sound="default", tag=payload.tag)),
    apns=messaging.APNSConfig(headers={"apns-priority": "10"}, payload=messaging.APNSPayload(aps=messaging.Aps(sound="default", badge=1, thread_id=payload.tag))),
  )


def is_invalid_token_error(exc: exceptions.FirebaseError) -> bool:
  """Return True when FCM reports the registration token as dead."""
  if isinstance(exc, _UNREGISTERED_ERRORS):
    return True
  # INVALID_ARGUMENT also covers malformed envelopes; only the token variant is terminal.
  if isinstance(exc, exceptions.InvalidArgumentError):
    return "registration token" in str(exc).lower()
  return False


class FcmPushSender(NativePushChannel):
  """`firebase_admin.messaging` backed sender bound to an explicitly initialized app."""

  def __init__(self, *, app: App, max_attempts: int = 3) -> None:
    self._app = app
    self._max_attempts = max(1, max_attempts)

  @property
  def enabled(self) -> bool:
    return True

  def send(self, registration_id: str, payload: NotificationPayload) -> bool:
    """Send one message, retrying transient provider failures."""
    message = build_message(registration_id, payload)

    for attempt in range(1, self._max_attempts + 1):
      try:
        message_id = messaging.send(message, app=self._app)
        logger.debug("FCM accepted message_id=%s", message_id)
        return True
      except exceptions.FirebaseError as exc:
        code = _error_code(exc)
        if is_invalid_token_error(exc):
          raise InvalidDeviceTokenError(f"Registration token is invalid (code={code})", code=code, status_code=_http_status(exc)) from exc

        if isinstance(exc, _RETRYABLE_ERRORS) and attempt < self._max_attempts:
          time.sleep(_BACKOFF_SECONDS[min(attempt, len(_BACKOFF_SECONDS)) - 1])
          continue

        raise TransientPushProviderError(f"FCM delivery failed (code={code}, attempts={attempt})", code=code, status_code=_http_status(exc)) from exc

    return False


class NullNativePushSender(NativePushChannel):
  """No-op sender used when the service-account descriptor is missing or malformed."""

  @property
  def enabled(self) -> bool:
    return False

  def send(self, registration_id: str, payload: NotificationPayload) -> bool:
    logger.debug("Native push disabled; skipping registration_present=%s", bool(registration_id))
    return False


def _error_code(exc: exceptions.FirebaseError) -> str:
  if isinstance(exc, messaging.UnregisteredError):
    return "registration-token-not-registered"
  if isinstance(exc, messaging.SenderIdMismatchError):
    return "mismatched-credential"
  return str(getattr(exc, "code", None) or type(exc).__name__)


def _http_status(exc: exceptions.FirebaseError) -> int | None:
  response = getattr(exc, "http_response", None)
  status = getattr(response, "status_code", None)
  return status if isinstance(status, int) else None
