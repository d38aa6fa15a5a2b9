"""Browser push delivery over the Web Push protocol."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from http import HTTPStatus

from pywebpush import WebPushException, webpush

from app.notifications.contracts import InvalidDeviceTokenError, NotificationPayload, TransientPushProviderError, WebPushChannel, WebPushSubscription

logger = logging.getLogger(__name__)

_INVALID_STATUSES = frozenset({HTTPStatus.NOT_FOUND, HTTPStatus.GONE})
_BACKOFF_SECONDS = (0.5, 1.0)


@dataclass(frozen=True)
class VapidConfig:
  """Configuration required to sign Web Push requests."""

  public_key: str
  private_key: str
  sub: str


class WebPushSender(WebPushChannel):
  """`pywebpush` backed sender with retry and invalid-endpoint handling."""

  def __init__(self, *, vapid_config: VapidConfig, timeout_seconds: float = 10.0, max_attempts: int = 3) -> None:
    self._vapid_config = vapid_config
    self._timeout_seconds = timeout_seconds
    self._max_attempts = max(1, max_attempts)

  @property
  def enabled(self) -> bool:
    return True

  @property
  def public_key(self) -> str:
    return self._vapid_config.public_key

  def send(self, subscription: WebPushSubscription, payload: NotificationPayload) -> bool:
    """Send a Web Push payload with bounded retries for transient failures."""
    data = payload.to_web_json()
    subscription_info = subscription.as_subscription_info()

    for attempt in range(1, self._max_attempts + 1):
      try:
        webpush(subscription_info=subscription_info, data=data, vapid_private_key=self._vapid_config.private_key, vapid_claims={"sub": self._vapid_config.sub}, timeout=self._timeout_seconds)
        return True
      except WebPushException as exc:
        status_code = _extract_status_code(exc)

        if status_code in _INVALID_STATUSES:
          raise InvalidDeviceTokenError(f"Push subscription is invalid (status={status_code})", code=str(status_code), status_code=status_code) from exc

        if _is_retryable(status_code) and attempt < self._max_attempts:
          time.sleep(_backoff(attempt))
          continue

        raise TransientPushProviderError(f"Push delivery failed (status={status_code if status_code else 'unknown'}, attempts={attempt})", code=str(status_code) if status_code else None, status_code=status_code) from exc
      except OSError as exc:
        # requests' connection errors subclass OSError; treat them like a 5xx.
        if attempt < self._max_attempts:
          time.sleep(_backoff(attempt))
          continue
        raise TransientPushProviderError(f"Push delivery failed (network: {exc}, attempts={attempt})", code="network") from exc

    return False


class NullWebPushSender(WebPushChannel):
  """No-op sender used when VAPID signing keys are not configured."""

  @property
  def enabled(self) -> bool:
    return False

  def send(self, subscription: WebPushSubscription, payload: NotificationPayload) -> bool:
    """Drop the notification while recording a debug log."""
    logger.debug("Browser push disabled; skipping endpoint_present=%s", bool(subscription.endpoint))
    return False


def _is_retryable(status_code: int | None) -> bool:
  if status_code is None:
    return False
  return status_code == HTTPStatus.TOO_MANY_REQUESTS or 500 <= status_code < 600


def _backoff(attempt: int) -> float:
  return _BACKOFF_SECONDS[min(attempt, len(_BACKOFF_SECONDS)) - 1]


def _extract_status_code(exc: WebPushException) -> int | None:
  """Extract an HTTP status code from a pywebpush exception when available."""
  response = getattr(exc, "response", None)
  if response is None:
    return None

  status = getattr(response, "status_code", None)
  if isinstance(status, int):
    return status

  return None
