"""Contracts for push notification delivery channels."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Protocol

DEFAULT_ICON = "/icon-192.png"
DEFAULT_URL = "/"
DEFAULT_TAG = "gospel-era-notification"

NATIVE_PLATFORMS = frozenset({"ios", "android"})


@dataclass(frozen=True)
class NotificationPayload:
  """Represents a push notification payload."""

  title: str
  body: str
  icon: str = DEFAULT_ICON
  url: str = DEFAULT_URL
  tag: str = DEFAULT_TAG

  @classmethod
  def create(cls, *, title: str, body: str, icon: str | None = None, url: str | None = None, tag: str | None = None) -> NotificationPayload:
    """Build a payload, falling back to defaults for blank optional fields."""
    return cls(title=title, body=body, icon=icon or DEFAULT_ICON, url=url or DEFAULT_URL, tag=tag or DEFAULT_TAG)

  def to_web_json(self) -> str:
    return json.dumps({"title": self.title, "body": self.body, "icon": self.icon, "url": self.url, "tag": self.tag})


@dataclass(frozen=True)
class WebPushSubscription:
  """Browser push subscription (endpoint + encryption keys)."""

  endpoint: str
  p256dh: str
  auth: str
  expiration_time: int | None = None

  def as_subscription_info(self) -> dict[str, Any]:
    return {"endpoint": self.endpoint, "keys": {"p256dh": self.p256dh, "auth": self.auth}}

  def to_json(self) -> str:
    return json.dumps({"endpoint": self.endpoint, "expirationTime": self.expiration_time, "keys": {"p256dh": self.p256dh, "auth": self.auth}})


@dataclass(frozen=True)
class DeviceTokenRecord:
  """A stored registry row before it is resolved into a device token."""

  id: int
  user_id: str
  token: str
  platform: str | None
  daily_verse_enabled: bool = True


@dataclass(frozen=True)
class WebToken:
  id: int
  user_id: str
  subscription: WebPushSubscription


@dataclass(frozen=True)
class NativeToken:
  id: int
  user_id: str
  platform: str
  registration_id: str


DeviceToken = WebToken | NativeToken


class DeliveryOutcome(enum.Enum):
  """Result of a single per-token delivery attempt."""

  SENT = "sent"
  SKIPPED = "skipped"
  PRUNED = "pruned"
  FAILED = "failed"


@dataclass(frozen=True)
class BroadcastResult:
  sent: int = 0
  failed: int = 0
  outcomes: dict[str, int] = field(default_factory=dict, compare=False)

  def as_dict(self) -> dict[str, int]:
    return {"sent": self.sent, "failed": self.failed}


class NotificationError(Exception):
  """Base class for all notification delivery failures."""


class NotificationProviderError(NotificationError):
  """A push provider rejected or failed a delivery."""

  def __init__(self, message: str, *, code: str | None = None, status_code: int | None = None) -> None:
    super().__init__(message)
    self.code = code
    self.status_code = status_code


class InvalidDeviceTokenError(NotificationProviderError):
  """The provider reported the token as permanently unable to receive deliveries."""


class TransientPushProviderError(NotificationProviderError):
  """A delivery failed for a reason that may clear up (network, rate limit, 5xx)."""


class MalformedDeviceTokenError(NotificationError):
  """A stored registry row cannot be interpreted as a device token."""


def resolve_device_token(record: DeviceTokenRecord) -> DeviceToken:
  """Resolve a stored row into its tagged device token variant.

  ios/android rows carry a raw registration id; every other platform value (including
  a missing one) is treated as a serialized browser push subscription.
  """
  platform = (record.platform or "web").strip().lower()
  if platform in NATIVE_PLATFORMS:
    registration_id = (record.token or "").strip()
    if not registration_id:
      raise MalformedDeviceTokenError(f"Native token {record.id} has an empty registration id")
    return NativeToken(id=record.id, user_id=record.user_id, platform=platform, registration_id=registration_id)

  return WebToken(id=record.id, user_id=record.user_id, subscription=parse_web_subscription(record.token, token_id=record.id))


def parse_web_subscription(raw: str, *, token_id: int | None = None) -> WebPushSubscription:
  """Parse a serialized browser push subscription."""
  try:
    data = json.loads(raw)
  except (TypeError, ValueError) as exc:
    raise MalformedDeviceTokenError(f"Web token {token_id} is not valid JSON") from exc

  if not isinstance(data, dict):
    raise MalformedDeviceTokenError(f"Web token {token_id} is not a subscription object")

  endpoint = data.get("endpoint")
  keys = data.get("keys")
  if not isinstance(endpoint, str) or not endpoint or not isinstance(keys, dict):
    raise MalformedDeviceTokenError(f"Web token {token_id} is missing endpoint or keys")

  p256dh = keys.get("p256dh")
  auth = keys.get("auth")
  if not isinstance(p256dh, str) or not p256dh or not isinstance(auth, str) or not auth:
    raise MalformedDeviceTokenError(f"Web token {token_id} is missing encryption keys")

  expiration_time = data.get("expirationTime")
  return WebPushSubscription(endpoint=endpoint, p256dh=p256dh, auth=auth, expiration_time=expiration_time if isinstance(expiration_time, int) else None)


class WebPushChannel(Protocol):
  """Delivery contract for the browser push channel."""

  @property
  def enabled(self) -> bool: ...

  def send(self, subscription: WebPushSubscription, payload: NotificationPayload) -> bool:
    """Send synchronously; return False when the channel is inert."""


class NativePushChannel(Protocol):
  """Delivery contract for the native (ios/android) push channel."""

  @property
  def enabled(self) -> bool: ...

  def send(self, registration_id: str, payload: NotificationPayload) -> bool:
    """Send synchronously; return False when the channel is inert."""
