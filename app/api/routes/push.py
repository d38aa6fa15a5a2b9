"""Routes for push device registration and preferences."""

from __future__ import annotations

import logging
import re
import urllib.parse
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_core import PydanticCustomError

from app.api.deps import get_device_token_repo, get_dispatcher
from app.core.security import AuthenticatedUser, get_current_user
from app.notifications.contracts import WebPushSubscription
from app.notifications.device_token_repo import DeviceTokenRepository
from app.notifications.service import NotificationDispatcher

logger = logging.getLogger(__name__)

_ALLOWED_PUSH_HOSTS = {"fcm.googleapis.com", "updates.push.services.mozilla.com", "push.services.mozilla.com", "web.push.apple.com"}
_ALLOWED_PUSH_HOST_SUFFIXES = (".notify.windows.com", ".push.apple.com")
_BASE64_RE = re.compile(r"^[A-Za-z0-9_-]+={0,2}$")

router = APIRouter()


def _validate_endpoint(value: str) -> str:
  """Restrict endpoints to known browser push services over HTTPS."""
  normalized = value.strip()
  parsed = urllib.parse.urlparse(normalized)

  if parsed.scheme.lower() != "https":
    raise PydanticCustomError("push_endpoint_https", "endpoint must use https.")

  host = (parsed.hostname or "").lower()
  if host not in _ALLOWED_PUSH_HOSTS and not host.endswith(_ALLOWED_PUSH_HOST_SUFFIXES):
    raise PydanticCustomError("push_endpoint_host", "endpoint host is not allowed.")

  return normalized


class PushSubscriptionKeys(BaseModel):
  """Browser-provided key material for Web Push encryption."""

  p256dh: str = Field(min_length=40, max_length=512)
  auth: str = Field(min_length=16, max_length=256)
  model_config = ConfigDict(extra="forbid")

  @field_validator("p256dh", "auth")
  @classmethod
  def validate_base64url(cls, value: str) -> str:
    normalized = value.strip()
    if not _BASE64_RE.fullmatch(normalized):
      raise PydanticCustomError("push_key_format", "subscription keys must be base64url encoded.")
    return normalized


class PushSubscriptionPayload(BaseModel):
  """Standard browser `PushSubscription.toJSON()` object."""

  endpoint: str = Field(min_length=1, max_length=2048)
  expiration_time: int | None = Field(default=None, alias="expirationTime")
  keys: PushSubscriptionKeys
  model_config = ConfigDict(extra="forbid", populate_by_name=True)

  @field_validator("endpoint")
  @classmethod
  def validate_endpoint(cls, value: str) -> str:
    return _validate_endpoint(value)

  def to_subscription(self) -> WebPushSubscription:
    return WebPushSubscription(endpoint=self.endpoint, p256dh=self.keys.p256dh, auth=self.keys.auth, expiration_time=self.expiration_time)


class _DeviceSelector(BaseModel):
  subscription: PushSubscriptionPayload | None = None
  token: str | None = Field(default=None, min_length=1, max_length=4096)

  @field_validator("token")
  @classmethod
  def strip_token(cls, value: str | None) -> str | None:
    return value.strip() if value is not None else None


class PushRegisterRequest(_DeviceSelector):
  """Register a browser subscription (`platform=web`) or a native registration token."""

  platform: Literal["web", "ios", "android"] = "web"
  daily_verse_enabled: bool | None = Field(default=None, alias="dailyVerseEnabled")
  model_config = ConfigDict(extra="forbid", populate_by_name=True)

  @model_validator(mode="after")
  def check_device(self) -> PushRegisterRequest:
    if self.platform == "web" and self.subscription is None:
      raise PydanticCustomError("push_subscription_required", "web registrations require a subscription.")
    if self.platform != "web" and not self.token:
      raise PydanticCustomError("push_token_required", "native registrations require a token.")
    return self


class PushUnregisterRequest(_DeviceSelector):
  """Identify the device to remove by browser subscription or native token."""

  model_config = ConfigDict(extra="forbid")

  @model_validator(mode="after")
  def check_device(self) -> PushUnregisterRequest:
    if self.subscription is None and not self.token:
      raise PydanticCustomError("push_device_required", "subscription or token is required.")
    return self


class PushPreferencesRequest(BaseModel):
  """Toggle the daily verse broadcast for one device or all of the caller's devices."""

  daily_verse_enabled: bool = Field(alias="dailyVerseEnabled")
  endpoint: str | None = Field(default=None, max_length=2048)
  token: str | None = Field(default=None, min_length=1, max_length=4096)
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


@router.get("/vapid-key")
async def get_vapid_key(dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)]) -> dict[str, str]:
  """Expose the VAPID public key browsers need to subscribe."""
  public_key = getattr(dispatcher.web_sender, "public_key", None)
  if not dispatcher.web_sender.enabled or not public_key:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Push notifications not configured")
  return {"publicKey": public_key}


@router.post("/register", status_code=status.HTTP_204_NO_CONTENT)
async def register_device(
  payload: PushRegisterRequest, current_user: Annotated[AuthenticatedUser, Depends(get_current_user)], repo: Annotated[DeviceTokenRepository, Depends(get_device_token_repo)]
) -> Response:
  """Upsert the caller's device in the token registry."""
  if payload.platform == "web" and payload.subscription is not None:
    token = payload.subscription.to_subscription().to_json()
  else:
    token = payload.token or ""

  try:
    record = await repo.register(user_id=current_user.id, token=token, platform=payload.platform, daily_verse_enabled=payload.daily_verse_enabled)
  except Exception as exc:  # noqa: BLE001
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to save push token") from exc

  logger.info("Registered push token token_id=%s platform=%s", record.id, payload.platform)
  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/unregister", status_code=status.HTTP_204_NO_CONTENT)
async def unregister_device(
  payload: PushUnregisterRequest, current_user: Annotated[AuthenticatedUser, Depends(get_current_user)], repo: Annotated[DeviceTokenRepository, Depends(get_device_token_repo)]
) -> Response:
  """Delete the caller's device; unknown devices are ignored."""
  endpoint = payload.subscription.endpoint if payload.subscription is not None else None
  try:
    await repo.unregister(user_id=current_user.id, endpoint=endpoint, registration_id=None if endpoint else payload.token)
  except Exception as exc:  # noqa: BLE001
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete push token") from exc

  return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/preferences")
async def update_preferences(
  payload: PushPreferencesRequest, current_user: Annotated[AuthenticatedUser, Depends(get_current_user)], repo: Annotated[DeviceTokenRepository, Depends(get_device_token_repo)]
) -> dict[str, int]:
  """Opt devices in or out of the daily verse broadcast."""
  try:
    updated = await repo.set_daily_verse_enabled(user_id=current_user.id, enabled=payload.daily_verse_enabled, endpoint=payload.endpoint, registration_id=payload.token)
  except Exception as exc:  # noqa: BLE001
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to update push preferences") from exc

  return {"updated": updated}
