"""Test configuration for importing the application package."""

from __future__ import annotations

import os

# Settings are read when `app.main` is imported; CORS origins are mandatory.
os.environ.setdefault("GOSPEL_ALLOWED_ORIGINS", "http://localhost:5173")

from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from app.config import get_settings  # noqa: E402
from app.notifications.contracts import DeviceTokenRecord, WebPushSubscription  # noqa: E402

VALID_P256DH = "BEl6f5Y8X5Y_u7d8mV_AbpZfXfTLT3s1O3L4wM1x8QY2_5qWQ-jxJq7uKjv8mQ4I"
VALID_AUTH = "gq8Yh5xA9l2mQ6pR"


@pytest.fixture
def anyio_backend():
  return "asyncio"


@pytest.fixture(autouse=True)
def _clear_settings_cache():
  get_settings.cache_clear()
  yield
  get_settings.cache_clear()


@pytest.fixture
def make_subscription():
  def _make(endpoint: str = "https://fcm.googleapis.com/fcm/send/abc") -> WebPushSubscription:
    return WebPushSubscription(endpoint=endpoint, p256dh=VALID_P256DH, auth=VALID_AUTH)

  return _make


@pytest.fixture
def make_web_record(make_subscription):
  def _make(token_id: int, *, user_id: str = "user-1", endpoint: str | None = None, daily: bool = True) -> DeviceTokenRecord:
    subscription = make_subscription(endpoint or f"https://fcm.googleapis.com/fcm/send/{token_id}")
    return DeviceTokenRecord(id=token_id, user_id=user_id, token=subscription.to_json(), platform="web", daily_verse_enabled=daily)

  return _make


@pytest.fixture
def make_native_record():
  def _make(token_id: int, platform: str, *, user_id: str = "user-1", registration_id: str | None = None, daily: bool = True) -> DeviceTokenRecord:
    return DeviceTokenRecord(id=token_id, user_id=user_id, token=registration_id or f"reg-{token_id}", platform=platform, daily_verse_enabled=daily)

  return _make


@pytest.fixture
def token_repo():
  repo = MagicMock()
  repo.list_for_user = AsyncMock(return_value=[])
  repo.list_daily_opted_in = AsyncMock(return_value=[])
  repo.delete_by_id = AsyncMock(return_value=None)
  return repo
