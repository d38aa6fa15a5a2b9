from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from app.notifications.contracts import InvalidDeviceTokenError, NotificationPayload, TransientPushProviderError
from app.notifications.fcm_sender import FcmPushSender, NullNativePushSender, build_message, is_invalid_token_error
from firebase_admin import exceptions, messaging


def _payload() -> NotificationPayload:
  return NotificationPayload.create(title="Prayer request", body="Someone prayed for you", url="/prayer/3")


def test_build_message_sets_platform_hints():
  message = build_message("reg-1", _payload())

  assert message.token == "reg-1"
  assert message.notification.title == "Prayer request"
  assert message.notification.body == "Someone prayed for you"
  assert message.data == {"url": "/prayer/3", "tag": "gospel-era-notification"}
  assert message.android.priority == "high"
  assert message.android.notification.channel_id == "gospel-era"
  assert message.apns.headers == {"apns-priority": "10"}
  assert message.apns.payload.aps.sound == "default"


@pytest.mark.parametrize(
  ("exc", "expected"),
  [
    (messaging.UnregisteredError("Requested entity was not found."), True),
    (messaging.SenderIdMismatchError("SenderId mismatch"), True),
    (exceptions.NotFoundError("not found"), True),
    (exceptions.InvalidArgumentError("The registration token is not a valid FCM registration token"), True),
    (exceptions.InvalidArgumentError("Invalid APNs payload"), False),
    (exceptions.UnavailableError("try later"), False),
  ],
)
def test_is_invalid_token_error(exc, expected):
  assert is_invalid_token_error(exc) is expected


def test_fcm_sender_sends_with_bound_app(monkeypatch):
  firebase_app = MagicMock()
  calls = []

  def _send(message, app=None):
    calls.append((message, app))
    return "projects/demo/messages/1"

  monkeypatch.setattr("app.notifications.fcm_sender.messaging.send", _send)

  assert FcmPushSender(app=firebase_app).send("reg-1", _payload()) is True
  assert calls[0][0].token == "reg-1"
  assert calls[0][1] is firebase_app


def test_fcm_sender_raises_invalid_token_for_unregistered(monkeypatch):
  def _send(message, app=None):
    raise messaging.UnregisteredError("Requested entity was not found.")

  monkeypatch.setattr("app.notifications.fcm_sender.messaging.send", _send)

  with pytest.raises(InvalidDeviceTokenError) as excinfo:
    FcmPushSender(app=MagicMock()).send("reg-dead", _payload())

  assert excinfo.value.code == "registration-token-not-registered"


def test_fcm_sender_retries_unavailable_then_gives_up(monkeypatch):
  attempts = {"count": 0}
  monkeypatch.setattr("app.notifications.fcm_sender.time.sleep", lambda _: None)

  def _send(message, app=None):
    attempts["count"] += 1
    raise exceptions.UnavailableError("backend unavailable")

  monkeypatch.setattr("app.notifications.fcm_sender.messaging.send", _send)

  with pytest.raises(TransientPushProviderError):
    FcmPushSender(app=MagicMock(), max_attempts=3).send("reg-1", _payload())

  assert attempts["count"] == 3


def test_fcm_sender_does_not_retry_permission_errors(monkeypatch):
  attempts = {"count": 0}
  monkeypatch.setattr("app.notifications.fcm_sender.time.sleep", lambda _: None)

  def _send(message, app=None):
    attempts["count"] += 1
    raise exceptions.PermissionDeniedError("sender not authorized")

  monkeypatch.setattr("app.notifications.fcm_sender.messaging.send", _send)

  with pytest.raises(TransientPushProviderError):
    FcmPushSender(app=MagicMock()).send("reg-1", _payload())

  assert attempts["count"] == 1


def test_null_native_push_sender_is_inert(monkeypatch):
  def _fail(message, app=None):
    raise AssertionError("messaging.send must not be called")

  monkeypatch.setattr("app.notifications.fcm_sender.messaging.send", _fail)

  sender = NullNativePushSender()
  assert sender.enabled is False
  assert sender.send("reg-1", _payload()) is False
