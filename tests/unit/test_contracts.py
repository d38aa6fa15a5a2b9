from __future__ import annotations

import json

import pytest
from app.notifications.contracts import DeviceTokenRecord, MalformedDeviceTokenError, NativeToken, NotificationPayload, WebToken, parse_web_subscription, resolve_device_token


def test_payload_create_applies_defaults_for_blank_fields():
  payload = NotificationPayload.create(title="Hello", body="World", icon="", url=None, tag="")

  assert payload.icon == "/icon-192.png"
  assert payload.url == "/"
  assert payload.tag == "gospel-era-notification"


def test_payload_web_json_shape():
  payload = NotificationPayload.create(title="Hello", body="World", url="/posts/1", tag="post-1")

  assert json.loads(payload.to_web_json()) == {"title": "Hello", "body": "World", "icon": "/icon-192.png", "url": "/posts/1", "tag": "post-1"}


@pytest.mark.parametrize("platform", ["ios", "android", "IOS"])
def test_resolve_native_platforms(platform):
  device = resolve_device_token(DeviceTokenRecord(id=1, user_id="u", token=" reg-1 ", platform=platform))

  assert isinstance(device, NativeToken)
  assert device.registration_id == "reg-1"
  assert device.platform == platform.lower()


@pytest.mark.parametrize("platform", ["web", None, "", "desktop"])
def test_resolve_everything_else_as_web(platform, make_subscription):
  subscription = make_subscription()
  device = resolve_device_token(DeviceTokenRecord(id=2, user_id="u", token=subscription.to_json(), platform=platform))

  assert isinstance(device, WebToken)
  assert device.subscription == subscription


def test_resolve_native_with_empty_registration_id_is_malformed():
  with pytest.raises(MalformedDeviceTokenError):
    resolve_device_token(DeviceTokenRecord(id=3, user_id="u", token="   ", platform="android"))


@pytest.mark.parametrize(
  "raw",
  [
    "not json",
    "[]",
    json.dumps({"keys": {"p256dh": "k", "auth": "a"}}),
    json.dumps({"endpoint": "https://fcm.googleapis.com/fcm/send/x"}),
    json.dumps({"endpoint": "https://fcm.googleapis.com/fcm/send/x", "keys": {"p256dh": "k"}}),
  ],
)
def test_parse_web_subscription_rejects_malformed(raw):
  with pytest.raises(MalformedDeviceTokenError):
    parse_web_subscription(raw, token_id=4)


def test_parse_web_subscription_accepts_browser_json():
  raw = '{"endpoint":"https://fcm.googleapis.com/fcm/send/x","expirationTime":null,"keys":{"p256dh":"key","auth":"secret"}}'
  subscription = parse_web_subscription(raw)

  assert subscription.endpoint == "https://fcm.googleapis.com/fcm/send/x"
  assert subscription.as_subscription_info() == {"endpoint": "https://fcm.googleapis.com/fcm/send/x", "keys": {"p256dh": "key", "auth": "secret"}}
