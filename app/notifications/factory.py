"""Explicit construction of the push channels and dispatcher."""

from __future__ import annotations

import logging

from firebase_admin import App

from app.config import Settings
from app.notifications.contracts import NativePushChannel, WebPushChannel
from app.notifications.device_token_repo import DeviceTokenRepository
from app.notifications.fcm_sender import FcmPushSender, NullNativePushSender
from app.notifications.push_sender import NullWebPushSender, VapidConfig, WebPushSender
from app.notifications.service import DeviceTokenStore, NotificationDispatcher

logger = logging.getLogger(__name__)


def build_web_push_sender(settings: Settings) -> WebPushChannel:
  """Return a VAPID-signed sender, or an inert one when keys are missing."""
  if not settings.web_push_configured:
    logger.warning("VAPID keys not configured; browser push notifications are disabled.")
    return NullWebPushSender()

  vapid_config = VapidConfig(public_key=settings.push_vapid_public_key or "", private_key=settings.push_vapid_private_key or "", sub=settings.push_vapid_sub)
  logger.info("Browser push configured (sub=%s).", settings.push_vapid_sub)
  return WebPushSender(vapid_config=vapid_config, timeout_seconds=settings.push_timeout_seconds, max_attempts=settings.push_max_attempts)


def build_native_push_sender(settings: Settings, *, firebase_app: App | None) -> NativePushChannel:
  """Return an FCM sender bound to `firebase_app`, or an inert one when it is unavailable."""
  if firebase_app is None:
    return NullNativePushSender()
  return FcmPushSender(app=firebase_app, max_attempts=settings.push_max_attempts)


def build_notification_dispatcher(settings: Settings, *, firebase_app: App | None, token_repo: DeviceTokenStore | None = None) -> NotificationDispatcher:
  """Construct the dispatcher once at startup.

  `firebase_app` comes from `app.core.firebase.initialize_firebase_app`; passing None
  leaves the native channel inert.
  """
  return NotificationDispatcher(
    token_repo=token_repo or DeviceTokenRepository(),
    web_sender=build_web_push_sender(settings),
    native_sender=build_native_push_sender(settings, firebase_app=firebase_app),
    delivery_deadline_seconds=settings.push_delivery_deadline_seconds,
    max_concurrent_sends=settings.push_max_concurrency,
    daily_timezone=settings.daily_broadcast_timezone,
  )
