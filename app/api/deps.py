"""Shared FastAPI dependencies for the push routes."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from app.notifications.device_token_repo import DeviceTokenRepository
from app.notifications.service import NotificationDispatcher


def get_dispatcher(request: Request) -> NotificationDispatcher:
  """Return the dispatcher built during startup."""
  dispatcher = getattr(request.app.state, "dispatcher", None)
  if dispatcher is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Push notifications are not initialized")
  return dispatcher


def get_device_token_repo() -> DeviceTokenRepository:
  return DeviceTokenRepository()
