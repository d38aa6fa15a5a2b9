from __future__ import annotations

from dataclasses import replace
from unittest.mock import AsyncMock, MagicMock

import pytest
from app.api.deps import get_dispatcher
from app.config import get_settings
from app.main import app
from app.notifications.contracts import BroadcastResult, NotificationPayload
from httpx import ASGITransport, AsyncClient


@pytest.fixture
def dispatcher():
  stub = MagicMock()
  stub.send_daily_broadcast = AsyncMock(return_value=BroadcastResult(sent=3, failed=1))
  stub.notify_users = MagicMock(return_value="notify-coroutine")
  return stub


def _override(dispatcher, *, task_secret: str | None) -> None:
  settings = replace(get_settings(), task_secret=task_secret)
  app.dependency_overrides[get_settings] = lambda: settings
  app.dependency_overrides[get_dispatcher] = lambda: dispatcher


@pytest.mark.anyio
@pytest.mark.parametrize("headers", [{"x-gospel-task-secret": "test-task-secret"}, {"authorization": "Bearer test-task-secret"}])
async def test_daily_broadcast_task_returns_counts(dispatcher, headers):
  _override(dispatcher, task_secret="test-task-secret")

  try:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
      response = await ac.post("/internal/tasks/daily-broadcast", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"sent": 3, "failed": 1}
    dispatcher.send_daily_broadcast.assert_awaited_once()
  finally:
    app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_daily_broadcast_task_rejects_wrong_secret(dispatcher):
  _override(dispatcher, task_secret="test-task-secret")

  try:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
      response = await ac.post("/internal/tasks/daily-broadcast", headers={"authorization": "Bearer nope"})

    assert response.status_code == 403
    dispatcher.send_daily_broadcast.assert_not_awaited()
  finally:
    app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_daily_broadcast_task_closed_without_configured_secret(dispatcher):
  _override(dispatcher, task_secret=None)

  try:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
      response = await ac.post("/internal/tasks/daily-broadcast", headers={"x-gospel-task-secret": ""})

    assert response.status_code == 403
    assert response.json() == {"detail": "Task authentication is not configured."}
  finally:
    app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_notify_task_schedules_fan_out_in_background(dispatcher):
  _override(dispatcher, task_secret="test-task-secret")
  body = {"userIds": ["user-1", "user-2"], "title": "New comment", "body": "Someone replied to your post", "url": "/posts/7"}

  try:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
      response = await ac.post("/internal/tasks/notify", json=body, headers={"x-gospel-task-secret": "test-task-secret"})

    assert response.status_code == 202
    assert response.json() == {"status": "accepted"}
    user_ids, notification = dispatcher.notify_users.call_args.args
    assert user_ids == ["user-1", "user-2"]
    assert notification == NotificationPayload.create(title="New comment", body="Someone replied to your post", url="/posts/7")
    dispatcher.fire_and_forget.assert_called_once_with("notify-coroutine")
  finally:
    app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_notify_task_rejects_wrong_secret(dispatcher):
  _override(dispatcher, task_secret="test-task-secret")

  try:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
      response = await ac.post("/internal/tasks/notify", json={"userIds": ["user-1"], "title": "t", "body": "b"}, headers={"authorization": "Bearer nope"})

    assert response.status_code == 403
    dispatcher.fire_and_forget.assert_not_called()
  finally:
    app.dependency_overrides.clear()


@pytest.mark.anyio
async def test_notify_task_requires_recipients(dispatcher):
  _override(dispatcher, task_secret="test-task-secret")

  try:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
      response = await ac.post("/internal/tasks/notify", json={"userIds": [], "title": "t", "body": "b"}, headers={"x-gospel-task-secret": "test-task-secret"})

    assert response.status_code == 422
    dispatcher.fire_and_forget.assert_not_called()
  finally:
    app.dependency_overrides.clear()
