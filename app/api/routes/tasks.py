from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from app.api.deps import get_dispatcher
from app.config import Settings, get_settings
from app.notifications.contracts import NotificationPayload
from app.notifications.service import NotificationDispatcher

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


class NotifyTaskPayload(BaseModel):
  """Notification raised by another service for a set of users."""

  user_ids: list[str] = Field(alias="userIds", min_length=1, max_length=1000)
  title: str = Field(min_length=1, max_length=200)
  body: str = Field(min_length=1, max_length=1000)
  icon: str | None = Field(default=None, max_length=512)
  url: str | None = Field(default=None, max_length=2048)
  tag: str | None = Field(default=None, max_length=128)
  model_config = ConfigDict(extra="forbid", populate_by_name=True)


def _require_task_secret(settings: Settings, *, authorization: str | None, x_gospel_task_secret: str | None) -> None:
  # Internal task endpoints stay closed unless a secret is configured.
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  expected_auth = f"Bearer {settings.task_secret}"
  shared_secret_valid = secrets.compare_digest((x_gospel_task_secret or ""), settings.task_secret)
  bearer_valid = secrets.compare_digest((authorization or ""), expected_auth)
  if not shared_secret_valid and not bearer_valid:
    logger.warning("Unauthorized access attempt to internal push task")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")


@router.post("/daily-broadcast", status_code=status.HTTP_200_OK)
async def daily_broadcast_task(
  settings: Annotated[Settings, Depends(get_settings)],
  dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
  authorization: str | None = Header(default=None),
  x_gospel_task_secret: str | None = Header(default=None),
) -> dict[str, int]:
  """
  Handler for the scheduler that triggers the daily verse broadcast.
  Runs the broadcast inline so the caller receives the delivery counts.
  """
  _require_task_secret(settings, authorization=authorization, x_gospel_task_secret=x_gospel_task_secret)
  logger.info("Received daily broadcast task")
  result = await dispatcher.send_daily_broadcast()
  return result.as_dict()


@router.post("/notify", status_code=status.HTTP_202_ACCEPTED)
async def notify_task(
  payload: NotifyTaskPayload,
  settings: Annotated[Settings, Depends(get_settings)],
  dispatcher: Annotated[NotificationDispatcher, Depends(get_dispatcher)],
  authorization: str | None = Header(default=None),
  x_gospel_task_secret: str | None = Header(default=None),
) -> dict[str, str]:
  """
  Handler for domain events (new comment, prayer answered) that should reach a user's devices.
  Accepts quickly and fans out in the background so the caller never waits on providers.
  """
  _require_task_secret(settings, authorization=authorization, x_gospel_task_secret=x_gospel_task_secret)
  notification = NotificationPayload.create(title=payload.title, body=payload.body, icon=payload.icon, url=payload.url, tag=payload.tag)
  dispatcher.fire_and_forget(dispatcher.notify_users(payload.user_ids, notification))
  logger.info("Accepted notify task for %d user(s)", len(payload.user_ids))
  return {"status": "accepted"}
