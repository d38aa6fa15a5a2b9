"""Fan-out of push notifications to every registered device."""

from __future__ import annotations

import asyncio
import datetime
import logging
from collections import Counter
from collections.abc import Callable, Coroutine, Iterable, Sequence
from typing import Any, Protocol, TypeVar

from anyio import CapacityLimiter, to_thread

from app.notifications.contracts import (
  BroadcastResult,
  DeliveryOutcome,
  DeviceTokenRecord,
  InvalidDeviceTokenError,
  MalformedDeviceTokenError,
  NativePushChannel,
  NativeToken,
  NotificationPayload,
  NotificationProviderError,
  WebPushChannel,
  resolve_device_token,
)
from app.notifications.daily_verse import DAILY_VERSES, DailyVerse, build_daily_verse_payload, select_daily_item, today_in

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DeviceTokenStore(Protocol):
  """The registry operations the dispatcher needs."""

  async def list_for_user(self, *, user_id: str) -> list[DeviceTokenRecord]: ...

  async def list_daily_opted_in(self) -> list[DeviceTokenRecord]: ...

  async def delete_by_id(self, *, token_id: int) -> None: ...


class NotificationDispatcher:
  """Delivers notifications to each of a user's devices over web or native push.

  Every public entry point is best effort: per-token failures are logged, dead tokens
  are pruned, and nothing is raised to the caller.
  """

  def __init__(
    self,
    *,
    token_repo: DeviceTokenStore,
    web_sender: WebPushChannel,
    native_sender: NativePushChannel,
    delivery_deadline_seconds: float = 30.0,
    max_concurrent_sends: int = 20,
    daily_verses: Sequence[DailyVerse] = DAILY_VERSES,
    daily_timezone: str = "UTC",
  ) -> None:
    self._token_repo = token_repo
    self._web_sender = web_sender
    self._native_sender = native_sender
    self._delivery_deadline_seconds = delivery_deadline_seconds
    self._max_concurrent_sends = max(1, max_concurrent_sends)
    # A slot is taken before the deadline starts so queueing never counts against it.
    self._send_slots = asyncio.Semaphore(self._max_concurrent_sends)
    self._thread_limiter: CapacityLimiter | None = None
    self._daily_verses = tuple(daily_verses)
    self._daily_timezone = daily_timezone
    self._background_tasks: set[asyncio.Task[Any]] = set()

  @property
  def web_sender(self) -> WebPushChannel:
    return self._web_sender

  @property
  def native_sender(self) -> NativePushChannel:
    return self._native_sender

  async def notify_user(self, user_id: str, payload: NotificationPayload) -> None:
    """Deliver `payload` to every device registered by `user_id`."""
    try:
      records = await self._token_repo.list_for_user(user_id=user_id)
    except Exception as exc:  # noqa: BLE001
      logger.error("Push token lookup failed user_id=%s error=%s", user_id, exc, exc_info=True)
      return

    if not records:
      logger.debug("No push tokens for user_id=%s", user_id)
      return

    logger.info("Sending push to %d device(s) for user_id=%s", len(records), user_id)
    outcomes = await self._deliver_all(records, payload)
    logger.debug("Push results user_id=%s %s", user_id, dict(Counter(outcome.value for outcome in outcomes)))

  async def notify_users(self, user_ids: Iterable[str], payload: NotificationPayload) -> None:
    """Fan `notify_user` out across users concurrently."""
    unique_ids = list(dict.fromkeys(user_ids))
    if not unique_ids:
      return
    results = await asyncio.gather(*(self.notify_user(user_id, payload) for user_id in unique_ids), return_exceptions=True)
    for user_id, result in zip(unique_ids, results, strict=True):
      if isinstance(result, BaseException):
        logger.error("Push fan-out failed user_id=%s error=%s", user_id, result)

  async def send_daily_broadcast(self, *, today: datetime.date | None = None) -> BroadcastResult:
    """Send today's verse to every device opted into the daily broadcast."""
    try:
      records = await self._token_repo.list_daily_opted_in()
    except Exception as exc:  # noqa: BLE001
      logger.error("Daily broadcast token lookup failed: %s", exc, exc_info=True)
      return BroadcastResult()

    if not records:
      logger.info("Daily broadcast skipped; no opted-in devices")
      return BroadcastResult()

    try:
      verse = select_daily_item(self._daily_verses, today or today_in(self._daily_timezone))
    except Exception as exc:  # noqa: BLE001
      logger.error("Daily broadcast verse selection failed: %s", exc, exc_info=True)
      return BroadcastResult(failed=len(records))

    logger.info("Daily broadcast of %s to %d device(s)", verse.reference, len(records))
    outcomes = await self._deliver_all(records, build_daily_verse_payload(verse))
    counts = Counter(outcome.value for outcome in outcomes)
    sent = counts.get(DeliveryOutcome.SENT.value, 0)
    result = BroadcastResult(sent=sent, failed=len(outcomes) - sent, outcomes=dict(counts))
    logger.info("Daily broadcast finished sent=%d failed=%d detail=%s", result.sent, result.failed, result.outcomes)
    return result

  def fire_and_forget(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
    """Schedule a dispatch without awaiting it, logging any escaped failure."""
    task = asyncio.create_task(coro)
    self._background_tasks.add(task)
    task.add_done_callback(self._on_background_done)
    return task

  def _on_background_done(self, task: asyncio.Task[Any]) -> None:
    self._background_tasks.discard(task)
    if task.cancelled():
      return
    exc = task.exception()
    if exc is not None:
      logger.error("Background push dispatch task failed: %s", exc, exc_info=exc)

  async def _deliver_all(self, records: Sequence[DeviceTokenRecord], payload: NotificationPayload) -> list[DeliveryOutcome]:
    results = await asyncio.gather(*(self._deliver(record, payload) for record in records), return_exceptions=True)
    outcomes: list[DeliveryOutcome] = []
    for record, result in zip(records, results, strict=True):
      if isinstance(result, DeliveryOutcome):
        outcomes.append(result)
        continue
      logger.error("Push delivery task crashed token_id=%s error=%s", record.id, result)
      outcomes.append(DeliveryOutcome.FAILED)
    return outcomes

  async def _send_with_deadline(self, func: Callable[..., T], *args: Any) -> T:
    """Run a blocking provider call in a worker thread, bounding only the call itself."""
    if self._thread_limiter is None:
      self._thread_limiter = CapacityLimiter(self._max_concurrent_sends)
    async with self._send_slots:
      return await asyncio.wait_for(to_thread.run_sync(func, *args, limiter=self._thread_limiter, abandon_on_cancel=True), timeout=self._delivery_deadline_seconds)

  async def _deliver(self, record: DeviceTokenRecord, payload: NotificationPayload) -> DeliveryOutcome:
    """Deliver to one registry row, pruning it if the provider reports it dead."""
    try:
      device = resolve_device_token(record)
      if isinstance(device, NativeToken):
        delivered = await self._send_with_deadline(self._native_sender.send, device.registration_id, payload)
      else:
        delivered = await self._send_with_deadline(self._web_sender.send, device.subscription, payload)
    except InvalidDeviceTokenError as exc:
      logger.info("Removing invalid push token token_id=%s code=%s", record.id, exc.code)
      return await self._prune(record)
    except MalformedDeviceTokenError as exc:
      logger.error("Skipping malformed push token token_id=%s: %s", record.id, exc)
      return DeliveryOutcome.FAILED
    except NotificationProviderError as exc:
      logger.error("Push delivery failed token_id=%s code=%s: %s", record.id, exc.code, exc)
      return DeliveryOutcome.FAILED
    except TimeoutError:
      logger.error("Push delivery timed out token_id=%s after %.1fs", record.id, self._delivery_deadline_seconds)
      return DeliveryOutcome.FAILED
    except Exception as exc:  # noqa: BLE001
      logger.error("Push delivery failed token_id=%s: %s", record.id, exc, exc_info=True)
      return DeliveryOutcome.FAILED

    if not delivered:
      logger.debug("Push channel inert; skipped token_id=%s platform=%s", record.id, record.platform or "web")
      return DeliveryOutcome.SKIPPED

    logger.info("Push sent token_id=%s platform=%s", record.id, record.platform or "web")
    return DeliveryOutcome.SENT

  async def _prune(self, record: DeviceTokenRecord) -> DeliveryOutcome:
    try:
      await self._token_repo.delete_by_id(token_id=record.id)
    except Exception as exc:  # noqa: BLE001
      logger.error("Failed deleting invalid push token token_id=%s error=%s", record.id, exc, exc_info=True)
      return DeliveryOutcome.FAILED
    return DeliveryOutcome.PRUNED
