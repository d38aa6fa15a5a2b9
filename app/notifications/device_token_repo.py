"""Repository helpers for the push device token registry."""

from __future__ import annotations

import json
import logging

from sqlalchemy import ColumnElement, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session_factory
from app.notifications.contracts import NATIVE_PLATFORMS, DeviceTokenRecord, parse_web_subscription
from app.schema.push_tokens import PushToken

logger = logging.getLogger(__name__)


def _to_record(row: PushToken) -> DeviceTokenRecord:
  return DeviceTokenRecord(id=row.id, user_id=row.user_id, token=row.token, platform=row.platform, daily_verse_enabled=bool(row.daily_verse_enabled))


def endpoint_prefixes(endpoint: str) -> tuple[str, str]:
  """Serialized-subscription prefixes that identify a browser endpoint.

  Rows are written with the endpoint as the first key, either by this service
  (`json.dumps`) or by older clients (compact `JSON.stringify`).
  """
  spaced = json.dumps({"endpoint": endpoint})[:-1] + ","
  compact = json.dumps({"endpoint": endpoint}, separators=(",", ":"))[:-1] + ","
  return spaced, compact


def device_clause(*, endpoint: str | None = None, registration_id: str | None = None) -> ColumnElement[bool] | None:
  """Build the WHERE clause selecting one device by web endpoint or native registration id."""
  if endpoint:
    spaced, compact = endpoint_prefixes(endpoint)
    return or_(PushToken.token.startswith(spaced, autoescape=True), PushToken.token.startswith(compact, autoescape=True))
  if registration_id:
    return PushToken.token == registration_id
  return None


class DeviceTokenRepository:
  """Read and maintain the `push_tokens` registry in Postgres."""

  async def list_for_user(self, *, user_id: str) -> list[DeviceTokenRecord]:
    """List every device registered by a user."""
    session_factory = get_session_factory()
    if session_factory is None:
      return []

    async with session_factory() as session:
      return await self._list_for_user_with_session(session=session, user_id=user_id)

  async def _list_for_user_with_session(self, *, session: AsyncSession, user_id: str) -> list[DeviceTokenRecord]:
    stmt = select(PushToken).where(PushToken.user_id == user_id).order_by(PushToken.id)
    result = await session.execute(stmt)
    return [_to_record(row) for row in result.scalars().all()]

  async def list_daily_opted_in(self) -> list[DeviceTokenRecord]:
    """List every device opted into the daily verse broadcast."""
    session_factory = get_session_factory()
    if session_factory is None:
      return []

    async with session_factory() as session:
      return await self._list_daily_opted_in_with_session(session=session)

  async def _list_daily_opted_in_with_session(self, *, session: AsyncSession) -> list[DeviceTokenRecord]:
    stmt = select(PushToken).where(PushToken.daily_verse_enabled.is_(True)).order_by(PushToken.id)
    result = await session.execute(stmt)
    return [_to_record(row) for row in result.scalars().all()]

  async def delete_by_id(self, *, token_id: int) -> None:
    """Delete a token row; deleting a missing id is a no-op."""
    session_factory = get_session_factory()
    if session_factory is None:
      return

    async with session_factory() as session:
      await self._delete_by_id_with_session(session=session, token_id=token_id)

  async def _delete_by_id_with_session(self, *, session: AsyncSession, token_id: int) -> None:
    await session.execute(delete(PushToken).where(PushToken.id == token_id))
    await session.commit()

  async def register(self, *, user_id: str, token: str, platform: str, daily_verse_enabled: bool | None = None) -> DeviceTokenRecord:
    """Insert a device, or refresh the existing row for the same endpoint/registration id."""
    session_factory = get_session_factory()
    if session_factory is None:
      raise RuntimeError("Database connection is not configured (GOSPEL_PG_DSN is missing).")

    async with session_factory() as session:
      return await self._register_with_session(session=session, user_id=user_id, token=token, platform=platform, daily_verse_enabled=daily_verse_enabled)

  async def _register_with_session(self, *, session: AsyncSession, user_id: str, token: str, platform: str, daily_verse_enabled: bool | None) -> DeviceTokenRecord:
    if platform in NATIVE_PLATFORMS:
      clause = device_clause(registration_id=token)
    else:
      clause = device_clause(endpoint=parse_web_subscription(token).endpoint)

    result = await session.execute(select(PushToken).where(clause).order_by(PushToken.id))
    rows = list(result.scalars().all())

    if rows:
      existing = rows[0]
      # A browser or device that changes account keeps one row, owned by the latest user.
      if existing.user_id != user_id:
        logger.info("Push token %s moved to a new owner", existing.id)
      existing.user_id = user_id
      existing.token = token
      existing.platform = platform
      if daily_verse_enabled is not None:
        existing.daily_verse_enabled = daily_verse_enabled
      for duplicate in rows[1:]:
        await session.delete(duplicate)
      await session.commit()
      return _to_record(existing)

    row = PushToken(user_id=user_id, token=token, platform=platform, daily_verse_enabled=True if daily_verse_enabled is None else daily_verse_enabled)
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return _to_record(row)

  async def unregister(self, *, user_id: str, endpoint: str | None = None, registration_id: str | None = None) -> bool:
    """Delete a device owned by `user_id`; returns whether a row was removed."""
    clause = device_clause(endpoint=endpoint, registration_id=registration_id)
    if clause is None:
      raise ValueError("unregister requires an endpoint or a registration id")

    session_factory = get_session_factory()
    if session_factory is None:
      return False

    async with session_factory() as session:
      return await self._unregister_with_session(session=session, user_id=user_id, clause=clause)

  async def _unregister_with_session(self, *, session: AsyncSession, user_id: str, clause: ColumnElement[bool]) -> bool:
    # Constrain delete by ownership so users cannot remove other accounts' devices.
    result = await session.execute(delete(PushToken).where(PushToken.user_id == user_id, clause))
    await session.commit()
    return bool(result.rowcount)

  async def set_daily_verse_enabled(self, *, user_id: str, enabled: bool, endpoint: str | None = None, registration_id: str | None = None) -> int:
    """Update the daily verse flag for one device, or all of a user's devices."""
    session_factory = get_session_factory()
    if session_factory is None:
      return 0

    async with session_factory() as session:
      return await self._set_daily_verse_enabled_with_session(session=session, user_id=user_id, enabled=enabled, clause=device_clause(endpoint=endpoint, registration_id=registration_id))

  async def _set_daily_verse_enabled_with_session(self, *, session: AsyncSession, user_id: str, enabled: bool, clause: ColumnElement[bool] | None) -> int:
    stmt = update(PushToken).where(PushToken.user_id == user_id)
    if clause is not None:
      stmt = stmt.where(clause)
    result = await session.execute(stmt.values(daily_verse_enabled=enabled).execution_options(synchronize_session=False))
    await session.commit()
    return int(result.rowcount or 0)
