"""SQLAlchemy model for registered push notification devices."""

from __future__ import annotations

import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, Text, func, true
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class PushToken(Base):
  """One row per installed app or browser subscription able to receive pushes.

  `token` holds a serialized browser push subscription for web rows and the raw
  platform registration id for ios/android rows.
  """

  __tablename__ = "push_tokens"
  __table_args__ = (Index("push_tokens_user_id_idx", "user_id"), Index("push_tokens_token_idx", "token"))

  id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
  user_id: Mapped[str] = mapped_column(Text, nullable=False)
  token: Mapped[str] = mapped_column(Text, nullable=False)
  platform: Mapped[str | None] = mapped_column(Text, nullable=True, default="web")
  daily_verse_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=true())
  created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
  updated_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
