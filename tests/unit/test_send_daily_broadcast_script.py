from __future__ import annotations

import datetime
import importlib.util
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from app.config import get_database_settings
from app.notifications.contracts import BroadcastResult

_SCRIPT_PATH = Path(__file__).resolve().parents[2] / "scripts" / "send_daily_broadcast.py"


def _load_script():
  spec = importlib.util.spec_from_file_location("send_daily_broadcast", _SCRIPT_PATH)
  module = importlib.util.module_from_spec(spec)
  spec.loader.exec_module(module)
  return module


@pytest.fixture
def offline_env(monkeypatch):
  """Environment of a cron host: no CORS origins, no database, no channels."""
  for name in ("GOSPEL_ALLOWED_ORIGINS", "GOSPEL_PUSH_VAPID_PUBLIC_KEY", "GOSPEL_PUSH_VAPID_PRIVATE_KEY", "FIREBASE_SERVICE_ACCOUNT_JSON", "GOSPEL_PG_DSN", "DATABASE_URL"):
    monkeypatch.delenv(name, raising=False)
  monkeypatch.setattr("app.core.logging._initialize_logging", lambda settings: None)
  get_database_settings.cache_clear()
  yield
  get_database_settings.cache_clear()


def test_main_runs_without_allowed_origins_and_reports_no_channel(offline_env):
  assert _load_script().main([]) == 1


def test_main_sends_broadcast_for_requested_date(offline_env, monkeypatch):
  monkeypatch.setenv("GOSPEL_PUSH_VAPID_PUBLIC_KEY", "pub")
  monkeypatch.setenv("GOSPEL_PUSH_VAPID_PRIVATE_KEY", "priv")
  dispatcher = MagicMock()
  dispatcher.web_sender.enabled = True
  dispatcher.native_sender.enabled = False
  dispatcher.send_daily_broadcast = AsyncMock(return_value=BroadcastResult(sent=2, failed=0))
  build = MagicMock(return_value=dispatcher)
  monkeypatch.setattr("app.notifications.factory.build_notification_dispatcher", build)

  assert _load_script().main(["--date", "2026-01-01"]) == 0

  assert build.call_args.args[0].allowed_origins == ()
  dispatcher.send_daily_broadcast.assert_awaited_once_with(today=datetime.date(2026, 1, 1))
