from __future__ import annotations

import json
import logging
from dataclasses import replace
from unittest.mock import MagicMock

import pytest
from app.config import get_settings
from app.core.firebase import FIREBASE_APP_NAME, delete_firebase_app, initialize_firebase_app


@pytest.fixture
def settings(monkeypatch):
  monkeypatch.setenv("GOSPEL_ALLOWED_ORIGINS", "http://localhost:5173")
  return get_settings()


def test_missing_descriptor_disables_native_push(settings, caplog):
  with caplog.at_level(logging.WARNING, logger="app.core.firebase"):
    assert initialize_firebase_app(replace(settings, firebase_service_account_json=None)) is None

  assert "not set" in caplog.text


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", json.dumps({"type": "authorized_user"})])
def test_malformed_descriptor_disables_native_push(settings, caplog, raw):
  with caplog.at_level(logging.ERROR, logger="app.core.firebase"):
    assert initialize_firebase_app(replace(settings, firebase_service_account_json=raw), name="gospel-era-test-malformed") is None

  assert "malformed" in caplog.text
  # The descriptor must never be echoed into logs.
  assert raw not in caplog.text


def test_valid_descriptor_initializes_named_app(settings, monkeypatch):
  descriptor = {"type": "service_account", "project_id": "gospel-era"}
  cred = object()
  firebase_app = MagicMock()
  calls = {}

  def _get_app(name):
    raise ValueError("missing")

  def _initialize_app(credential, options, name):
    calls.update(credential=credential, options=options, name=name)
    return firebase_app

  monkeypatch.setattr("app.core.firebase.firebase_admin.get_app", _get_app)
  monkeypatch.setattr("app.core.firebase.firebase_admin.initialize_app", _initialize_app)
  monkeypatch.setattr("app.core.firebase.credentials.Certificate", lambda data: cred)

  result = initialize_firebase_app(replace(settings, firebase_service_account_json=json.dumps(descriptor), push_timeout_seconds=7.0))

  assert result is firebase_app
  assert calls == {"credential": cred, "options": {"httpTimeout": 7.0, "projectId": "gospel-era"}, "name": FIREBASE_APP_NAME}


def test_existing_named_app_is_reused(settings, monkeypatch):
  existing = MagicMock()
  monkeypatch.setattr("app.core.firebase.firebase_admin.get_app", lambda name: existing)

  def _fail(*args, **kwargs):
    raise AssertionError("initialize_app must not be called twice")

  monkeypatch.setattr("app.core.firebase.firebase_admin.initialize_app", _fail)

  assert initialize_firebase_app(replace(settings, firebase_service_account_json="{}")) is existing


def test_delete_firebase_app_tolerates_missing_app(monkeypatch):
  deleted = []
  monkeypatch.setattr("app.core.firebase.firebase_admin.delete_app", deleted.append)

  delete_firebase_app(None)
  firebase_app = MagicMock()
  delete_firebase_app(firebase_app)

  assert deleted == [firebase_app]
