"""Unit tests for API exception sanitization behavior."""

from __future__ import annotations

from app.core.exceptions import _sanitize_validation_errors


def test_sanitize_validation_errors_removes_input_and_serializes_exception_ctx() -> None:
  """Ensure validation errors stay JSON-serializable and never echo subscription material."""
  errors = [{"type": "value_error", "loc": ("body", "subscription", "keys", "auth"), "msg": "Value error, bad key.", "input": "secret-auth-value", "ctx": {"error": ValueError("bad key."), "input": "secret-auth-value"}}]
  sanitized = _sanitize_validation_errors(errors)
  assert "input" not in sanitized[0]
  assert sanitized[0]["loc"] == ["body", "subscription", "keys", "auth"]
  assert sanitized[0]["ctx"]["error"] == "ValueError: bad key."
  assert "input" not in sanitized[0]["ctx"]
