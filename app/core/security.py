from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Annotated, Any

import httpx
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer(auto_error=False)

_SUPABASE_USER_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class AuthenticatedUser:
  """The account behind a verified Supabase access token."""

  id: str
  email: str | None = None


async def fetch_supabase_user(access_token: str, *, settings: Settings) -> dict[str, Any] | None:
  """Resolve an access token through Supabase Auth; None when the token is rejected."""
  if not settings.supabase_url or not settings.supabase_anon_key:
    raise RuntimeError("Supabase auth is not configured (SUPABASE_URL / SUPABASE_ANON_KEY).")

  url = f"{settings.supabase_url.rstrip('/')}/auth/v1/user"
  headers = {"apikey": settings.supabase_anon_key, "Authorization": f"Bearer {access_token}"}
  async with httpx.AsyncClient(timeout=_SUPABASE_USER_TIMEOUT_SECONDS) as client:
    response = await client.get(url, headers=headers)

  if response.status_code in {status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN}:
    return None
  response.raise_for_status()
  return response.json()


async def get_current_user(
  token: Annotated[HTTPAuthorizationCredentials | None, Depends(security_scheme)], settings: Annotated[Settings, Depends(get_settings)]
) -> AuthenticatedUser:
  """Verify the bearer token with Supabase and return the calling account."""
  if token is None or token.scheme.lower() != "bearer" or not token.credentials:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing or invalid authorization header", headers={"WWW-Authenticate": "Bearer"})

  try:
    user = await fetch_supabase_user(token.credentials, settings=settings)
  except RuntimeError as exc:
    logger.error("Authentication unavailable: %s", exc)
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Authentication service not configured") from exc
  except httpx.HTTPError as exc:
    logger.error("Supabase user lookup failed: %s", exc)
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Authentication service unavailable") from exc

  if not user or not user.get("id"):
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token", headers={"WWW-Authenticate": "Bearer"})

  return AuthenticatedUser(id=str(user["id"]), email=user.get("email"))
