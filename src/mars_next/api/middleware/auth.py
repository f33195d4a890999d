"""
API key authentication.

Simple bearer token validation against Settings.api_key.

Usage:
    Set API_KEY in the environment:  API_KEY=your-secret-key
    Clients pass:                    Authorization: Bearer your-secret-key

Security:
    - In production (ENV=production), API_KEY is REQUIRED. Startup fails
      if it's missing unless AUTH_DISABLED=true is set explicitly.
    - In development (default), auth is optional.
    - Key comparison uses constant-time hmac.compare_digest.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass

from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ...config import Settings

logger = logging.getLogger(__name__)

security_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    """
    Who is calling. caller_id is a short SHA-256 prefix of the key, or "anon"
    when auth is disabled. It identifies the client, not the end user.
    """

    api_key: str | None = None
    caller_id: str = "anon"


def check_production_auth(settings: Settings) -> None:
    """
    Call on startup.

    Raises RuntimeError in production when API_KEY is missing and auth was not
    explicitly disabled.
    """
    if settings.api_key:
        return
    if settings.is_production:
        if settings.auth_disabled:
            logger.warning(
                "[Auth] AUTH_DISABLED=true in production. "
                "All endpoints are unauthenticated."
            )
            return
        raise RuntimeError(
            "API_KEY is required in production mode. "
            "Set API_KEY in the environment, or set AUTH_DISABLED=true "
            "to explicitly disable auth."
        )
    logger.info("[Auth] No API_KEY set (dev mode). Endpoints are unauthenticated.")


async def verify_api_key(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Security(security_scheme),
) -> AuthContext:
    """FastAPI dependency. 401 without credentials, 403 with the wrong key."""
    settings: Settings = request.app.state.settings
    expected_key = settings.api_key

    if expected_key is None:
        return AuthContext()

    client_host = request.client.host if request.client else "unknown"
    if credentials is None:
        logger.warning(f"[Auth] Missing credentials from {client_host}")
        raise HTTPException(status_code=401, detail="Missing API key")

    if not hmac.compare_digest(credentials.credentials, expected_key):
        logger.warning(f"[Auth] Invalid API key from {client_host}")
        raise HTTPException(status_code=403, detail="Invalid API key")

    key = credentials.credentials
    return AuthContext(api_key=key, caller_id=hashlib.sha256(key.encode()).hexdigest()[:16])
