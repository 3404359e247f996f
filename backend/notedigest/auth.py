"""
NoteDigest Backend — Authentication Boundary
=============================================

What:  Resolves the authenticated caller of a request.
How:   A SessionProvider returns the current user or None; the FastAPI
       dependency `get_current_user` turns None into a 401.
Who:   Every /api route depends on `get_current_user`.

Deployment Model:
    Login, signup and session issuance live in the authentication gateway
    in front of this service. The gateway forwards the authenticated user id
    in a header (AUTH_USER_HEADER, default X-User-Id). When AUTH_GATEWAY_KEY
    is set, the gateway must also send it in X-Gateway-Key; requests without
    the matching key are treated as unauthenticated.
"""

import hmac
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request

from notedigest.config import settings
from notedigest.exceptions import UnauthenticatedError

logger = logging.getLogger(__name__)

GATEWAY_KEY_HEADER = "X-Gateway-Key"
MAX_USER_ID_LENGTH = 255


@dataclass(frozen=True)
class CurrentUser:
    id: str
    email: Optional[str] = None


class SessionProvider(ABC):
    """Looks up the caller's session; never raises for a missing session."""

    @abstractmethod
    async def get_current_user(self, request: Request) -> Optional[CurrentUser]:
        ...


class GatewayHeaderSessionProvider(SessionProvider):
    """Trusts the user id header set by the authentication gateway."""

    def __init__(self, user_header: str, gateway_key: str = ""):
        self.user_header = user_header
        self.gateway_key = gateway_key

    async def get_current_user(self, request: Request) -> Optional[CurrentUser]:
        if self.gateway_key:
            presented = request.headers.get(GATEWAY_KEY_HEADER, "")
            if not hmac.compare_digest(presented.encode(), self.gateway_key.encode()):
                logger.warning("Request to %s without a valid gateway key", request.url.path)
                return None

        user_id = request.headers.get(self.user_header, "").strip()
        if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
            return None
        return CurrentUser(id=user_id, email=request.headers.get("X-User-Email"))


_session_provider: Optional[SessionProvider] = None


def get_session_provider() -> SessionProvider:
    global _session_provider
    if _session_provider is None:
        _session_provider = GatewayHeaderSessionProvider(
            user_header=settings.auth_user_header,
            gateway_key=settings.auth_gateway_key,
        )
    return _session_provider


async def get_current_user(
    request: Request,
    provider: SessionProvider = Depends(get_session_provider),
) -> CurrentUser:
    """
    FastAPI dependency for every /api route.

    Raises:
        UnauthenticatedError: No session accompanies the request (401).
    """
    user = await provider.get_current_user(request)
    if user is None:
        raise UnauthenticatedError()
    return user
