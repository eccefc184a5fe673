from __future__ import annotations

import logging
from datetime import datetime, timezone

from pydantic import ValidationError
from starlette.requests import Request

from sas_crm.crm.schemas import UserSession
from sas_crm.db.client import DocumentClient


logger = logging.getLogger("sas_crm.auth")

# NextAuth uses the __Secure- prefix when served over https.
SESSION_COOKIE_NAMES = ("__Secure-next-auth.session-token", "next-auth.session-token")


def _session_token(request: Request) -> str | None:
    for cookie_name in SESSION_COOKIE_NAMES:
        token = request.cookies.get(cookie_name)
        if token:
            return token
    return None


def get_user_id(request: Request, client: DocumentClient, *, now: datetime | None = None) -> str | None:
    """Resolve the tenant user id for a request from its session cookie.

    Returns ``None`` when the request carries no session cookie, the token is
    unknown or the session has expired. ``None`` means unauthenticated.
    """
    token = _session_token(request)
    if token is None:
        return None

    item = client.get_item("Sessions", {"sessionToken": token})
    if item is None:
        return None

    try:
        session = UserSession.model_validate(item)
    except ValidationError as exc:
        logger.warning("auth.session.invalid", extra={"table": "Sessions", "error": str(exc)})
        return None

    expires = session.expires
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    if expires <= current:
        return None
    return session.user_id
