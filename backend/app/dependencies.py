# fastapi dependency injection
# fail-open access classification for catalog reads, fail-closed role guards for mutations

import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.errors import AuthenticationError, AuthorizationError
from app.services.access import AccessContext, Subject, classify, resolve_subject
from app.services.clock import utcnow
from app.services.db import Database, get_db

logger = logging.getLogger(__name__)

# auto_error off so both guards decide how a missing credential is handled
security = HTTPBearer(auto_error=False)

ROLES = ("user", "proUser", "therapist", "admin")


async def get_now() -> datetime:
    """current instant, overridable in tests"""
    return utcnow()


async def get_access_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
) -> AccessContext:
    """classify the caller for content shaping. never rejects the request."""
    if credentials is None:
        return AccessContext()
    try:
        subject = await resolve_subject(credentials.credentials, db, now)
    except AuthenticationError:
        return AccessContext()

    level = classify(subject)
    if level == "anonymous":
        return AccessContext()
    return AccessContext(level=level, subject=subject)


def require_subject(*roles: str):
    """factory for a fail-closed guard accepting any of the given roles"""
    unknown = [r for r in roles if r not in ROLES]
    if unknown:
        raise ValueError(f"Unknown roles: {unknown}")

    async def subject_checker(
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
        db: Database = Depends(get_db),
        now: datetime = Depends(get_now),
    ) -> Subject:
        if credentials is None:
            raise AuthenticationError("Not authorized, no token")

        subject = await resolve_subject(credentials.credentials, db, now)

        if subject.kind == "therapist":
            if "therapist" not in roles:
                raise AuthorizationError("Not authorized for this resource")
            if not subject.active:
                raise AuthorizationError("Access denied. Account is not active")
            return subject

        if subject.kind == "admin":
            # admins are users too
            if "admin" in roles or "user" in roles:
                return subject
            raise AuthorizationError("Not authorized for this resource")

        if "user" in roles:
            return subject
        if "proUser" in roles:
            if subject.is_premium:
                return subject
            raise AuthorizationError("This route requires Pro user status")
        if roles == ("admin",):
            raise AuthorizationError("Not authorized as an admin")
        raise AuthorizationError("Not authorized for this resource")

    return subject_checker


require_user = require_subject("user")
require_pro_user = require_subject("proUser")
require_therapist = require_subject("therapist")
require_admin = require_subject("admin")
require_admin_or_therapist = require_subject("admin", "therapist")
require_content_creator = require_subject("proUser", "admin", "therapist")
require_any = require_subject("user", "therapist", "admin")
