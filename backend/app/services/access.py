# access classifier — resolves a bearer credential to one subject and access level
# shared by the fail-open catalog classifier and the fail-closed route guards

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal, Optional

from bson import ObjectId

from app.errors import AuthenticationError
from app.services.auth_service import decode_token
from app.services.membership import current_membership, is_premium, refresh_membership

logger = logging.getLogger(__name__)

SubjectKind = Literal["therapist", "admin", "user"]
AccessLevel = Literal["anonymous", "normal", "premium", "therapist", "admin"]


@dataclass
class Subject:
    """the resolved caller: a therapist, an admin or a user"""

    kind: SubjectKind
    entity: dict
    active: bool = True

    @property
    def id(self) -> str:
        return str(self.entity["_id"])

    @property
    def membership(self) -> Optional[dict]:
        return current_membership(self.entity.get("membership"))

    @property
    def is_premium(self) -> bool:
        return is_premium(self.entity.get("membership"))

    @property
    def is_therapist(self) -> bool:
        return self.kind == "therapist" and self.active

    @property
    def is_admin(self) -> bool:
        return self.kind == "admin"


@dataclass
class AccessContext:
    """what the fail-open classifier attaches to a catalog read"""

    level: AccessLevel = "anonymous"
    subject: Optional[Subject] = field(default=None)

    @property
    def can_view_premium(self) -> bool:
        return self.level in ("premium", "therapist", "admin")


def classify(subject: Optional[Subject]) -> AccessLevel:
    """map a resolved subject to the level used for content shaping"""
    if subject is None:
        return "anonymous"
    if subject.kind == "therapist":
        return "therapist" if subject.active else "anonymous"
    if subject.kind == "admin":
        return "admin"
    return "premium" if subject.is_premium else "normal"


async def resolve_subject(token: str, db, now: datetime) -> Subject:
    """decode the token and look the subject up: active therapist, then user/admin,
    then an inactive therapist. membership corrections are persisted on the way."""
    payload = decode_token(token) if token else None
    if payload is None:
        raise AuthenticationError("Not authorized, token failed")
    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    subject_id = payload.get("sub")
    if not subject_id or not ObjectId.is_valid(subject_id):
        raise AuthenticationError("Token missing subject")
    oid = ObjectId(subject_id)

    therapist = await db.therapists.find_one({"_id": oid})
    if therapist and therapist.get("status") == "active":
        await refresh_membership(db.therapists, therapist, now)
        return Subject(kind="therapist", entity=therapist)

    user = await db.users.find_one({"_id": oid})
    if user:
        if user.get("role") == "admin":
            return Subject(kind="admin", entity=user)
        await refresh_membership(db.users, user, now)
        return Subject(kind="user", entity=user)

    if therapist:
        return Subject(kind="therapist", entity=therapist, active=False)

    logger.warning(f"Token subject {subject_id} not found")
    raise AuthenticationError("Not authorized, subject not found")
