# exercise catalog policy — who sees which exercises, who may change them
# private custom exercises are visible to their creator and admins only

import logging
from typing import Optional

from bson import ObjectId

from app.services.access import AccessContext, Subject

logger = logging.getLogger(__name__)


def creator_kind(subject: Subject) -> str:
    """custom.created_by value for exercises created by this subject"""
    if subject.kind == "admin":
        return "admin"
    if subject.kind == "therapist":
        return "therapist"
    return "proUser"


def visibility_query(subject: Optional[Subject]) -> dict:
    """mongodb filter restricting exercises to what the subject may see"""
    if subject is not None and subject.is_admin:
        return {}
    if subject is None:
        return {"custom.type": {"$ne": "private"}}
    return {"$or": [{"custom.type": {"$ne": "private"}}, {"custom.creator_id": subject.id}]}


def can_view(doc: dict, subject: Optional[Subject]) -> bool:
    custom = doc.get("custom") or {}
    if custom.get("type") != "private":
        return True
    if subject is None:
        return False
    return subject.is_admin or custom.get("creator_id") == subject.id


def owns(doc: dict, subject: Subject) -> bool:
    custom = doc.get("custom") or {}
    return custom.get("created_by") == creator_kind(subject) and custom.get("creator_id") == subject.id


def can_modify(doc: dict, subject: Subject) -> bool:
    """admins always; therapists their own; pro users their own while premium"""
    if subject.is_admin:
        return True
    if subject.kind == "therapist":
        return subject.active and owns(doc, subject)
    return subject.is_premium and owns(doc, subject)


def show_video(context: AccessContext) -> bool:
    return context.can_view_premium


async def delete_exercise_cascade(db, exercise_id: str) -> dict:
    """delete an exercise with the routines and favorites that reference it"""
    routines = await db.routines.delete_many({"exercise_id": exercise_id})
    favorites = await db.favorites.delete_many({"exercise_id": exercise_id})
    await db.exercises.delete_one({"_id": ObjectId(exercise_id)})
    logger.info(
        f"Exercise {exercise_id} deleted with {routines.deleted_count} routines "
        f"and {favorites.deleted_count} favorites"
    )
    return {"routines": routines.deleted_count, "favorites": favorites.deleted_count}
