# users router — profile, membership, consultations and the social graph of a patient
# every endpoint requires a user (or admin) token

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pymongo.errors import DuplicateKeyError

from app.dependencies import get_now, require_user
from app.errors import AuthorizationError, ConflictError, InternalError, NotFoundError
from app.models.consultation import ConsultationResponse, doc_to_consultation
from app.models.exercise import ExerciseResponse, doc_to_exercise
from app.models.social import FavoriteCreate, FavoriteStatus, FollowCreate, MessageResponse
from app.models.therapist import TherapistResponse, doc_to_therapist
from app.models.user import (
    MembershipPayment,
    MembershipResponse,
    ProfileUpdate,
    UserResponse,
    doc_to_membership,
    doc_to_user,
)
from app.services.access import AccessContext, Subject, classify
from app.services.auth_service import hash_password
from app.services.catalog import can_view, show_video
from app.services.consultation_service import check_expiration
from app.services.db import Database, get_db, to_object_id
from app.services.membership import record_payment

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/users", tags=["users"])


def _viewer(subject: Subject) -> AccessContext:
    return AccessContext(level=classify(subject), subject=subject)


# profile

@router.get("/profile", response_model=UserResponse)
async def get_profile(subject: Subject = Depends(require_user)):
    return doc_to_user(subject.entity)


@router.put("/profile", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdate,
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    update = {}
    if body.full_name is not None:
        update["full_name"] = body.full_name.strip()
    if body.profile_image is not None:
        update["profile_image"] = body.profile_image
    if body.email is not None and body.email != subject.entity.get("email"):
        if await db.users.find_one({"email": body.email}) or await db.therapists.find_one({"email": body.email}):
            raise ConflictError("Email already in use")
        update["email"] = body.email
    if body.password is not None:
        update["hashed_password"] = hash_password(body.password)

    if update:
        update["updated_at"] = now.isoformat()
        try:
            await db.users.update_one({"_id": subject.entity["_id"]}, {"$set": update})
        except DuplicateKeyError:
            raise ConflictError("Email already in use")
        logger.info(f"Profile updated for user {subject.id}")

    user = await db.users.find_one({"_id": subject.entity["_id"]})
    return doc_to_user(user)


# membership

@router.get("/membership", response_model=MembershipResponse)
async def get_membership(subject: Subject = Depends(require_user)):
    """effective tier, already corrected by the access check"""
    return doc_to_membership(subject.entity.get("membership"))


@router.put("/membership", response_model=MembershipResponse)
async def pay_membership(
    body: MembershipPayment,
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    records = record_payment(subject.entity.get("membership"), body.type, now)
    await db.users.update_one(
        {"_id": subject.entity["_id"]},
        {"$set": {"membership": records, "updated_at": now.isoformat()}},
    )
    logger.info(f"User {subject.id} upgraded to {body.type}")
    return doc_to_membership(records)


# consultations

@router.get("/consultations", response_model=list[ConsultationResponse])
async def my_consultations(
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    cursor = db.consultations.find({"patient_id": subject.id}).sort("created_at", -1)
    consultations = []
    async for doc in cursor:
        doc = await check_expiration(db, doc, now)
        consultations.append(doc_to_consultation(doc))
    return consultations


# favorites

@router.get("/favorites", response_model=list[ExerciseResponse])
async def list_favorites(
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
):
    video = show_video(_viewer(subject))
    cursor = db.favorites.find({"user_id": subject.id}).sort("created_at", -1)
    exercises = []
    async for fav in cursor:
        exercise = await db.exercises.find_one({"_id": to_object_id(fav["exercise_id"])})
        # an exercise made private after it was favorited drops out
        if exercise and can_view(exercise, subject):
            exercises.append(doc_to_exercise(exercise, show_video=video))
    return exercises


@router.post("/favorites", response_model=FavoriteStatus, status_code=status.HTTP_201_CREATED)
async def add_favorite(
    body: FavoriteCreate,
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """add a favorite edge and bump the exercise counter, undoing the edge if the bump fails"""
    oid = to_object_id(body.exercise_id, "exercise id")
    exercise = await db.exercises.find_one({"_id": oid})
    if not exercise or not can_view(exercise, subject):
        raise NotFoundError("Exercise not found")

    edge = {"user_id": subject.id, "exercise_id": body.exercise_id}
    if await db.favorites.find_one(edge):
        raise ConflictError("Exercise already in favorites")

    try:
        await db.favorites.insert_one({**edge, "created_at": now.isoformat()})
    except DuplicateKeyError:
        raise ConflictError("Exercise already in favorites")

    try:
        await db.exercises.update_one({"_id": oid}, {"$inc": {"favorites": 1}})
    except Exception:
        logger.exception(f"Favorite counter update failed for exercise {body.exercise_id}, rolling back")
        await db.favorites.delete_one(edge)
        raise InternalError("Failed to add favorite")

    return FavoriteStatus(isFavorite=True, message="Exercise added to favorites")


@router.get("/favorites/{exercise_id}", response_model=FavoriteStatus)
async def favorite_status(
    exercise_id: str,
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
):
    to_object_id(exercise_id, "exercise id")
    found = await db.favorites.find_one({"user_id": subject.id, "exercise_id": exercise_id})
    if found:
        return FavoriteStatus(isFavorite=True, message="Exercise is in favorites")
    return FavoriteStatus(isFavorite=False, message="Exercise is not in favorites")


@router.delete("/favorites/{exercise_id}", response_model=FavoriteStatus)
async def remove_favorite(
    exercise_id: str,
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
):
    oid = to_object_id(exercise_id, "exercise id")
    result = await db.favorites.delete_one({"user_id": subject.id, "exercise_id": exercise_id})
    if not result.deleted_count:
        raise NotFoundError("Exercise not in favorites")

    await db.exercises.update_one({"_id": oid, "favorites": {"$gt": 0}}, {"$inc": {"favorites": -1}})
    return FavoriteStatus(isFavorite=False, message="Exercise removed from favorites")


# following

@router.get("/following", response_model=list[TherapistResponse])
async def list_following(
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
):
    cursor = db.follows.find({"user_id": subject.id}).sort("created_at", -1)
    therapists = []
    async for follow in cursor:
        therapist = await db.therapists.find_one({"_id": to_object_id(follow["therapist_id"])})
        if therapist:
            therapists.append(doc_to_therapist(therapist))
    return therapists


@router.post("/following", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def follow_therapist(
    body: FollowCreate,
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    oid = to_object_id(body.therapist_id, "therapist id")
    if not await db.therapists.find_one({"_id": oid}):
        raise NotFoundError("Therapist not found")

    edge = {"user_id": subject.id, "therapist_id": body.therapist_id}
    if await db.follows.find_one(edge):
        raise ConflictError("Already following this therapist")
    try:
        await db.follows.insert_one({**edge, "created_at": now.isoformat()})
    except DuplicateKeyError:
        raise ConflictError("Already following this therapist")

    logger.info(f"User {subject.id} followed therapist {body.therapist_id}")
    return MessageResponse(message="Therapist followed")


@router.delete("/following/{therapist_id}", response_model=MessageResponse)
async def unfollow_therapist(
    therapist_id: str,
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
):
    to_object_id(therapist_id, "therapist id")
    result = await db.follows.delete_one({"user_id": subject.id, "therapist_id": therapist_id})
    if not result.deleted_count:
        raise NotFoundError("Not following this therapist")
    return MessageResponse(message="Therapist unfollowed")


@router.get("/therapists/{therapist_id}/exercises", response_model=list[ExerciseResponse])
async def followed_therapist_exercises(
    therapist_id: str,
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
):
    """public exercises authored by a therapist the user follows"""
    to_object_id(therapist_id, "therapist id")
    if not await db.follows.find_one({"user_id": subject.id, "therapist_id": therapist_id}):
        raise AuthorizationError("You must follow this therapist to view their exercises")

    query = {
        "custom.created_by": "therapist",
        "custom.creator_id": therapist_id,
        "custom.type": "public",
    }
    video = show_video(_viewer(subject))
    cursor = db.exercises.find(query).sort("created_at", -1)
    return [doc_to_exercise(doc, show_video=video) async for doc in cursor]
