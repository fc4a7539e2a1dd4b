# admin router — dashboard counts, therapist approval, consultation oversight
# all endpoints require an admin token

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from pymongo.errors import DuplicateKeyError

from app.dependencies import get_now, require_admin
from app.errors import ConflictError, NotFoundError, ValidationError
from app.models.admin import AdminStats
from app.models.consultation import ConsultationResponse, ConsultationStatusUpdate, doc_to_consultation
from app.models.social import MessageResponse
from app.models.therapist import (
    TherapistListResponse,
    TherapistResponse,
    TherapistStatusUpdate,
    TherapistUpdate,
    doc_to_therapist,
)
from app.models.user import UserResponse, doc_to_user
from app.services.access import Subject
from app.services.consultation_service import (
    apply_status,
    check_expiration,
    refresh_consultation_count,
    save_request,
    sweep_expired,
)
from app.services.db import Database, get_db, to_object_id
from app.services.membership import PAID_TYPES

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin", tags=["admin"])


async def _get_therapist(therapist_id: str, db: Database) -> dict:
    therapist = await db.therapists.find_one({"_id": to_object_id(therapist_id, "therapist id")})
    if not therapist:
        raise NotFoundError("Therapist not found")
    return therapist


async def _expired_list(cursor, db: Database, now: datetime) -> list[ConsultationResponse]:
    consultations = []
    async for doc in cursor:
        doc = await check_expiration(db, doc, now)
        consultations.append(doc_to_consultation(doc))
    return consultations


@router.get("/stats", response_model=AdminStats)
async def get_stats(
    subject: Subject = Depends(require_admin),
    db: Database = Depends(get_db),
):
    pro_query = {"membership": {"$elemMatch": {"status": "active", "type": {"$in": list(PAID_TYPES)}}}}
    return AdminStats(
        exercisesCount=await db.exercises.count_documents({}),
        usersCount=await db.users.count_documents({"role": {"$ne": "admin"}}),
        therapistsCount=await db.therapists.count_documents({"status": "active"}),
        pendingTherapistsCount=await db.therapists.count_documents({"status": "pending"}),
        premiumExercisesCount=await db.exercises.count_documents({"is_premium": True}),
        customExercisesCount=await db.exercises.count_documents({"custom.created_by": {"$ne": "admin"}}),
        proUsersCount=await db.users.count_documents({"role": {"$ne": "admin"}, **pro_query}),
        activeConsultationsCount=await db.consultations.count_documents({"request.status": "active"}),
        pendingConsultationsCount=await db.consultations.count_documents({"request.status": "pending"}),
    )


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    subject: Subject = Depends(require_admin),
    db: Database = Depends(get_db),
):
    cursor = db.users.find({"role": {"$ne": "admin"}}).sort("created_at", -1)
    return [doc_to_user(doc) async for doc in cursor]


# therapists

@router.get("/therapists", response_model=TherapistListResponse)
async def list_active_therapists(
    subject: Subject = Depends(require_admin),
    db: Database = Depends(get_db),
):
    """active therapists, plus how many approval requests are waiting"""
    cursor = db.therapists.find({"status": "active"}).sort("created_at", -1)
    therapists = [doc_to_therapist(doc) async for doc in cursor]
    pending = await db.therapists.count_documents({"status": "pending"})
    return TherapistListResponse(therapists=therapists, requestCount=pending)


@router.get("/therapists/all", response_model=TherapistListResponse)
async def list_all_therapists(
    subject: Subject = Depends(require_admin),
    db: Database = Depends(get_db),
):
    cursor = db.therapists.find({}).sort("created_at", -1)
    return TherapistListResponse(therapists=[doc_to_therapist(doc) async for doc in cursor])


@router.get("/therapists/{therapist_id}", response_model=TherapistResponse)
async def get_therapist(
    therapist_id: str,
    subject: Subject = Depends(require_admin),
    db: Database = Depends(get_db),
):
    return doc_to_therapist(await _get_therapist(therapist_id, db))


@router.put("/therapists/{therapist_id}", response_model=TherapistResponse)
async def update_therapist(
    therapist_id: str,
    body: TherapistUpdate,
    subject: Subject = Depends(require_admin),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    therapist = await _get_therapist(therapist_id, db)
    changes = body.model_dump(exclude_none=True, by_alias=False)
    if changes.get("email") and changes["email"] != therapist.get("email"):
        if await db.therapists.find_one({"email": changes["email"]}):
            raise ConflictError("Email already in use")

    if changes:
        changes["updated_at"] = now.isoformat()
        try:
            await db.therapists.update_one({"_id": therapist["_id"]}, {"$set": changes})
        except DuplicateKeyError:
            raise ConflictError("Email already in use")

    return doc_to_therapist(await db.therapists.find_one({"_id": therapist["_id"]}))


@router.put("/therapists/{therapist_id}/status", response_model=TherapistResponse)
async def set_therapist_status(
    therapist_id: str,
    body: TherapistStatusUpdate,
    subject: Subject = Depends(require_admin),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """approve, suspend or reject a therapist"""
    therapist = await _get_therapist(therapist_id, db)
    await db.therapists.update_one(
        {"_id": therapist["_id"]},
        {"$set": {"status": body.status, "updated_at": now.isoformat()}},
    )
    therapist["status"] = body.status

    logger.info(f"Therapist {therapist_id} status set to {body.status} by admin {subject.id}")
    return doc_to_therapist(therapist)


@router.delete("/therapists/{therapist_id}", response_model=MessageResponse)
async def delete_therapist(
    therapist_id: str,
    subject: Subject = Depends(require_admin),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """refused while the therapist still has consultations running"""
    therapist = await _get_therapist(therapist_id, db)

    active = 0
    cursor = db.consultations.find({"therapist_id": therapist_id, "request.status": "active"})
    async for doc in cursor:
        doc = await check_expiration(db, doc, now)
        if doc["request"]["status"] == "active":
            active += 1
    if active:
        raise ValidationError(f"Therapist has {active} active consultations and cannot be deleted")

    removed = await db.consultations.delete_many({"therapist_id": therapist_id})
    await db.therapists.delete_one({"_id": therapist["_id"]})

    logger.info(f"Therapist {therapist_id} deleted with {removed.deleted_count} consultations")
    return MessageResponse(message="Therapist removed")


# consultations

@router.get("/consultations", response_model=list[ConsultationResponse])
async def list_consultations(
    subject: Subject = Depends(require_admin),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    return await _expired_list(db.consultations.find({}).sort("created_at", -1), db, now)


@router.get("/consultations/therapist/{therapist_id}", response_model=list[ConsultationResponse])
async def therapist_consultations(
    therapist_id: str,
    subject: Subject = Depends(require_admin),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    await _get_therapist(therapist_id, db)
    cursor = db.consultations.find({"therapist_id": therapist_id}).sort("created_at", -1)
    return await _expired_list(cursor, db, now)


@router.put("/consultations/{consultation_id}/status", response_model=ConsultationResponse)
async def set_consultation_status(
    consultation_id: str,
    body: ConsultationStatusUpdate,
    subject: Subject = Depends(require_admin),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    doc = await db.consultations.find_one({"_id": to_object_id(consultation_id, "consultation id")})
    if not doc:
        raise NotFoundError("Consultation not found")

    updated = apply_status(doc, body.status, body.active_days, now)
    await save_request(db, updated)
    await refresh_consultation_count(db, doc.get("therapist_id", ""))

    logger.info(f"Consultation {consultation_id} status set to {body.status} by admin {subject.id}")
    return doc_to_consultation(updated)


@router.post("/consultations/expire", response_model=MessageResponse)
async def expire_consultations(
    subject: Subject = Depends(require_admin),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """run the expiration sweep over every active consultation"""
    count = await sweep_expired(db, now)
    return MessageResponse(message=f"{count} consultations expired")
