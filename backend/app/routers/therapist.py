# therapist router — profile, membership, patients and the consultations a therapist owns
# all endpoints require an active therapist token

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from pymongo.errors import DuplicateKeyError

from app.dependencies import get_now, require_therapist
from app.errors import AuthorizationError, ConflictError, NotFoundError
from app.models.consultation import (
    ConsultationActivate,
    ConsultationCreate,
    ConsultationResponse,
    ConsultationUpdate,
    doc_to_consultation,
)
from app.models.social import MessageResponse
from app.models.therapist import TherapistResponse, TherapistUpdate, doc_to_therapist
from app.models.user import (
    MembershipPayment,
    MembershipResponse,
    PatientCreate,
    UserResponse,
    doc_to_membership,
    doc_to_user,
)
from app.services.access import Subject
from app.services.auth_service import hash_password
from app.services.consultation_service import (
    activate,
    apply_update,
    check_expiration,
    new_consultation,
    refresh_consultation_count,
)
from app.services.db import Database, get_db, to_object_id
from app.services.membership import free_membership, record_payment

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/therapist", tags=["therapist"])


async def _check_exercises(exercise_ids: list[str], db: Database) -> None:
    for exercise_id in exercise_ids:
        oid = to_object_id(exercise_id, "exercise id")
        if not await db.exercises.find_one({"_id": oid}):
            raise NotFoundError(f"Exercise {exercise_id} not found")


async def _owned_consultation(consultation_id: str, subject: Subject, db: Database) -> dict:
    """load a consultation, 404 if missing, 403 if another therapist owns it"""
    oid = to_object_id(consultation_id, "consultation id")
    doc = await db.consultations.find_one({"_id": oid})
    if not doc:
        raise NotFoundError("Consultation not found")
    if doc.get("therapist_id") != subject.id:
        logger.warning(f"Therapist {subject.id} tried to modify consultation {consultation_id}")
        raise AuthorizationError("Not authorized to modify this consultation")
    return doc


# profile

@router.get("/profile", response_model=TherapistResponse)
async def get_profile(subject: Subject = Depends(require_therapist)):
    return doc_to_therapist(subject.entity)


@router.put("/profile", response_model=TherapistResponse)
async def update_profile(
    body: TherapistUpdate,
    subject: Subject = Depends(require_therapist),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    changes = body.model_dump(exclude_none=True, by_alias=False)
    email = changes.get("email")
    if email and email != subject.entity.get("email"):
        if await db.therapists.find_one({"email": email}) or await db.users.find_one({"email": email}):
            raise ConflictError("Email already in use")
    elif email:
        changes.pop("email")

    if changes:
        changes["updated_at"] = now.isoformat()
        try:
            await db.therapists.update_one({"_id": subject.entity["_id"]}, {"$set": changes})
        except DuplicateKeyError:
            raise ConflictError("Email already in use")
        logger.info(f"Profile updated for therapist {subject.id}")

    therapist = await db.therapists.find_one({"_id": subject.entity["_id"]})
    return doc_to_therapist(therapist)


# membership

@router.get("/membership", response_model=MembershipResponse)
async def get_membership(subject: Subject = Depends(require_therapist)):
    return doc_to_membership(subject.entity.get("membership"))


@router.put("/membership", response_model=MembershipResponse)
async def pay_membership(
    body: MembershipPayment,
    subject: Subject = Depends(require_therapist),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """record a completed payment; the previous active record is retired first"""
    records = record_payment(subject.entity.get("membership"), body.type, now)
    await db.therapists.update_one(
        {"_id": subject.entity["_id"]},
        {"$set": {"membership": records, "updated_at": now.isoformat()}},
    )
    logger.info(f"Therapist {subject.id} upgraded to {body.type}")
    return doc_to_membership(records)


# patients

@router.post("/patients", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register_patient(
    body: PatientCreate,
    subject: Subject = Depends(require_therapist),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """create a user account on a patient's behalf"""
    if await db.users.find_one({"email": body.email}) or await db.therapists.find_one({"email": body.email}):
        raise ConflictError("User already exists")

    user_doc = {
        "email": body.email,
        "hashed_password": hash_password(body.password),
        "full_name": body.full_name.strip(),
        "profile_image": None,
        "membership": [free_membership()],
        "creator": {"created_by": "therapist", "created_by_id": subject.id},
        "role": "user",
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }
    try:
        await db.users.insert_one(user_doc)
    except DuplicateKeyError:
        raise ConflictError("User already exists")

    logger.info(f"Therapist {subject.id} registered patient {user_doc['_id']}")
    return doc_to_user(user_doc)


@router.get("/patients", response_model=list[UserResponse])
async def list_patients(
    subject: Subject = Depends(require_therapist),
    db: Database = Depends(get_db),
):
    cursor = db.users.find({"creator.created_by": "therapist", "creator.created_by_id": subject.id})
    cursor = cursor.sort("created_at", -1)
    return [doc_to_user(doc) async for doc in cursor]


# consultations

@router.post("/consultations", response_model=ConsultationResponse, status_code=status.HTTP_201_CREATED)
async def create_consultation(
    body: ConsultationCreate,
    subject: Subject = Depends(require_therapist),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """create a consultation, active from now for activeDays"""
    patient_oid = to_object_id(body.patient_id, "patient id")
    if not await db.users.find_one({"_id": patient_oid}):
        raise NotFoundError("Patient not found")
    await _check_exercises(body.recommended_exercises, db)

    doc = new_consultation(
        therapist_id=subject.id,
        patient_id=body.patient_id,
        exercise_ids=body.recommended_exercises,
        notes=body.notes,
        active_days=body.active_days,
        now=now,
    )
    await db.consultations.insert_one(doc)
    await refresh_consultation_count(db, subject.id)

    logger.info(f"Consultation {doc['_id']} created by therapist {subject.id} for {body.patient_id}")
    return doc_to_consultation(doc)


@router.get("/consultations", response_model=list[ConsultationResponse])
async def list_consultations(
    subject: Subject = Depends(require_therapist),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    cursor = db.consultations.find({"therapist_id": subject.id}).sort("created_at", -1)
    consultations = []
    async for doc in cursor:
        doc = await check_expiration(db, doc, now)
        consultations.append(doc_to_consultation(doc))
    return consultations


@router.put("/consultations/{consultation_id}", response_model=ConsultationResponse)
async def update_consultation(
    consultation_id: str,
    body: ConsultationUpdate,
    subject: Subject = Depends(require_therapist),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """replace exercises/notes; a new activeDays counts from the original creation"""
    doc = await _owned_consultation(consultation_id, subject, db)
    if body.recommended_exercises is not None:
        await _check_exercises(body.recommended_exercises, db)

    updated = apply_update(doc, body.recommended_exercises, body.notes, body.active_days, now)
    await db.consultations.update_one(
        {"_id": doc["_id"]},
        {"$set": {
            "recommended_exercises": updated["recommended_exercises"],
            "notes": updated.get("notes", ""),
            "request": updated["request"],
            "updated_at": updated["updated_at"],
        }},
    )
    updated = await check_expiration(db, updated, now)
    await refresh_consultation_count(db, subject.id)
    return doc_to_consultation(updated)


@router.put("/consultations/{consultation_id}/activate", response_model=ConsultationResponse)
async def activate_consultation(
    consultation_id: str,
    body: ConsultationActivate,
    subject: Subject = Depends(require_therapist),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """re-activate, restarting the window from now"""
    doc = await _owned_consultation(consultation_id, subject, db)
    updated = activate(doc, body.active_days, now)
    await db.consultations.update_one(
        {"_id": doc["_id"]},
        {"$set": {"request": updated["request"], "updated_at": updated["updated_at"]}},
    )
    await refresh_consultation_count(db, subject.id)

    logger.info(f"Consultation {consultation_id} activated for {updated['request']['active_days']} days")
    return doc_to_consultation(updated)


@router.delete("/consultations/{consultation_id}", response_model=MessageResponse)
async def delete_consultation(
    consultation_id: str,
    subject: Subject = Depends(require_therapist),
    db: Database = Depends(get_db),
):
    doc = await _owned_consultation(consultation_id, subject, db)
    await db.consultations.delete_one({"_id": doc["_id"]})
    await refresh_consultation_count(db, subject.id)

    logger.info(f"Consultation {consultation_id} deleted by therapist {subject.id}")
    return MessageResponse(message="Consultation removed")
