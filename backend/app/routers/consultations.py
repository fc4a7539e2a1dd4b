# consultation read router — a single consultation with its parties and exercises populated
# readable by the owning therapist, the patient and admins

import logging
from datetime import datetime

from fastapi import APIRouter, Depends

from app.dependencies import get_now, require_any
from app.errors import AuthorizationError, NotFoundError
from app.models.consultation import ConsultationDetailResponse, ConsultationEnvelope, doc_to_request
from app.models.exercise import doc_to_exercise
from app.models.therapist import doc_to_therapist
from app.models.user import doc_to_user
from app.services.access import Subject
from app.services.consultation_service import check_expiration
from app.services.db import Database, get_db, is_object_id, to_object_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/consultation", tags=["consultation"])


def _can_read(doc: dict, subject: Subject) -> bool:
    if subject.is_admin:
        return True
    if subject.kind == "therapist":
        return doc.get("therapist_id") == subject.id
    return doc.get("patient_id") == subject.id


@router.get("/{consultation_id}", response_model=ConsultationEnvelope)
async def get_consultation(
    consultation_id: str,
    subject: Subject = Depends(require_any),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """fetch one consultation; reading it settles an overdue expiration"""
    oid = to_object_id(consultation_id, "consultation id")
    doc = await db.consultations.find_one({"_id": oid})
    if not doc:
        raise NotFoundError("Consultation not found")
    if not _can_read(doc, subject):
        raise AuthorizationError("Not authorized to view this consultation")

    therapist_id = doc.get("therapist_id", "")
    therapist = await db.therapists.find_one({"_id": to_object_id(therapist_id, "therapist id")})
    if not therapist:
        raise NotFoundError("Therapist not found")
    patient = await db.users.find_one({"_id": to_object_id(doc.get("patient_id", ""), "patient id")})
    if not patient:
        raise NotFoundError("Patient not found")

    # public exercises plus the owning therapist's own private ones
    exercises = []
    for exercise_id in doc.get("recommended_exercises", []):
        if not is_object_id(exercise_id):
            continue
        exercise = await db.exercises.find_one({"_id": to_object_id(exercise_id)})
        if not exercise:
            continue
        custom = exercise.get("custom") or {}
        if custom.get("type") == "private" and custom.get("creator_id") != therapist_id:
            continue
        exercises.append(doc_to_exercise(exercise))

    doc = await check_expiration(db, doc, now)

    return ConsultationEnvelope(
        message="Consultation retrieved successfully",
        data=ConsultationDetailResponse(
            id=str(doc["_id"]),
            therapist=doc_to_therapist(therapist),
            patient=doc_to_user(patient),
            recommendedExercises=exercises,
            request=doc_to_request(doc),
            notes=doc.get("notes", ""),
            createdAt=doc.get("created_at", ""),
            updatedAt=doc.get("updated_at", ""),
        ),
    )
