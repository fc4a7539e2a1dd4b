# consultation models — therapist-to-patient exercise prescriptions
# status lives in the request sub-document: pending, active or inactive

from typing import Optional
from pydantic import BaseModel, Field

from app.models.exercise import ExerciseResponse
from app.models.therapist import TherapistResponse
from app.models.user import UserResponse


class ConsultationCreate(BaseModel):
    """payload for a therapist prescribing exercises to a patient"""
    patient_id: str = Field(..., alias="patientId", description="target user id")
    recommended_exercises: list[str] = Field(default_factory=list, alias="recommendedExercises")
    notes: Optional[str] = Field(None, max_length=5000)
    active_days: Optional[int] = Field(None, alias="activeDays", description="window length, defaults from settings")

    model_config = {"populate_by_name": True}


class ConsultationUpdate(BaseModel):
    """content update; activeDays is measured from the consultation's creation"""
    recommended_exercises: Optional[list[str]] = Field(None, alias="recommendedExercises")
    notes: Optional[str] = Field(None, max_length=5000)
    active_days: Optional[int] = Field(None, alias="activeDays")

    model_config = {"populate_by_name": True}


class ConsultationActivate(BaseModel):
    """re-activation restarts the window from now"""
    active_days: Optional[int] = Field(None, alias="activeDays")

    model_config = {"populate_by_name": True}


class ConsultationStatusUpdate(BaseModel):
    # plain str so unknown values reach the engine's own check
    status: str
    active_days: Optional[int] = Field(None, alias="activeDays")

    model_config = {"populate_by_name": True}


class ConsultationRequest(BaseModel):
    status: str = "pending"
    active_days: int = Field(0, alias="activeDays")
    expires_on: Optional[str] = Field(None, alias="expiresOn")
    activated_at: Optional[str] = Field(None, alias="activatedAt")

    model_config = {"populate_by_name": True}


class ConsultationResponse(BaseModel):
    id: str
    therapist_id: str = Field(..., alias="therapistId")
    patient_id: str = Field(..., alias="patientId")
    recommended_exercises: list[str] = Field(default_factory=list, alias="recommendedExercises")
    request: ConsultationRequest = Field(default_factory=ConsultationRequest)
    notes: str = ""
    created_at: str = Field("", alias="createdAt")
    updated_at: str = Field("", alias="updatedAt")

    model_config = {"populate_by_name": True}


class ConsultationDetailResponse(BaseModel):
    """consultation with therapist, patient and exercises populated"""
    id: str
    therapist: TherapistResponse
    patient: UserResponse
    recommended_exercises: list[ExerciseResponse] = Field(default_factory=list, alias="recommendedExercises")
    request: ConsultationRequest = Field(default_factory=ConsultationRequest)
    notes: str = ""
    created_at: str = Field("", alias="createdAt")
    updated_at: str = Field("", alias="updatedAt")

    model_config = {"populate_by_name": True}


class ConsultationEnvelope(BaseModel):
    success: bool = True
    message: str
    data: ConsultationDetailResponse


def doc_to_request(doc: dict) -> ConsultationRequest:
    request = doc.get("request") or {}
    return ConsultationRequest(
        status=request.get("status", "pending"),
        activeDays=request.get("active_days") or 0,
        expiresOn=request.get("expires_on"),
        activatedAt=request.get("activated_at"),
    )


def doc_to_consultation(doc: dict) -> ConsultationResponse:
    """convert a mongodb consultation document to response model"""
    return ConsultationResponse(
        id=str(doc["_id"]),
        therapistId=doc.get("therapist_id", ""),
        patientId=doc.get("patient_id", ""),
        recommendedExercises=doc.get("recommended_exercises", []),
        request=doc_to_request(doc),
        notes=doc.get("notes", ""),
        createdAt=doc.get("created_at", ""),
        updatedAt=doc.get("updated_at", ""),
    )
