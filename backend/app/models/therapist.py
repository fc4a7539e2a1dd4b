# therapist models — registration, profile, approval state

from typing import Optional, Literal
from pydantic import BaseModel, Field, field_validator

from app.models.user import MembershipRecord, clean_email
from app.services.membership import current_membership

TherapistStatus = Literal["pending", "active", "inactive", "rejected"]


class TherapistCreate(BaseModel):
    name: str = Field(..., min_length=1)
    email: str
    password: str = Field(..., min_length=8)
    gender: Literal["male", "female", "other"]
    specializations: list[str] = Field(..., min_length=1, description="at least one specialization")
    working_at: str = Field(..., alias="workingAt", min_length=1, description="hospital or clinic name")
    address: str = Field(..., min_length=1)
    experience: str = Field(..., min_length=1)

    model_config = {"populate_by_name": True}

    normalize_email = field_validator("email")(clean_email)


class TherapistUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[str] = None
    gender: Optional[Literal["male", "female", "other"]] = None
    specializations: Optional[list[str]] = Field(None, min_length=1)
    working_at: Optional[str] = Field(None, alias="workingAt", min_length=1)
    address: Optional[str] = Field(None, min_length=1)
    experience: Optional[str] = Field(None, min_length=1)

    model_config = {"populate_by_name": True}

    normalize_email = field_validator("email")(clean_email)


class TherapistStatusUpdate(BaseModel):
    status: TherapistStatus


class TherapistResponse(BaseModel):
    id: str
    name: str
    email: str
    gender: Optional[str] = None
    specializations: list[str] = Field(default_factory=list)
    working_at: str = Field("", alias="workingAt")
    address: str = ""
    experience: str = ""
    status: TherapistStatus = "pending"
    consultation_count: int = Field(0, alias="consultationCount")
    membership: Optional[MembershipRecord] = None
    created_at: str = Field("", alias="createdAt")

    model_config = {"populate_by_name": True}


class TherapistListResponse(BaseModel):
    success: bool = True
    therapists: list[TherapistResponse] = Field(default_factory=list)
    request_count: Optional[int] = Field(None, alias="requestCount")

    model_config = {"populate_by_name": True}


def doc_to_therapist(doc: dict) -> TherapistResponse:
    """convert a mongodb therapist document to response model"""
    current = current_membership(doc.get("membership"))
    return TherapistResponse(
        id=str(doc["_id"]),
        name=doc.get("name", ""),
        email=doc.get("email", ""),
        gender=doc.get("gender"),
        specializations=doc.get("specializations", []),
        workingAt=doc.get("working_at", ""),
        address=doc.get("address", ""),
        experience=doc.get("experience", ""),
        status=doc.get("status", "pending"),
        consultationCount=doc.get("consultation_count", 0),
        membership=MembershipRecord(
            type=current.get("type", "free"),
            paymentDate=current.get("payment_date"),
            status=current.get("status", "active"),
        ) if current else None,
        createdAt=doc.get("created_at", ""),
    )
