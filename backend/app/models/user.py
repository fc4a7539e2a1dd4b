# user models — auth, registration, profile and membership schemas
# users are patients (free or pro) and admins; therapists live in models/therapist.py

from typing import Optional, Literal
from pydantic import BaseModel, Field, field_validator

from app.services.membership import current_membership, expires_at


def clean_email(value):
    if value is None:
        return value
    value = value.strip().lower()
    if "@" not in value or value.startswith("@") or value.endswith("@"):
        raise ValueError("Please enter a valid email")
    return value


# auth

class OtpRequest(BaseModel):
    email: str = Field(..., description="email address to send the code to")

    normalize_email = field_validator("email")(clean_email)


class UserCreate(BaseModel):
    full_name: str = Field(..., alias="fullName", min_length=1, description="full name")
    email: str = Field(..., description="user email address")
    password: str = Field(..., min_length=8, description="plaintext password (min 8 chars)")
    otp: str = Field(..., min_length=4, max_length=10, description="code emailed by /auth/users/otp")

    model_config = {"populate_by_name": True}

    normalize_email = field_validator("email")(clean_email)


class UserLogin(BaseModel):
    email: str
    password: str

    normalize_email = field_validator("email")(clean_email)


class TokenResponse(BaseModel):
    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")
    token_type: str = "bearer"

    model_config = {"populate_by_name": True}


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., alias="refreshToken")

    model_config = {"populate_by_name": True}


class PasswordReset(BaseModel):
    email: str
    otp: str = Field(..., min_length=4, max_length=10)
    new_password: str = Field(..., alias="newPassword", min_length=8)

    model_config = {"populate_by_name": True}

    normalize_email = field_validator("email")(clean_email)


# membership

class MembershipRecord(BaseModel):
    type: Literal["free", "monthly", "yearly"] = "free"
    payment_date: Optional[str] = Field(None, alias="paymentDate")
    status: Literal["active", "inactive"] = "active"

    model_config = {"populate_by_name": True}


class MembershipResponse(BaseModel):
    """effective tier plus the full history"""
    current: Optional[MembershipRecord] = None
    is_premium: bool = Field(False, alias="isPremium")
    expires_at: Optional[str] = Field(None, alias="expiresAt")
    history: list[MembershipRecord] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class MembershipPayment(BaseModel):
    """a completed payment for a paid tier"""
    type: Literal["monthly", "yearly"] = Field(..., description="subscription type")


# user responses

class CreatorInfo(BaseModel):
    created_by: Literal["self", "therapist", "admin"] = Field("self", alias="createdBy")
    created_by_id: Optional[str] = Field(None, alias="createdById")

    model_config = {"populate_by_name": True}


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: str = Field(..., alias="fullName")
    profile_image: Optional[str] = Field(None, alias="profileImage")
    role: Literal["user", "admin"] = "user"
    membership: Optional[MembershipRecord] = None
    is_premium: bool = Field(False, alias="isPremium")
    creator: CreatorInfo = Field(default_factory=CreatorInfo)
    created_at: str = Field("", alias="createdAt")

    model_config = {"populate_by_name": True}


class AuthResponse(TokenResponse):
    """tokens plus the account they belong to"""
    user: Optional[UserResponse] = None


# profile update

class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, alias="fullName", min_length=1)
    email: Optional[str] = None
    password: Optional[str] = Field(None, min_length=8)
    profile_image: Optional[str] = Field(None, alias="profileImage")

    model_config = {"populate_by_name": True}

    normalize_email = field_validator("email")(clean_email)


class PatientCreate(BaseModel):
    """therapist registers a patient account on their behalf"""
    full_name: str = Field(..., alias="fullName", min_length=1)
    email: str
    password: str = Field(..., min_length=8)

    model_config = {"populate_by_name": True}

    normalize_email = field_validator("email")(clean_email)


# document conversion

def doc_to_membership(records: list[dict] | None) -> MembershipResponse:
    """membership history of a user or therapist document"""
    records = records or []
    current = current_membership(records)
    expiry = expires_at(current) if current else None
    return MembershipResponse(
        current=MembershipRecord(
            type=current.get("type", "free"),
            paymentDate=current.get("payment_date"),
            status=current.get("status", "active"),
        ) if current else None,
        isPremium=bool(current and current.get("type") != "free"),
        expiresAt=expiry.isoformat() if expiry else None,
        history=[
            MembershipRecord(
                type=r.get("type", "free"),
                paymentDate=r.get("payment_date"),
                status=r.get("status", "inactive"),
            )
            for r in records
        ],
    )


def doc_to_user(doc: dict) -> UserResponse:
    """convert a mongodb user document to response model"""
    membership = doc_to_membership(doc.get("membership"))
    creator = doc.get("creator") or {}
    return UserResponse(
        id=str(doc["_id"]),
        email=doc.get("email", ""),
        fullName=doc.get("full_name", ""),
        profileImage=doc.get("profile_image"),
        role=doc.get("role", "user"),
        membership=membership.current,
        isPremium=membership.is_premium,
        creator=CreatorInfo(
            createdBy=creator.get("created_by", "self"),
            createdById=creator.get("created_by_id"),
        ),
        createdAt=doc.get("created_at", ""),
    )
