# auth router — registration with emailed codes, login for users/therapists/admins, refresh
# all endpoints are public; they hand out jwt pairs

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from app.dependencies import get_now
from app.errors import AuthenticationError, ConflictError, InternalError, ValidationError
from app.models.therapist import TherapistCreate, TherapistResponse, doc_to_therapist
from app.models.user import (
    AuthResponse,
    OtpRequest,
    PasswordReset,
    RefreshRequest,
    TokenResponse,
    UserCreate,
    UserLogin,
    doc_to_user,
)
from app.models.social import MessageResponse
from app.services.auth_service import (
    decode_token,
    hash_password,
    issue_tokens,
    verify_password,
)
from app.services.db import Database, get_db
from app.services.membership import free_membership
from app.services.notifications import EmailDeliveryError
from app.services.otp_service import consume_otp, issue_otp

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])


async def _email_taken(email: str, db: Database) -> bool:
    if await db.users.find_one({"email": email}):
        return True
    return bool(await db.therapists.find_one({"email": email}))


async def _send_code(db: Database, email: str, purpose: str, now: datetime) -> None:
    try:
        await issue_otp(db, email, purpose, now)
    except EmailDeliveryError:
        raise InternalError("Failed to send verification email")


# users

@router.post("/users/otp", response_model=MessageResponse)
async def request_registration_code(
    body: OtpRequest,
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """email a one-time code to an address that is not registered yet"""
    if await _email_taken(body.email, db):
        raise ConflictError("User already exists")

    await _send_code(db, body.email, "register", now)
    return MessageResponse(message="Verification code sent")


@router.post("/users/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register_user(
    body: UserCreate,
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """create a free account once the emailed code checks out"""
    if await _email_taken(body.email, db):
        raise ConflictError("User already exists")

    await consume_otp(db, body.email, "register", body.otp, now)

    user_doc = {
        "email": body.email,
        "hashed_password": hash_password(body.password),
        "full_name": body.full_name.strip(),
        "profile_image": None,
        "membership": [free_membership()],
        "creator": {"created_by": "self", "created_by_id": None},
        "role": "user",
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }
    try:
        result = await db.users.insert_one(user_doc)
    except DuplicateKeyError:
        raise ConflictError("User already exists")

    user_id = str(result.inserted_id)
    logger.info(f"User registered: {user_id}")
    return AuthResponse(**issue_tokens(user_id, "user"), user=doc_to_user(user_doc))


@router.post("/users/login", response_model=AuthResponse)
async def login_user(body: UserLogin, db: Database = Depends(get_db)):
    user = await db.users.find_one({"email": body.email})
    if not user or not verify_password(body.password, user.get("hashed_password", "")):
        raise AuthenticationError("Invalid email or password")

    kind = "admin" if user.get("role") == "admin" else "user"
    return AuthResponse(**issue_tokens(str(user["_id"]), kind), user=doc_to_user(user))


@router.post("/admin/login", response_model=AuthResponse)
async def login_admin(body: UserLogin, db: Database = Depends(get_db)):
    user = await db.users.find_one({"email": body.email})
    if (
        not user
        or user.get("role") != "admin"
        or not verify_password(body.password, user.get("hashed_password", ""))
    ):
        raise AuthenticationError("Invalid email or password")

    return AuthResponse(**issue_tokens(str(user["_id"]), "admin"), user=doc_to_user(user))


# therapists

@router.post("/therapists/register", response_model=TherapistResponse, status_code=status.HTTP_201_CREATED)
async def register_therapist(
    body: TherapistCreate,
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """therapists start pending until an admin approves them"""
    if await _email_taken(body.email, db):
        raise ConflictError("A therapist with this email already exists")

    therapist_doc = {
        "email": body.email,
        "hashed_password": hash_password(body.password),
        "name": body.name.strip(),
        "gender": body.gender,
        "specializations": body.specializations,
        "working_at": body.working_at.strip(),
        "address": body.address.strip(),
        "experience": body.experience.strip(),
        "status": "pending",
        "membership": [free_membership()],
        "consultation_count": 0,
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }
    try:
        await db.therapists.insert_one(therapist_doc)
    except DuplicateKeyError:
        raise ConflictError("A therapist with this email already exists")

    logger.info(f"Therapist registered (pending): {therapist_doc['_id']}")
    return doc_to_therapist(therapist_doc)


@router.post("/therapists/login", response_model=TokenResponse)
async def login_therapist(body: UserLogin, db: Database = Depends(get_db)):
    """tokens are issued regardless of approval; protected routes check status"""
    therapist = await db.therapists.find_one({"email": body.email})
    if not therapist or not verify_password(body.password, therapist.get("hashed_password", "")):
        raise AuthenticationError("Invalid email or password")
    if therapist.get("status") == "rejected":
        raise AuthenticationError("Account has been rejected")

    return TokenResponse(**issue_tokens(str(therapist["_id"]), "therapist"))


# tokens

@router.post("/refresh", response_model=TokenResponse)
async def refresh_tokens(body: RefreshRequest, db: Database = Depends(get_db)):
    payload = decode_token(body.refresh_token)
    if payload is None or payload.get("type") != "refresh":
        raise AuthenticationError("Invalid refresh token")

    subject_id = payload.get("sub")
    if not subject_id or not ObjectId.is_valid(subject_id):
        raise AuthenticationError("Token missing subject")

    oid = ObjectId(subject_id)
    if payload.get("kind") == "therapist":
        found = await db.therapists.find_one({"_id": oid})
    else:
        found = await db.users.find_one({"_id": oid})
    if not found:
        raise AuthenticationError("Not authorized, subject not found")
    if payload.get("kind") == "therapist" and found.get("status") == "rejected":
        raise AuthenticationError("Account has been rejected")

    return TokenResponse(**issue_tokens(subject_id, payload.get("kind", "user")))


# password reset

@router.post("/password/forgot", response_model=MessageResponse)
async def forgot_password(
    body: OtpRequest,
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """email a reset code. unknown emails get the same answer."""
    if await _email_taken(body.email, db):
        await _send_code(db, body.email, "reset_password", now)
    return MessageResponse(message="If the email is registered, a reset code has been sent")


@router.post("/password/reset", response_model=MessageResponse)
async def reset_password(
    body: PasswordReset,
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    await consume_otp(db, body.email, "reset_password", body.otp, now)

    update = {"$set": {"hashed_password": hash_password(body.new_password), "updated_at": now.isoformat()}}
    result = await db.users.update_one({"email": body.email}, update)
    if not result.modified_count:
        result = await db.therapists.update_one({"email": body.email}, update)
    if not result.modified_count:
        raise ValidationError("Invalid or expired code")

    logger.info(f"Password reset for {body.email}")
    return MessageResponse(message="Password updated")
