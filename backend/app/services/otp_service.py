# one-time codes — time-bounded, single-use codes keyed by email and purpose
# stored hashed in the otp_codes collection, evicted by a ttl index on expires_at

import logging
from datetime import datetime, timedelta

from app.config import settings
from app.errors import ValidationError
from app.services.auth_service import generate_otp, hash_otp
from app.services.clock import parse_datetime
from app.services.notifications import send_otp_email

logger = logging.getLogger(__name__)

OTP_PURPOSES = ("register", "reset_password")


async def issue_otp(db, email: str, purpose: str, now: datetime) -> str:
    """replace any previous code for this email + purpose and email a new one"""
    if purpose not in OTP_PURPOSES:
        raise ValueError(f"Unknown otp purpose: {purpose}")
    email = email.lower()
    code = generate_otp()

    await db.otp_codes.delete_many({"email": email, "purpose": purpose})
    await db.otp_codes.insert_one({
        "email": email,
        "purpose": purpose,
        "code_hash": hash_otp(email, code),
        "attempts": 0,
        # a real datetime so the ttl index can evict it
        "expires_at": now + timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
        "created_at": now.isoformat(),
    })
    logger.info(f"OTP issued for {email} ({purpose})")

    await send_otp_email(email, code, purpose)
    return code


async def consume_otp(db, email: str, purpose: str, code: str, now: datetime) -> None:
    """verify a code and delete it. raises ValidationError when missing, expired or wrong.
    a code is discarded after OTP_MAX_ATTEMPTS wrong guesses."""
    email = email.lower()
    doc = await db.otp_codes.find_one({"email": email, "purpose": purpose})
    if not doc:
        raise ValidationError("Invalid or expired code")

    expires_at = parse_datetime(doc.get("expires_at"))
    if expires_at is None or now > expires_at:
        await db.otp_codes.delete_one({"_id": doc["_id"]})
        raise ValidationError("Invalid or expired code")

    if doc.get("code_hash") != hash_otp(email, code):
        attempts = doc.get("attempts", 0) + 1
        if attempts >= settings.OTP_MAX_ATTEMPTS:
            await db.otp_codes.delete_one({"_id": doc["_id"]})
            logger.warning(f"OTP for {email} ({purpose}) discarded after {attempts} failed attempts")
        else:
            await db.otp_codes.update_one({"_id": doc["_id"]}, {"$inc": {"attempts": 1}})
        raise ValidationError("Invalid or expired code")

    await db.otp_codes.delete_one({"_id": doc["_id"]})
    logger.info(f"OTP consumed for {email} ({purpose})")
