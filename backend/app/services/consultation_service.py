# consultation engine — lifecycle of a therapist's time-boxed exercise prescription
# states: pending -> active -> inactive, inactive -> active on re-activation
# expiration is corrected lazily whenever a consultation is read

import copy
import logging
from datetime import datetime, timedelta
from typing import Optional

from bson import ObjectId

from app.config import settings
from app.errors import ValidationError
from app.services.clock import parse_datetime

logger = logging.getLogger(__name__)

CONSULTATION_STATUSES = ("pending", "active", "inactive")


def _validate_active_days(active_days: Optional[int]) -> int:
    if active_days is None:
        return settings.CONSULTATION_DEFAULT_ACTIVE_DAYS
    if not isinstance(active_days, int) or isinstance(active_days, bool) or active_days < 1:
        raise ValidationError("activeDays must be a positive integer")
    if active_days > settings.CONSULTATION_MAX_ACTIVE_DAYS:
        raise ValidationError(f"activeDays cannot exceed {settings.CONSULTATION_MAX_ACTIVE_DAYS}")
    return active_days


def _dedupe(ids: list[str]) -> list[str]:
    seen = set()
    ordered = []
    for i in ids:
        if i not in seen:
            seen.add(i)
            ordered.append(i)
    return ordered


def expiration_instant(doc: dict) -> Optional[datetime]:
    """stored expires_on, or created_at + active_days for documents that predate it"""
    request = doc.get("request") or {}
    expires_on = parse_datetime(request.get("expires_on"))
    if expires_on is not None:
        return expires_on
    created_at = parse_datetime(doc.get("created_at"))
    active_days = request.get("active_days")
    if created_at is None or not active_days:
        return None
    return created_at + timedelta(days=active_days)


def evaluate_expiration(doc: dict, now: datetime) -> tuple[dict, bool]:
    """return (doc', changed). only an active consultation past its window changes;
    pending and inactive ones are left alone, so repeated calls are idempotent."""
    result = copy.deepcopy(doc)
    request = result.setdefault("request", {})
    if request.get("status") != "active":
        return result, False

    expires = expiration_instant(result)
    if expires is None or now <= expires:
        return result, False

    request["status"] = "inactive"
    return result, True


def activate(doc: dict, active_days: Optional[int], now: datetime) -> dict:
    """set status active and restart the window from now"""
    days = _validate_active_days(active_days)
    result = copy.deepcopy(doc)
    request = result.setdefault("request", {})
    request["status"] = "active"
    request["active_days"] = days
    request["expires_on"] = (now + timedelta(days=days)).isoformat()
    request["activated_at"] = now.isoformat()
    result["updated_at"] = now.isoformat()
    return result


def new_consultation(
    therapist_id: str,
    patient_id: str,
    exercise_ids: list[str],
    notes: Optional[str],
    active_days: Optional[int],
    now: datetime,
) -> dict:
    """build a consultation already activated, so create + activate is one insert"""
    doc = {
        "therapist_id": therapist_id,
        "patient_id": patient_id,
        "recommended_exercises": _dedupe(exercise_ids),
        "request": {"status": "pending", "active_days": 0, "expires_on": None, "activated_at": None},
        "notes": (notes or "").strip(),
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }
    return activate(doc, active_days, now)


def apply_update(
    doc: dict,
    exercise_ids: Optional[list[str]],
    notes: Optional[str],
    active_days: Optional[int],
    now: datetime,
) -> dict:
    """replace content; a new active_days is measured from created_at, not from now"""
    result = copy.deepcopy(doc)
    if exercise_ids is not None:
        result["recommended_exercises"] = _dedupe(exercise_ids)
    if notes is not None:
        result["notes"] = notes.strip()
    if active_days is not None:
        days = _validate_active_days(active_days)
        request = result.setdefault("request", {})
        request["active_days"] = days
        created_at = parse_datetime(result.get("created_at")) or now
        request["expires_on"] = (created_at + timedelta(days=days)).isoformat()
    result["updated_at"] = now.isoformat()
    return result


def apply_status(doc: dict, status: str, active_days: Optional[int], now: datetime) -> dict:
    """direct status transition, rejected before persistence when the status is unknown"""
    if status not in CONSULTATION_STATUSES:
        raise ValidationError("Invalid status value")
    if status == "active":
        return activate(doc, active_days, now)
    result = copy.deepcopy(doc)
    result.setdefault("request", {})["status"] = status
    result["updated_at"] = now.isoformat()
    return result


async def save_request(db, doc: dict) -> None:
    """persist the request sub-document and timestamps of an existing consultation"""
    await db.consultations.update_one(
        {"_id": doc["_id"]},
        {"$set": {"request": doc["request"], "updated_at": doc.get("updated_at")}},
    )


async def check_expiration(db, doc: dict, now: datetime) -> dict:
    """lazy expiration on the read path, writes only when the status flipped"""
    result, changed = evaluate_expiration(doc, now)
    if changed:
        result["updated_at"] = now.isoformat()
        await save_request(db, result)
        await refresh_consultation_count(db, result.get("therapist_id", ""))
        logger.info(f"Consultation {result['_id']} expired, marked inactive")
    return result


async def sweep_expired(db, now: datetime) -> int:
    """expire every overdue active consultation, usable from a periodic job"""
    count = 0
    cursor = db.consultations.find({"request.status": "active"})
    async for doc in cursor:
        updated = await check_expiration(db, doc, now)
        if updated["request"]["status"] != "active":
            count += 1
    if count:
        logger.info(f"Expired {count} consultations")
    return count


async def refresh_consultation_count(db, therapist_id: str) -> int:
    """recompute a therapist's active consultation count"""
    count = await db.consultations.count_documents(
        {"therapist_id": therapist_id, "request.status": "active"}
    )
    if ObjectId.is_valid(therapist_id):
        await db.therapists.update_one(
            {"_id": ObjectId(therapist_id)},
            {"$set": {"consultation_count": count}},
        )
    return count
