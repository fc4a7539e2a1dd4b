# membership evaluator — derives the single active tier from a membership history
# pure evaluation plus a persistence helper that only writes when something changed

import copy
import logging
from datetime import datetime, timedelta
from typing import Optional

from app.config import settings
from app.services.clock import parse_datetime

logger = logging.getLogger(__name__)

MEMBERSHIP_TYPES = ("free", "monthly", "yearly")
PAID_TYPES = ("monthly", "yearly")


def term_days(membership_type: str) -> Optional[int]:
    """length of a paid term in days, none for free"""
    if membership_type == "monthly":
        return settings.MONTHLY_MEMBERSHIP_DAYS
    if membership_type == "yearly":
        return settings.YEARLY_MEMBERSHIP_DAYS
    return None


def free_membership() -> dict:
    return {"type": "free", "payment_date": None, "status": "active"}


def is_expired(record: dict, now: datetime) -> bool:
    """a paid record expires once elapsed time since payment exceeds its term"""
    days = term_days(record.get("type"))
    if days is None:
        return False
    paid_at = parse_datetime(record.get("payment_date"))
    if paid_at is None:
        return True
    return now - paid_at > timedelta(days=days)


def expires_at(record: dict) -> Optional[datetime]:
    days = term_days(record.get("type"))
    paid_at = parse_datetime(record.get("payment_date"))
    if days is None or paid_at is None:
        return None
    return paid_at + timedelta(days=days)


def _paid_sort_key(record: dict):
    paid_at = parse_datetime(record.get("payment_date"))
    return paid_at.timestamp() if paid_at else float("-inf")


def evaluate_memberships(records: list[dict] | None, now: datetime) -> tuple[list[dict], bool]:
    """return (records', changed) with exactly one active record.

    expired paid records are deactivated; when several records are active the
    newest paid one wins; when none is active a free record is reactivated or
    appended. the input list is not mutated.
    """
    result = copy.deepcopy(records or [])
    changed = False

    for record in result:
        if record.get("status") == "active" and record.get("type") in PAID_TYPES:
            if is_expired(record, now):
                record["status"] = "inactive"
                changed = True

    active = [r for r in result if r.get("status") == "active"]
    if len(active) > 1:
        paid = [r for r in active if r.get("type") in PAID_TYPES]
        keep = max(paid, key=_paid_sort_key) if paid else active[-1]
        for record in active:
            if record is not keep:
                record["status"] = "inactive"
                changed = True
    elif not active:
        free = [r for r in result if r.get("type") == "free"]
        if free:
            free[-1]["status"] = "active"
        else:
            result.append(free_membership())
        changed = True

    return result, changed


def current_membership(records: list[dict] | None) -> Optional[dict]:
    """the active record, if any"""
    for record in records or []:
        if record.get("status") == "active":
            return record
    return None


def is_premium(records: list[dict] | None) -> bool:
    """active and non-free"""
    current = current_membership(records)
    return bool(current and current.get("type") in PAID_TYPES)


def record_payment(records: list[dict] | None, membership_type: str, now: datetime) -> list[dict]:
    """deactivate whatever is active, then append the new paid record"""
    if membership_type not in PAID_TYPES:
        raise ValueError(f"Invalid membership type: {membership_type}")
    result = copy.deepcopy(records or [])
    for record in result:
        if record.get("status") == "active":
            record["status"] = "inactive"
    result.append({
        "type": membership_type,
        "payment_date": now.isoformat(),
        "status": "active",
    })
    return result


async def refresh_membership(collection, doc: dict, now: datetime) -> dict:
    """evaluate a user or therapist document in place, persisting only on change"""
    records, changed = evaluate_memberships(doc.get("membership"), now)
    if changed:
        await collection.update_one(
            {"_id": doc["_id"]},
            {"$set": {"membership": records, "updated_at": now.isoformat()}},
        )
        current = current_membership(records)
        logger.info(
            f"Membership corrected for {doc['_id']}: now {current['type'] if current else 'none'}"
        )
    doc["membership"] = records
    return doc
