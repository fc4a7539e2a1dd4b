# routines router — a user's own schedules for performing catalog exercises

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, status

from app.dependencies import get_now, require_user
from app.errors import AuthorizationError, NotFoundError
from app.models.routine import (
    RoutineCreate,
    RoutineExercise,
    RoutinePerform,
    RoutineResponse,
    RoutineUpdate,
)
from app.models.social import MessageResponse
from app.services.access import Subject
from app.services.db import Database, get_db, is_object_id, to_object_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/routines", tags=["routines"])


def _doc_to_routine(doc: dict, exercise: Optional[dict] = None) -> RoutineResponse:
    perform = doc.get("perform") or {}
    summary = None
    if exercise:
        image = exercise.get("image", [])
        summary = RoutineExercise(
            id=str(exercise["_id"]),
            title=exercise.get("title", ""),
            category=exercise.get("category", ""),
            subCategory=exercise.get("sub_category", ""),
            position=exercise.get("position", ""),
            image=[image] if isinstance(image, str) else image,
        )
    return RoutineResponse(
        id=str(doc["_id"]),
        userId=doc.get("user_id", ""),
        exerciseId=doc.get("exercise_id", ""),
        exercise=summary,
        name=doc.get("name", ""),
        reps=doc.get("reps", 0),
        hold=doc.get("hold", 0),
        complete=doc.get("complete", 0),
        perform=RoutinePerform(count=perform.get("count", 0), type=perform.get("type", "hour")),
        createdAt=doc.get("created_at", ""),
        updatedAt=doc.get("updated_at", ""),
    )


async def _with_exercise(doc: dict, db: Database) -> RoutineResponse:
    exercise = None
    if is_object_id(doc.get("exercise_id")):
        exercise = await db.exercises.find_one({"_id": to_object_id(doc["exercise_id"])})
    return _doc_to_routine(doc, exercise)


async def _owned_routine(routine_id: str, subject: Subject, db: Database) -> dict:
    oid = to_object_id(routine_id, "routine id")
    doc = await db.routines.find_one({"_id": oid})
    if not doc:
        raise NotFoundError("Routine not found")
    if doc.get("user_id") != subject.id and not subject.is_admin:
        raise AuthorizationError("Not authorized to modify this routine")
    return doc


@router.post("", response_model=RoutineResponse, status_code=status.HTTP_201_CREATED)
async def create_routine(
    body: RoutineCreate,
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    exercise = await db.exercises.find_one({"_id": to_object_id(body.exercise_id, "exercise id")})
    if not exercise:
        raise NotFoundError("Exercise not found")

    doc = {
        "user_id": subject.id,
        "exercise_id": body.exercise_id,
        "name": body.name.strip(),
        "reps": body.reps,
        "hold": body.hold,
        "complete": body.complete,
        "perform": body.perform.model_dump(),
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }
    await db.routines.insert_one(doc)

    logger.info(f"Routine {doc['_id']} created for user {subject.id}")
    return _doc_to_routine(doc, exercise)


@router.get("/my-routines", response_model=list[RoutineResponse])
async def my_routines(
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
):
    cursor = db.routines.find({"user_id": subject.id}).sort("updated_at", -1)
    return [await _with_exercise(doc, db) async for doc in cursor]


@router.get("/user/{user_id}", response_model=list[RoutineResponse])
async def routines_for_user(
    user_id: str,
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
):
    to_object_id(user_id, "user id")
    if user_id != subject.id and not subject.is_admin:
        raise AuthorizationError("Not authorized to view these routines")

    cursor = db.routines.find({"user_id": user_id}).sort("updated_at", -1)
    return [await _with_exercise(doc, db) async for doc in cursor]


@router.put("/{routine_id}", response_model=RoutineResponse)
async def update_routine(
    routine_id: str,
    body: RoutineUpdate,
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    doc = await _owned_routine(routine_id, subject, db)

    changes = body.model_dump(exclude_none=True)
    if "name" in changes:
        changes["name"] = changes["name"].strip()
    changes["updated_at"] = now.isoformat()
    await db.routines.update_one({"_id": doc["_id"]}, {"$set": changes})

    updated = await db.routines.find_one({"_id": doc["_id"]})
    return await _with_exercise(updated, db)


@router.delete("/{routine_id}", response_model=MessageResponse)
async def delete_routine(
    routine_id: str,
    subject: Subject = Depends(require_user),
    db: Database = Depends(get_db),
):
    doc = await _owned_routine(routine_id, subject, db)
    await db.routines.delete_one({"_id": doc["_id"]})
    logger.info(f"Routine {routine_id} deleted by {subject.kind} {subject.id}")
    return MessageResponse(message="Routine removed")
