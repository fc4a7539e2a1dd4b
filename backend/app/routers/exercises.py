# exercises router — catalog reads shaped by the caller's access level, creator-owned mutations
# reads never reject; premium video is withheld from anonymous and free viewers

import logging
import math
import re
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.config import settings
from app.dependencies import get_access_context, get_now, require_content_creator
from app.errors import AuthorizationError, NotFoundError, ValidationError
from app.models.exercise import (
    CATEGORIES,
    CategoryExerciseResponse,
    ExerciseCreate,
    ExerciseListResponse,
    ExerciseResponse,
    ExerciseUpdate,
    check_taxonomy,
    doc_to_exercise,
)
from app.models.social import MessageResponse
from app.services.access import AccessContext, Subject
from app.services.catalog import (
    can_modify,
    can_view,
    creator_kind,
    delete_exercise_cascade,
    show_video,
    visibility_query,
)
from app.services.db import Database, get_db, to_object_id

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/exercises", tags=["exercises"])


def _search_clause(keyword: str) -> dict:
    pattern = {"$regex": re.escape(keyword.strip()), "$options": "i"}
    return {"$or": [{"title": pattern}, {"description": pattern}]}


def _combine(*clauses: dict) -> dict:
    parts = [c for c in clauses if c]
    if not parts:
        return {}
    if len(parts) == 1:
        return parts[0]
    return {"$and": parts}


async def _load_visible(exercise_id: str, ctx: AccessContext, db: Database) -> dict:
    oid = to_object_id(exercise_id, "exercise id")
    doc = await db.exercises.find_one({"_id": oid})
    if not doc or not can_view(doc, ctx.subject):
        raise NotFoundError("Exercise not found")
    return doc


# reads

@router.get("", response_model=ExerciseListResponse)
async def list_exercises(
    page: int = Query(1, ge=1),
    keyword: Optional[str] = None,
    category: Optional[str] = None,
    is_premium: Optional[bool] = Query(None, alias="isPremium"),
    custom: Optional[str] = Query(None, description="filter by creator kind: admin, therapist or proUser"),
    ctx: AccessContext = Depends(get_access_context),
    db: Database = Depends(get_db),
):
    """paginated catalog, newest first"""
    filters = {}
    if category:
        filters["category"] = category
    if is_premium is not None:
        filters["is_premium"] = is_premium
    if custom:
        filters["custom.created_by"] = custom

    query = _combine(
        visibility_query(ctx.subject),
        _search_clause(keyword) if keyword and keyword.strip() else {},
        filters,
    )

    page_size = settings.EXERCISE_PAGE_SIZE
    total = await db.exercises.count_documents(query)
    cursor = db.exercises.find(query).sort("created_at", -1).skip((page - 1) * page_size).limit(page_size)

    video = show_video(ctx)
    exercises = []
    async for doc in cursor:
        exercises.append(doc_to_exercise(doc, show_video=video))

    return ExerciseListResponse(
        exercises=exercises,
        page=page,
        pages=math.ceil(total / page_size) if total else 0,
        total=total,
    )


@router.get("/all", response_model=ExerciseListResponse)
async def list_all_exercises(
    ctx: AccessContext = Depends(get_access_context),
    db: Database = Depends(get_db),
):
    cursor = db.exercises.find(visibility_query(ctx.subject)).sort("created_at", -1)
    video = show_video(ctx)
    exercises = [doc_to_exercise(doc, show_video=video) async for doc in cursor]
    return ExerciseListResponse(exercises=exercises, total=len(exercises))


@router.get("/featured", response_model=list[ExerciseResponse])
async def featured_exercises(
    ctx: AccessContext = Depends(get_access_context),
    db: Database = Depends(get_db),
):
    """the newest visible exercise of each category"""
    video = show_video(ctx)
    featured = []
    for category in CATEGORIES:
        query = _combine(visibility_query(ctx.subject), {"category": category})
        cursor = db.exercises.find(query).sort("created_at", -1).limit(1)
        async for doc in cursor:
            featured.append(doc_to_exercise(doc, show_video=video))
    return featured


@router.get("/category/{category}", response_model=CategoryExerciseResponse)
async def exercises_by_category(
    category: str,
    page: int = Query(1, ge=1),
    sub_category: Optional[str] = Query(None, alias="subCategory"),
    position: Optional[str] = None,
    search: Optional[str] = None,
    ctx: AccessContext = Depends(get_access_context),
    db: Database = Depends(get_db),
):
    if category not in CATEGORIES:
        raise ValidationError("Invalid category")

    filters = {"category": category}
    if sub_category:
        filters["sub_category"] = sub_category
    if position:
        filters["position"] = position

    query = _combine(
        visibility_query(ctx.subject),
        _search_clause(search) if search and search.strip() else {},
        filters,
    )

    page_size = settings.EXERCISE_PAGE_SIZE
    skip = (page - 1) * page_size
    total = await db.exercises.count_documents(query)
    cursor = db.exercises.find(query).sort("created_at", -1).skip(skip).limit(page_size)

    video = show_video(ctx)
    exercises = [doc_to_exercise(doc, show_video=video) async for doc in cursor]

    return CategoryExerciseResponse(
        category=category,
        exercises=exercises,
        page=page,
        pages=math.ceil(total / page_size) if total else 0,
        total=total,
        hasMore=skip + len(exercises) < total,
    )


@router.get("/{exercise_id}", response_model=ExerciseResponse)
async def get_exercise(
    exercise_id: str,
    ctx: AccessContext = Depends(get_access_context),
    db: Database = Depends(get_db),
):
    """single exercise; every read counts as a view"""
    doc = await _load_visible(exercise_id, ctx, db)
    await db.exercises.update_one({"_id": doc["_id"]}, {"$inc": {"views": 1}})
    doc["views"] = doc.get("views", 0) + 1
    return doc_to_exercise(doc, show_video=show_video(ctx))


# mutations

@router.post("", response_model=ExerciseResponse, status_code=status.HTTP_201_CREATED)
async def create_exercise(
    body: ExerciseCreate,
    subject: Subject = Depends(require_content_creator),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """creator attribution comes from the caller, never from the payload"""
    if body.is_premium and not subject.is_admin:
        raise AuthorizationError("Only admins can create premium exercises")

    doc = {
        "title": body.title.strip(),
        "description": body.description.strip(),
        "instruction": body.instruction.strip(),
        "video": body.video,
        "image": body.image,
        "reps": body.reps,
        "hold": body.hold,
        "set": body.set,
        "perform": body.perform.model_dump(),
        "category": body.category,
        "sub_category": body.sub_category,
        "position": body.position,
        "is_premium": body.is_premium,
        "custom": {
            "created_by": creator_kind(subject),
            "creator_id": subject.id,
            "type": body.visibility,
        },
        "views": 0,
        "favorites": 0,
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    }
    await db.exercises.insert_one(doc)

    logger.info(f"Exercise {doc['_id']} created by {subject.kind} {subject.id}")
    return doc_to_exercise(doc)


@router.put("/{exercise_id}", response_model=ExerciseResponse)
async def update_exercise(
    exercise_id: str,
    body: ExerciseUpdate,
    subject: Subject = Depends(require_content_creator),
    db: Database = Depends(get_db),
    now: datetime = Depends(get_now),
):
    oid = to_object_id(exercise_id, "exercise id")
    doc = await db.exercises.find_one({"_id": oid})
    if not doc:
        raise NotFoundError("Exercise not found")
    if not can_modify(doc, subject):
        raise AuthorizationError("Not authorized to update this exercise")

    changes = body.model_dump(exclude_none=True, by_alias=False)
    if "is_premium" in changes and not subject.is_admin:
        raise AuthorizationError("Only admins can change premium status")

    try:
        check_taxonomy(
            changes.get("category", doc.get("category")),
            changes.get("sub_category", doc.get("sub_category")),
            changes.get("position", doc.get("position")),
        )
    except ValueError as e:
        raise ValidationError(str(e))

    update = {}
    visibility = changes.pop("visibility", None)
    if visibility:
        update["custom.type"] = visibility
    for key, value in changes.items():
        update[key] = value.strip() if isinstance(value, str) and key != "video" else value
    update["updated_at"] = now.isoformat()

    await db.exercises.update_one({"_id": oid}, {"$set": update})
    updated = await db.exercises.find_one({"_id": oid})

    logger.info(f"Exercise {exercise_id} updated by {subject.kind} {subject.id}")
    return doc_to_exercise(updated)


@router.delete("/{exercise_id}", response_model=MessageResponse)
async def delete_exercise(
    exercise_id: str,
    subject: Subject = Depends(require_content_creator),
    db: Database = Depends(get_db),
):
    """delete an exercise along with routines and favorites that reference it"""
    oid = to_object_id(exercise_id, "exercise id")
    doc = await db.exercises.find_one({"_id": oid})
    if not doc:
        raise NotFoundError("Exercise not found")
    if not can_modify(doc, subject):
        raise AuthorizationError("Not authorized to delete this exercise")

    await delete_exercise_cascade(db, exercise_id)
    return MessageResponse(message="Exercise removed")
