# public router — unauthenticated landing page data

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.models.exercise import ExerciseResponse, doc_to_exercise
from app.models.therapist import TherapistResponse, doc_to_therapist
from app.services.db import Database, get_db

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/public", tags=["public"])

TRENDING_LIMIT = 5


class TrendingResponse(BaseModel):
    therapists: list[TherapistResponse] = Field(default_factory=list)
    exercises: list[ExerciseResponse] = Field(default_factory=list)


@router.get("/trending", response_model=TrendingResponse)
async def trending(db: Database = Depends(get_db)):
    """busiest active therapists and most viewed free catalog exercises"""
    therapist_cursor = (
        db.therapists.find({"status": "active"})
        .sort("consultation_count", -1)
        .limit(TRENDING_LIMIT)
    )
    therapists = [doc_to_therapist(doc) async for doc in therapist_cursor]

    query = {
        "is_premium": False,
        "custom.type": "public",
        "custom.created_by": {"$ne": "proUser"},
    }
    exercise_cursor = (
        db.exercises.find(query)
        .sort([("views", -1), ("favorites", -1)])
        .limit(TRENDING_LIMIT)
    )
    # the landing page never carries video
    exercises = [
        doc_to_exercise(doc).model_copy(update={"video": None}) async for doc in exercise_cursor
    ]

    return TrendingResponse(therapists=therapists, exercises=exercises)
