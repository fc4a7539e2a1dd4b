# social graph models — favorites (user -> exercise) and follows (user -> therapist)

from pydantic import BaseModel, Field


class FavoriteCreate(BaseModel):
    exercise_id: str = Field(..., alias="exerciseId", min_length=1)

    model_config = {"populate_by_name": True}


class FavoriteStatus(BaseModel):
    is_favorite: bool = Field(..., alias="isFavorite")
    message: str

    model_config = {"populate_by_name": True}


class FollowCreate(BaseModel):
    therapist_id: str = Field(..., alias="therapistId", min_length=1)

    model_config = {"populate_by_name": True}


class MessageResponse(BaseModel):
    success: bool = True
    message: str
