# routine models — a user's own schedule for performing an exercise

from typing import Optional, Literal
from pydantic import BaseModel, Field


class RoutinePerform(BaseModel):
    count: int = Field(0, ge=0)
    type: Literal["hour", "day", "week"] = "hour"


class RoutineCreate(BaseModel):
    exercise_id: str = Field(..., alias="exerciseId")
    name: str = Field(..., min_length=1)
    reps: int = Field(0, ge=0)
    hold: int = Field(0, ge=0)
    complete: int = Field(0, ge=0)
    perform: RoutinePerform = Field(default_factory=RoutinePerform)

    model_config = {"populate_by_name": True}


class RoutineUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    reps: Optional[int] = Field(None, ge=0)
    hold: Optional[int] = Field(None, ge=0)
    complete: Optional[int] = Field(None, ge=0)
    perform: Optional[RoutinePerform] = None


class RoutineExercise(BaseModel):
    id: str
    title: str = ""
    category: str = ""
    sub_category: str = Field("", alias="subCategory")
    position: str = ""
    image: list[str] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class RoutineResponse(BaseModel):
    id: str
    user_id: str = Field(..., alias="userId")
    exercise_id: str = Field(..., alias="exerciseId")
    exercise: Optional[RoutineExercise] = None
    name: str
    reps: int = 0
    hold: int = 0
    complete: int = 0
    perform: RoutinePerform = Field(default_factory=RoutinePerform)
    created_at: str = Field("", alias="createdAt")
    updated_at: str = Field("", alias="updatedAt")

    model_config = {"populate_by_name": True}
