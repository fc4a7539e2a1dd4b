# admin models — dashboard statistics

from pydantic import BaseModel, Field


class AdminStats(BaseModel):
    exercises_count: int = Field(0, alias="exercisesCount")
    users_count: int = Field(0, alias="usersCount")
    therapists_count: int = Field(0, alias="therapistsCount")
    pending_therapists_count: int = Field(0, alias="pendingTherapistsCount")
    premium_exercises_count: int = Field(0, alias="premiumExercisesCount")
    custom_exercises_count: int = Field(0, alias="customExercisesCount")
    pro_users_count: int = Field(0, alias="proUsersCount")
    active_consultations_count: int = Field(0, alias="activeConsultationsCount")
    pending_consultations_count: int = Field(0, alias="pendingConsultationsCount")

    model_config = {"populate_by_name": True}
