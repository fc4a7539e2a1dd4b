# exercise models — catalog entries, controlled taxonomy and creator attribution
# video is nulled by the routers for viewers without premium access

from typing import Optional, Literal
from pydantic import BaseModel, Field, model_validator

CATEGORIES = [
    "Ankle and Foot",
    "Cervical",
    "Education",
    "Elbow and Hand",
    "Hip and Knee",
    "Lumbar Thoracic",
    "Oral Motor",
    "Shoulder",
    "Special",
]

SUB_CATEGORIES = {
    "Ankle and Foot": ["AAROM", "AROM", "Ball", "Bosu", "Elastic Band", "Elastic Taping", "Isometric",
                       "Miscellaneous", "Mobilization", "PROM", "Stabilization", "Stretches"],
    "Cervical": ["AAROM", "AROM", "Ball", "Elastic Band", "Isometric", "Miscellaneous", "Mobilization",
                 "PROM", "Stabilization", "Stretches"],
    "Education": ["Anatomy", "Body Mechanics", "Gait Training", "Miscellaneous", "Positioning",
                  "Stair Training", "Transfers"],
    "Elbow and Hand": ["AAROM", "AROM", "Ball", "Closed Chain", "Elastic Band", "Elastic Taping",
                       "Fine Motor", "Flexbar", "Free Weight", "Gripper", "Isometric", "Machines and Cables",
                       "Miscellaneous", "Mobilization", "PROM", "Putty", "Stretches", "TRX"],
    "Hip and Knee": ["4 Way Hip", "AAROM", "AROM", "Balance", "Ball", "Bosu", "Boxes and Steps",
                     "Closed Chain", "Cones", "Elastic Band", "Elastic Taping", "Foam Roll", "Free Weight",
                     "Glider Disk", "Isometric", "Kettlebell", "Ladder Drills", "Machines and Cables",
                     "Medicine Ball", "Miscellaneous", "Mobilization", "Neural Glides", "Open Chain",
                     "Plyometrics", "PROM", "Stretches", "TRX"],
    "Lumbar Thoracic": ["AROM", "Ball", "Bosu", "Elastic Band", "Elastic Taping", "Foam Roll",
                        "Free Weight", "Glider Disk", "Kettlebell", "Machines and Cables", "Medicine Ball",
                        "Miscellaneous", "Mobilization", "Stabilization", "Stretches", "Traction", "TRX"],
    "Oral Motor": ["Cheeks", "Lips", "Miscellaneous", "Speech", "Swallow", "TMJ", "Tongue"],
    "Shoulder": ["6 Way Shoulder", "AAROM", "AROM", "Ball", "Bosu", "Elastic Band", "Elastic Taping",
                 "Foam Roll", "Free Weight", "Glider Disk", "Isometric", "Kettlebell", "Machines and Cables",
                 "Medicine Ball", "Miscellaneous", "Mobilization", "Neural Glides", "Pendulum", "PROM",
                 "Pulley", "Stabilization", "Stretches", "TRX", "Wand"],
    "Special": ["Amputee", "Aquatics", "Cardio", "Miscellaneous", "Modalities", "Neuro", "Oculomotor",
                "Pediatric", "Vestibular", "Yoga"],
}

POSITIONS = ["Kneeling", "Prone", "Quadruped", "Side Lying", "Sitting", "Standing", "Supine"]


def check_taxonomy(category: Optional[str], sub_category: Optional[str], position: Optional[str]) -> None:
    """raise ValueError if category/subCategory/position fall outside the taxonomy"""
    if category is not None and category not in CATEGORIES:
        raise ValueError(f"Invalid category '{category}'")
    if sub_category is not None and category is not None:
        if sub_category not in SUB_CATEGORIES[category]:
            raise ValueError(f"Invalid subCategory '{sub_category}' for category '{category}'")
    if position is not None and position not in POSITIONS:
        raise ValueError(f"Invalid position '{position}'")


class ExercisePerform(BaseModel):
    count: int = Field(1, ge=0)
    type: Literal["hour", "day", "week"] = "hour"


class ExerciseCustom(BaseModel):
    created_by: Literal["admin", "therapist", "proUser"] = Field("admin", alias="createdBy")
    creator_id: str = Field("", alias="creatorId")
    type: Literal["public", "private"] = "public"

    model_config = {"populate_by_name": True}


class ExerciseCreate(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    instruction: str = Field(..., min_length=1)
    video: str = ""
    image: list[str] = Field(default_factory=list)
    reps: int = Field(1, ge=0)
    hold: int = Field(1, ge=0)
    set: int = Field(1, ge=0)
    perform: ExercisePerform = Field(default_factory=ExercisePerform)
    category: str
    sub_category: str = Field(..., alias="subCategory")
    position: str
    is_premium: bool = Field(False, alias="isPremium")
    visibility: Literal["public", "private"] = Field("public", description="custom.type of the new exercise")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def valid_taxonomy(self):
        check_taxonomy(self.category, self.sub_category, self.position)
        return self


class ExerciseUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    instruction: Optional[str] = Field(None, min_length=1)
    video: Optional[str] = None
    image: Optional[list[str]] = None
    reps: Optional[int] = Field(None, ge=0)
    hold: Optional[int] = Field(None, ge=0)
    set: Optional[int] = Field(None, ge=0)
    perform: Optional[ExercisePerform] = None
    category: Optional[str] = None
    sub_category: Optional[str] = Field(None, alias="subCategory")
    position: Optional[str] = None
    is_premium: Optional[bool] = Field(None, alias="isPremium")
    visibility: Optional[Literal["public", "private"]] = None

    model_config = {"populate_by_name": True}


class ExerciseResponse(BaseModel):
    id: str
    title: str
    description: str = ""
    instruction: str = ""
    video: Optional[str] = None
    image: list[str] = Field(default_factory=list)
    reps: int = 1
    hold: int = 1
    set: int = 1
    perform: ExercisePerform = Field(default_factory=ExercisePerform)
    category: str = ""
    sub_category: str = Field("", alias="subCategory")
    position: str = ""
    is_premium: bool = Field(False, alias="isPremium")
    custom: ExerciseCustom = Field(default_factory=ExerciseCustom)
    views: int = 0
    favorites: int = 0
    created_at: str = Field("", alias="createdAt")
    updated_at: str = Field("", alias="updatedAt")

    model_config = {"populate_by_name": True}


class ExerciseListResponse(BaseModel):
    exercises: list[ExerciseResponse] = Field(default_factory=list)
    page: Optional[int] = None
    pages: Optional[int] = None
    total: int = 0

    model_config = {"populate_by_name": True}


class CategoryExerciseResponse(ExerciseListResponse):
    category: str
    has_more: bool = Field(False, alias="hasMore")


def doc_to_exercise(doc: dict, show_video: bool = True) -> ExerciseResponse:
    """convert a mongodb exercise document to response model, withholding premium video"""
    custom = doc.get("custom") or {}
    perform = doc.get("perform") or {}
    image = doc.get("image", [])
    if isinstance(image, str):
        image = [image] if image else []

    video = doc.get("video") or None
    if doc.get("is_premium") and not show_video:
        video = None

    return ExerciseResponse(
        id=str(doc["_id"]),
        title=doc.get("title", ""),
        description=doc.get("description", ""),
        instruction=doc.get("instruction", ""),
        video=video,
        image=[i for i in image if i],
        reps=doc.get("reps", 1),
        hold=doc.get("hold", 1),
        set=doc.get("set", 1),
        perform=ExercisePerform(
            count=perform.get("count", 1),
            type=perform.get("type", "hour"),
        ),
        category=doc.get("category", ""),
        subCategory=doc.get("sub_category", ""),
        position=doc.get("position", ""),
        isPremium=doc.get("is_premium", False),
        custom=ExerciseCustom(
            createdBy=custom.get("created_by", "admin"),
            creatorId=custom.get("creator_id", ""),
            type=custom.get("type", "public"),
        ),
        views=doc.get("views", 0),
        favorites=doc.get("favorites", 0),
        createdAt=doc.get("created_at", ""),
        updatedAt=doc.get("updated_at", ""),
    )
