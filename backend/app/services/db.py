# async mongodb client for the backend api
# uses motor for non-blocking operations

import logging
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING

from app.config import settings
from app.errors import ValidationError

logger = logging.getLogger(__name__)


class Database:
    """async mongodb connection manager"""

    def __init__(self):
        self.client: Optional[AsyncIOMotorClient] = None
        self.db: Optional[AsyncIOMotorDatabase] = None

    async def connect(self):
        """establish connection to mongodb"""
        if self.client is not None:
            return

        logger.info(f"Connecting to MongoDB database: {settings.MONGODB_DATABASE}")
        self.client = AsyncIOMotorClient(settings.MONGODB_URI)
        self.db = self.client[settings.MONGODB_DATABASE]

        # verify connection
        await self.client.admin.command("ping")
        logger.info("MongoDB connection established")

    async def close(self):
        """close mongodb connection"""
        if self.client:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("MongoDB connection closed")

    async def ensure_indexes(self):
        """unique constraints backing the one-edge-per-pair and one-account-per-email rules"""
        await self.users.create_index("email", unique=True)
        await self.therapists.create_index("email", unique=True)
        await self.therapists.create_index("status")
        await self.exercises.create_index("category")
        await self.exercises.create_index("custom.creator_id")
        await self.consultations.create_index([("therapist_id", ASCENDING), ("created_at", ASCENDING)])
        await self.consultations.create_index([("patient_id", ASCENDING), ("created_at", ASCENDING)])
        await self.favorites.create_index(
            [("user_id", ASCENDING), ("exercise_id", ASCENDING)], unique=True
        )
        await self.follows.create_index(
            [("user_id", ASCENDING), ("therapist_id", ASCENDING)], unique=True
        )
        await self.routines.create_index("user_id")
        # ttl index, mongodb evicts codes once expires_at has passed
        await self.otp_codes.create_index("expires_at", expireAfterSeconds=0)
        await self.otp_codes.create_index([("email", ASCENDING), ("purpose", ASCENDING)])
        logger.info("MongoDB indexes ensured")

    # collection accessors

    @property
    def users(self):
        return self.db["users"]

    @property
    def therapists(self):
        return self.db["therapists"]

    @property
    def exercises(self):
        return self.db["exercises"]

    @property
    def consultations(self):
        return self.db["consultations"]

    @property
    def favorites(self):
        return self.db["favorites"]

    @property
    def follows(self):
        return self.db["follows"]

    @property
    def routines(self):
        return self.db["routines"]

    @property
    def otp_codes(self):
        return self.db["otp_codes"]


def to_object_id(value: str, label: str = "id") -> ObjectId:
    """parse a path/body id, raising a 400 for malformed values"""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {label} format")


def is_object_id(value) -> bool:
    return ObjectId.is_valid(value)


# singleton instance
db = Database()


async def get_db() -> Database:
    """dependency injection for database access"""
    return db
