# seed script — creates the admin account and a starter exercise catalog in mongodb
# run once: python -m app.seed

import asyncio
import logging

from app.config import settings
from app.services.auth_service import hash_password
from app.services.clock import utcnow
from app.services.db import db
from app.services.membership import free_membership

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

# starter catalog, one entry per (category, subCategory, position)
EXERCISES = [
    {"title": "Ankle Alphabet", "category": "Ankle and Foot", "sub_category": "AROM", "position": "Sitting",
     "description": "Trace the alphabet with your toes to mobilize the ankle.",
     "instruction": "Sit with the leg extended and draw each letter slowly with the big toe."},
    {"title": "Chin Tucks", "category": "Cervical", "sub_category": "Stabilization", "position": "Supine",
     "description": "Strengthens the deep neck flexors.",
     "instruction": "Gently nod the chin toward the chest without lifting the head. Hold, then relax."},
    {"title": "Wrist Flexor Stretch", "category": "Elbow and Hand", "sub_category": "Stretches", "position": "Standing",
     "description": "Stretches the forearm flexors.",
     "instruction": "Extend the arm, palm up, and pull the fingers back with the other hand."},
    {"title": "Straight Leg Raise", "category": "Hip and Knee", "sub_category": "Open Chain", "position": "Supine",
     "description": "Builds quadriceps strength without loading the knee.",
     "instruction": "Tighten the thigh and lift the straight leg to the height of the opposite knee."},
    {"title": "Cat Camel", "category": "Lumbar Thoracic", "sub_category": "Mobilization", "position": "Quadruped",
     "description": "Mobilizes the spine through flexion and extension.",
     "instruction": "Arch the back up, then let it sag, moving slowly through the full range."},
    {"title": "Pendulum Swing", "category": "Shoulder", "sub_category": "Pendulum", "position": "Standing",
     "description": "Gentle passive motion for the shoulder joint.",
     "instruction": "Lean on a table and let the arm hang, swinging it in small circles.", "is_premium": True,
     "video": "https://cdn.hep2go.app/videos/pendulum-swing.mp4"},
]


async def seed():
    """create the admin user and starter exercises, skips existing"""
    await db.connect()
    await db.ensure_indexes()
    now = utcnow().isoformat()

    admin = await db.users.find_one({"email": settings.ADMIN_EMAIL})
    if admin:
        admin_id = str(admin["_id"])
        logger.info(f"Admin already exists: {settings.ADMIN_EMAIL} (id: {admin_id})")
    elif not settings.ADMIN_PASSWORD:
        logger.error("ADMIN_PASSWORD is not set, cannot create the admin account")
        await db.close()
        return
    else:
        result = await db.users.insert_one({
            "email": settings.ADMIN_EMAIL,
            "hashed_password": hash_password(settings.ADMIN_PASSWORD),
            "full_name": "HEP2GO Admin",
            "profile_image": None,
            "role": "admin",
            "membership": [free_membership()],
            "creator": {"created_by": "self", "created_by_id": None},
            "created_at": now,
            "updated_at": now,
        })
        admin_id = str(result.inserted_id)
        logger.info(f"Created admin: {settings.ADMIN_EMAIL} (id: {admin_id})")

    created = 0
    for e in EXERCISES:
        if await db.exercises.find_one({"title": e["title"], "custom.created_by": "admin"}):
            logger.info(f"Exercise already exists: {e['title']}")
            continue
        await db.exercises.insert_one({
            "title": e["title"],
            "description": e["description"],
            "instruction": e["instruction"],
            "video": e.get("video", ""),
            "image": [],
            "reps": 10,
            "hold": 5,
            "set": 2,
            "perform": {"count": 1, "type": "day"},
            "category": e["category"],
            "sub_category": e["sub_category"],
            "position": e["position"],
            "is_premium": e.get("is_premium", False),
            "custom": {"created_by": "admin", "creator_id": admin_id, "type": "public"},
            "views": 0,
            "favorites": 0,
            "created_at": now,
            "updated_at": now,
        })
        created += 1

    logger.info(f"Seeded {created} exercises ({len(EXERCISES) - created} already existed)")
    logger.info("Seed complete!")
    await db.close()


if __name__ == "__main__":
    asyncio.run(seed())
