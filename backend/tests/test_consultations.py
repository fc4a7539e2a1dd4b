# tests for consultations — therapist lifecycle routes and the populated read view
# tests for app/routers/therapist.py (consultations) and app/routers/consultations.py

import copy
from datetime import timedelta

from tests.conftest import (
    CONSULTATION_ID, MISSING_ID, NOW, PENDING_THERAPIST_ID, PREMIUM_EXERCISE_ID, PRIVATE_EXERCISE_ID,
    PRO_USER_ID, PUBLIC_EXERCISE_ID, THERAPIST_ID, USER_ID,
)


class TestCreateConsultation:
    """POST /therapist/consultations creates an already active consultation"""

    async def test_create_activates(self, client, mock_db, therapist_headers):
        resp = await client.post("/therapist/consultations", headers=therapist_headers, json={
            "patientId": PRO_USER_ID,
            "recommendedExercises": [PUBLIC_EXERCISE_ID, PREMIUM_EXERCISE_ID, PUBLIC_EXERCISE_ID],
            "notes": "  Daily  ",
            "activeDays": 14,
        })
        assert resp.status_code == 201
        data = resp.json()
        assert data["therapistId"] == THERAPIST_ID
        assert data["recommendedExercises"] == [PUBLIC_EXERCISE_ID, PREMIUM_EXERCISE_ID]
        assert data["notes"] == "Daily"
        assert data["request"]["status"] == "active"
        assert data["request"]["expiresOn"] == (NOW + timedelta(days=14)).isoformat()

        # single insert, count recomputed
        assert len(mock_db.consultations.inserted) == 1
        therapist = await mock_db.therapists.find_one({"email": "maya.lin@clinic.com"})
        assert therapist["consultation_count"] == 2

    async def test_default_window(self, client, therapist_headers):
        resp = await client.post("/therapist/consultations", headers=therapist_headers, json={"patientId": USER_ID})
        assert resp.status_code == 201
        assert resp.json()["request"]["activeDays"] == 14
        assert resp.json()["recommendedExercises"] == []

    async def test_unknown_patient(self, client, therapist_headers):
        resp = await client.post("/therapist/consultations", headers=therapist_headers, json={"patientId": MISSING_ID})
        assert resp.status_code == 404

    async def test_malformed_exercise(self, client, therapist_headers):
        resp = await client.post("/therapist/consultations", headers=therapist_headers, json={
            "patientId": USER_ID, "recommendedExercises": ["nope"],
        })
        assert resp.status_code == 400

    async def test_unknown_exercise(self, client, mock_db, therapist_headers):
        resp = await client.post("/therapist/consultations", headers=therapist_headers, json={
            "patientId": USER_ID, "recommendedExercises": [MISSING_ID],
        })
        assert resp.status_code == 404
        assert len(mock_db.consultations._data) == 1

    async def test_bad_window(self, client, therapist_headers):
        resp = await client.post("/therapist/consultations", headers=therapist_headers, json={
            "patientId": USER_ID, "activeDays": 0,
        })
        assert resp.status_code == 400

    async def test_pending_therapist_cannot_create(self, client, pending_therapist_headers):
        resp = await client.post("/therapist/consultations", headers=pending_therapist_headers, json={
            "patientId": USER_ID,
        })
        assert resp.status_code == 403


class TestListConsultations:
    """lists are newest first and lazily expired"""

    async def test_therapist_list(self, client, mock_db, therapist_headers):
        older = copy.deepcopy(mock_db.consultations._data[0])
        del older["_id"]
        older["created_at"] = (NOW - timedelta(days=30)).isoformat()
        older["request"]["expires_on"] = (NOW - timedelta(days=16)).isoformat()
        await mock_db.consultations.insert_one(older)

        resp = await client.get("/therapist/consultations", headers=therapist_headers)
        data = resp.json()
        assert [c["id"] for c in data][0] == CONSULTATION_ID
        assert [c["request"]["status"] for c in data] == ["active", "inactive"]
        assert mock_db.consultations._data[1]["request"]["status"] == "inactive"

    async def test_other_therapist_sees_none(self, client, therapist_2_headers):
        resp = await client.get("/therapist/consultations", headers=therapist_2_headers)
        assert resp.json() == []

    async def test_patient_list(self, client, user_headers):
        resp = await client.get("/users/consultations", headers=user_headers)
        assert [c["id"] for c in resp.json()] == [CONSULTATION_ID]


class TestOwnership:
    """a therapist may only change their own consultations"""

    async def test_non_owner_update_forbidden_and_unmodified(self, client, mock_db, therapist_2_headers):
        before = copy.deepcopy(mock_db.consultations._data[0])
        resp = await client.put(f"/therapist/consultations/{CONSULTATION_ID}", headers=therapist_2_headers, json={
            "notes": "hijacked", "activeDays": 90,
        })
        assert resp.status_code == 403
        assert mock_db.consultations._data[0] == before

    async def test_non_owner_delete_forbidden(self, client, mock_db, therapist_2_headers):
        resp = await client.delete(f"/therapist/consultations/{CONSULTATION_ID}", headers=therapist_2_headers)
        assert resp.status_code == 403
        assert len(mock_db.consultations._data) == 1

    async def test_non_owner_activate_forbidden(self, client, therapist_2_headers):
        resp = await client.put(
            f"/therapist/consultations/{CONSULTATION_ID}/activate", headers=therapist_2_headers, json={"activeDays": 5},
        )
        assert resp.status_code == 403

    async def test_missing_and_malformed(self, client, therapist_headers):
        resp = await client.put(f"/therapist/consultations/{MISSING_ID}", headers=therapist_headers, json={})
        assert resp.status_code == 404
        resp = await client.put("/therapist/consultations/xyz", headers=therapist_headers, json={})
        assert resp.status_code == 400


class TestUpdateActivateDelete:
    """owner operations"""

    async def test_update_measures_from_creation(self, client, therapist_headers):
        resp = await client.put(f"/therapist/consultations/{CONSULTATION_ID}", headers=therapist_headers, json={
            "recommendedExercises": [PREMIUM_EXERCISE_ID], "notes": "Progress to weights", "activeDays": 30,
        })
        assert resp.status_code == 200
        data = resp.json()
        assert data["recommendedExercises"] == [PREMIUM_EXERCISE_ID]
        assert data["request"]["expiresOn"] == (NOW - timedelta(days=2) + timedelta(days=30)).isoformat()

    async def test_shortened_window_expires_immediately(self, client, mock_db, therapist_headers):
        resp = await client.put(f"/therapist/consultations/{CONSULTATION_ID}", headers=therapist_headers, json={
            "activeDays": 1,
        })
        assert resp.json()["request"]["status"] == "inactive"
        assert mock_db.consultations._data[0]["request"]["status"] == "inactive"

    async def test_reactivate(self, client, mock_db, clock, therapist_headers):
        clock.now = NOW + timedelta(days=20)
        resp = await client.put(
            f"/therapist/consultations/{CONSULTATION_ID}/activate", headers=therapist_headers, json={"activeDays": 7},
        )
        assert resp.status_code == 200
        assert resp.json()["request"]["status"] == "active"
        assert resp.json()["request"]["expiresOn"] == (clock.now + timedelta(days=7)).isoformat()

    async def test_delete(self, client, mock_db, therapist_headers):
        resp = await client.delete(f"/therapist/consultations/{CONSULTATION_ID}", headers=therapist_headers)
        assert resp.status_code == 200
        assert mock_db.consultations._data == []
        therapist = await mock_db.therapists.find_one({"email": "maya.lin@clinic.com"})
        assert therapist["consultation_count"] == 0


class TestReadConsultation:
    """GET /consultation/{id}"""

    async def test_patient_reads_populated(self, client, user_headers):
        resp = await client.get(f"/consultation/{CONSULTATION_ID}", headers=user_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        data = body["data"]
        assert data["therapist"]["id"] == THERAPIST_ID
        assert data["patient"]["id"] == USER_ID
        # the owning therapist's private exercise is included
        assert [e["id"] for e in data["recommendedExercises"]] == [PUBLIC_EXERCISE_ID, PRIVATE_EXERCISE_ID]

    async def test_other_therapists_private_exercise_is_dropped(self, client, mock_db, user_headers):
        private = await mock_db.exercises.find_one({"title": "Clinic Step Drill"})
        private["custom"]["creator_id"] = PENDING_THERAPIST_ID

        resp = await client.get(f"/consultation/{CONSULTATION_ID}", headers=user_headers)
        assert [e["id"] for e in resp.json()["data"]["recommendedExercises"]] == [PUBLIC_EXERCISE_ID]

    async def test_owner_and_admin_can_read(self, client, therapist_headers, admin_headers):
        assert (await client.get(f"/consultation/{CONSULTATION_ID}", headers=therapist_headers)).status_code == 200
        assert (await client.get(f"/consultation/{CONSULTATION_ID}", headers=admin_headers)).status_code == 200

    async def test_strangers_forbidden(self, client, pro_headers, therapist_2_headers):
        assert (await client.get(f"/consultation/{CONSULTATION_ID}", headers=pro_headers)).status_code == 403
        assert (await client.get(f"/consultation/{CONSULTATION_ID}", headers=therapist_2_headers)).status_code == 403

    async def test_anonymous_rejected(self, client):
        resp = await client.get(f"/consultation/{CONSULTATION_ID}")
        assert resp.status_code == 401

    async def test_lazy_expiration_on_read(self, client, mock_db, clock, user_headers):
        # created 2 days before NOW with a 14 day window
        clock.now = NOW + timedelta(days=11)
        resp = await client.get(f"/consultation/{CONSULTATION_ID}", headers=user_headers)
        assert resp.json()["data"]["request"]["status"] == "active"

        clock.now = NOW + timedelta(days=13)
        resp = await client.get(f"/consultation/{CONSULTATION_ID}", headers=user_headers)
        assert resp.json()["data"]["request"]["status"] == "inactive"
        assert mock_db.consultations._data[0]["request"]["status"] == "inactive"

        # reading again does not resurrect it
        resp = await client.get(f"/consultation/{CONSULTATION_ID}", headers=user_headers)
        assert resp.json()["data"]["request"]["status"] == "inactive"

    async def test_expiry_on_read_updates_therapist_count(self, client, mock_db, clock, user_headers):
        clock.now = NOW + timedelta(days=13)
        await client.get(f"/consultation/{CONSULTATION_ID}", headers=user_headers)

        therapist = await mock_db.therapists.find_one({"email": "maya.lin@clinic.com"})
        assert therapist["consultation_count"] == 0

    async def test_missing_patient(self, client, mock_db, therapist_headers):
        await mock_db.users.delete_one({"email": "sam.reed@email.com"})
        resp = await client.get(f"/consultation/{CONSULTATION_ID}", headers=therapist_headers)
        assert resp.status_code == 404
        assert resp.json()["message"] == "Patient not found"
