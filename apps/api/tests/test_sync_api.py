"""
POST /sync endpoint tests.
"""

import pytest
from fastapi.testclient import TestClient
from unittest.mock import patch
from sqlalchemy.exc import OperationalError

from main import app
from models import Contact, User

client = TestClient(app)


def _body(**overrides):
    body = {
        "userId": "user_api",
        "language": "en",
        "lastCheckIn": 1_700_000_000_000,
        "streak": 3,
        "isRegistered": True,
        "userContact": {"name": "Ada", "email": "ada@example.com", "phone": "555"},
        "emergencyContacts": [
            {"id": "g-1", "name": "Grace", "email": "grace@example.com", "phone": ""},
        ],
        "checkInHistory": [
            {"timestamp": 1_700_000_000_000, "dateString": "2023-11-14", "timeString": "22:13"},
        ],
    }
    body.update(overrides)
    return body


class TestSyncEndpoint:

    def test_sync_success_envelope(self, db_session):
        response = client.post("/sync", json=_body())

        assert response.status_code == 200
        assert response.json() == {"success": True, "userId": "user_api"}
        assert db_session.get(User, "user_api").streak == 3

    def test_repeat_sync_leaves_same_state(self, db_session):
        client.post("/sync", json=_body())
        client.post("/sync", json=_body())

        assert db_session.query(User).count() == 1
        assert db_session.query(Contact).count() == 1

    def test_guardian_email_without_at_rejected_before_mutation(self, db_session):
        body = _body(emergencyContacts=[{"id": "g-1", "name": "Grace", "email": "grace.example.com"}])
        response = client.post("/sync", json=body)

        assert response.status_code == 422
        assert "@" in response.json()["error"]
        assert db_session.get(User, "user_api") is None

    def test_empty_name_rejected(self, db_session):
        response = client.post("/sync", json=_body(userContact={"name": "  ", "email": "a@b.c"}))
        assert response.status_code == 422
        assert "error" in response.json()

    def test_more_than_three_guardians_rejected(self, db_session):
        contacts = [
            {"id": f"g-{i}", "name": f"G{i}", "email": f"g{i}@example.com"} for i in range(4)
        ]
        response = client.post("/sync", json=_body(emergencyContacts=contacts))
        assert response.status_code == 422

    def test_registered_subject_needs_a_guardian(self, db_session):
        response = client.post("/sync", json=_body(emergencyContacts=[]))
        assert response.status_code == 422
        assert "guardian" in response.json()["error"]

    def test_missing_user_id_rejected(self, db_session):
        body = _body()
        del body["userId"]
        response = client.post("/sync", json=body)
        assert response.status_code == 422

    def test_guardian_id_collision_is_conflict(self, db_session):
        client.post("/sync", json=_body())
        response = client.post("/sync", json=_body(userId="user_other"))

        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    def test_store_failure_is_json_error(self, db_session):
        with patch(
            "services.state_sync._upsert_user",
            side_effect=OperationalError("INSERT", {}, Exception("disk I/O error")),
        ):
            response = client.post("/sync", json=_body())

        assert response.status_code == 500
        assert response.json()["code"] == "PERSISTENCE_ERROR"
        assert "error" in response.json()
