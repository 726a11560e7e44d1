"""API tests covering a manager building a quiz and staff taking it."""

import asyncio
import pathlib
import random
import sys
from datetime import datetime, timedelta

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

# Allow importing the app package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from app.main import app
from app.database import get_session
from app.engine import TrainingEngine, get_engine
from app.crud import ensure_permissions_exist
from app.acl import ALL_PERMISSIONS
from app.question_source import BankQuestionSource


class FakeClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now


async def _setup_test_db(clock):
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    TestSession = async_sessionmaker(engine, expire_on_commit=False)

    async def override_get_session():
        async with TestSession() as session:
            yield session

    training = TrainingEngine(BankQuestionSource(), rng=random.Random(3), clock=clock)
    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_engine] = lambda: training

    async with TestSession() as session:
        await ensure_permissions_exist(session, ALL_PERMISSIONS)

    return TestSession


async def _login(client, email, password):
    resp = await client.post("/login", json={"email": email, "password": password})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def _question(text, correct=1):
    return {
        "question_text": text,
        "question_type": "multiple-choice-single",
        "options": [
            {"text": "A", "is_correct": correct == 0},
            {"text": "B", "is_correct": correct == 1},
            {"text": "C", "is_correct": correct == 2},
        ],
        "knowledge_category": "food-knowledge",
    }


def test_registration_creates_admin_then_restaurant_managers():
    async def run():
        await _setup_test_db(FakeClock(datetime(2024, 5, 1, 8, 0)))
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.get("/needs-admin")
            assert resp.json() == {"needs_admin": True}

            resp = await client.post(
                "/register",
                json={"name": "Admin", "email": "admin@example.com", "password": "pw"},
            )
            assert resp.status_code == 200
            assert resp.json()["role"] == "admin"
            assert resp.json()["restaurant_id"] is None

            # later registrations must name their restaurant
            resp = await client.post(
                "/register",
                json={"name": "Mia", "email": "mia@example.com", "password": "pw"},
            )
            assert resp.status_code == 422

            resp = await client.post(
                "/register",
                json={
                    "name": "Mia",
                    "email": "mia@example.com",
                    "password": "pw",
                    "restaurant_name": "Bistro",
                },
            )
            assert resp.status_code == 200
            assert resp.json()["role"] == "manager"
            assert resp.json()["restaurant_id"] is not None

            resp = await client.post(
                "/register",
                json={
                    "name": "Mia",
                    "email": "mia@example.com",
                    "password": "pw",
                    "restaurant_name": "Bistro",
                },
            )
            assert resp.status_code == 400

            headers = await _login(client, "mia@example.com", "pw")
            resp = await client.get("/users/me", headers=headers)
            assert resp.status_code == 200
            perms = set(resp.json()["permissions"])
            assert "manage_quizzes" in perms
            assert "take_quizzes" not in perms

            # admins are not attached to a restaurant
            admin_headers = await _login(client, "admin@example.com", "pw")
            resp = await client.get("/quizzes/", headers=admin_headers)
            assert resp.status_code == 403

    asyncio.run(run())


def test_quiz_training_flow():
    async def run():
        clock = FakeClock(datetime(2024, 5, 1, 8, 0))
        await _setup_test_db(clock)
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            await client.post(
                "/register",
                json={"name": "Admin", "email": "admin@example.com", "password": "pw"},
            )
            resp = await client.post(
                "/register",
                json={
                    "name": "Mia",
                    "email": "mia@example.com",
                    "password": "pw",
                    "restaurant_name": "Bistro",
                },
            )
            assert resp.status_code == 200
            manager = await _login(client, "mia@example.com", "pw")

            resp = await client.post("/roles/", headers=manager, json={"name": "Server"})
            assert resp.status_code == 200
            server_role = resp.json()["id"]

            resp = await client.post(
                "/staff/",
                headers=manager,
                json={
                    "name": "Sam",
                    "email": "sam@example.com",
                    "password": "pw",
                    "assigned_role_id": server_role,
                },
            )
            assert resp.status_code == 200
            sam_id = resp.json()["id"]
            resp = await client.post(
                "/staff/",
                headers=manager,
                json={"name": "Kai", "email": "kai@example.com", "password": "pw"},
            )
            assert resp.status_code == 200
            resp = await client.post(
                "/staff/",
                headers=manager,
                json={
                    "name": "Bad",
                    "email": "bad@example.com",
                    "password": "pw",
                    "assigned_role_id": 999,
                },
            )
            assert resp.status_code == 404

            resp = await client.post(
                "/question-banks/", headers=manager, json={"name": "Dinner menu"}
            )
            assert resp.status_code == 200
            bank_id = resp.json()["id"]
            for i in range(3):
                resp = await client.post(
                    f"/question-banks/{bank_id}/questions",
                    headers=manager,
                    json=_question(f"Dish {i}"),
                )
                assert resp.status_code == 200

            # option rules are enforced when a question is added
            bad = _question("Broken")
            bad["question_type"] = "true-false"
            resp = await client.post(
                f"/question-banks/{bank_id}/questions", headers=manager, json=bad
            )
            assert resp.status_code == 422

            resp = await client.get("/question-banks/", headers=manager)
            assert resp.json()[0]["question_count"] == 3

            resp = await client.post(
                "/quizzes/",
                headers=manager,
                json={
                    "title": "Dinner service",
                    "source_question_bank_ids": [bank_id],
                    "number_of_questions_per_attempt": 2,
                    "eligible_role_ids": [server_role],
                    "is_available": True,
                },
            )
            assert resp.status_code == 200
            quiz = resp.json()
            assert quiz["total_unique_questions_in_source_snapshot"] == 3
            assert quiz["retake_cooldown_hours"] == 24

            sam = await _login(client, "sam@example.com", "pw")
            kai = await _login(client, "kai@example.com", "pw")

            # Kai has no role, so a role-restricted quiz is hidden and forbidden
            resp = await client.get("/quizzes/available", headers=kai)
            assert resp.json() == []
            resp = await client.post(f"/quizzes/{quiz['id']}/start", headers=kai)
            assert resp.status_code == 403
            assert resp.json()["code"] == "forbidden"

            # managers cannot take quizzes
            resp = await client.post(f"/quizzes/{quiz['id']}/start", headers=manager)
            assert resp.status_code == 403

            resp = await client.get("/quizzes/available", headers=sam)
            available = resp.json()
            assert len(available) == 1
            assert available[0]["can_attempt"] is True

            resp = await client.post(f"/quizzes/{quiz['id']}/start", headers=sam)
            assert resp.status_code == 200
            started = resp.json()
            assert len(started["questions"]) == 2
            assert started["questions"][0]["options"] == ["A", "B", "C"]

            resp = await client.post(
                f"/quizzes/{quiz['id']}/submit",
                headers=sam,
                json={"attempt_token": started["attempt_token"], "answers": [1]},
            )
            assert resp.status_code == 422
            assert resp.json()["code"] == "validation_error"

            resp = await client.post(
                f"/quizzes/{quiz['id']}/submit",
                headers=sam,
                json={"attempt_token": started["attempt_token"], "answers": [1, 0]},
            )
            assert resp.status_code == 200
            result = resp.json()
            assert result["score"] == 1
            assert result["total_questions"] == 2
            assert result["correct_answers"] == [1, 1]
            assert result["overall_progress_percentage"] == 66.7
            attempt_id = result["attempt_id"]

            resp = await client.post(
                f"/quizzes/{quiz['id']}/submit",
                headers=sam,
                json={"attempt_token": started["attempt_token"], "answers": [1, 0]},
            )
            assert resp.status_code == 409

            resp = await client.post(f"/quizzes/{quiz['id']}/start", headers=sam)
            assert resp.status_code == 409
            body = resp.json()
            assert body["code"] == "too_soon"
            assert body["next_eligible_at"] == "2024-05-02T08:00:00"

            resp = await client.get(f"/quizzes/{quiz['id']}/eligibility", headers=sam)
            assert resp.json()["allowed"] is False

            resp = await client.get("/staff/me/progress", headers=sam)
            progress = resp.json()
            assert progress["average_score"] == 50.0
            assert progress["quizzes_taken"] == 1
            assert progress["per_quiz"][0]["title"] == "Dinner service"

            resp = await client.get(f"/quizzes/{quiz['id']}/progress", headers=sam)
            assert resp.json()["attempts_count"] == 1

            resp = await client.get("/staff/me/attempts", headers=sam)
            assert [a["attempt_id"] for a in resp.json()] == [attempt_id]

            resp = await client.get("/staff/me/categories", headers=sam)
            assert resp.json()[0]["knowledge_category"] == "food-knowledge"

            resp = await client.get(f"/attempts/{attempt_id}", headers=sam)
            assert resp.status_code == 200
            detail = resp.json()
            assert len(detail["questions"]) == 2
            assert detail["questions"][0]["correct_answer"] == 1

            # staff cannot read each other's attempts
            resp = await client.get(f"/attempts/{attempt_id}", headers=kai)
            assert resp.status_code == 404
            resp = await client.get(f"/attempts/{attempt_id}", headers=manager)
            assert resp.status_code == 200

            resp = await client.get("/staff/rollup", headers=manager)
            rollup = {s["staff_id"]: s for s in resp.json()}
            assert rollup[sam_id]["average_score"] == 50.0
            assert rollup[sam_id]["assignable_quizzes_count"] == 1
            assert len(rollup) == 2

            resp = await client.get("/staff/rollup", headers=sam)
            assert resp.status_code == 403

            resp = await client.get("/notifications/", headers=manager)
            notes = resp.json()
            assert len(notes) == 1
            assert notes[0]["type"] == "training_completed"
            assert notes[0]["related_attempt_id"] == attempt_id
            resp = await client.post(
                f"/notifications/{notes[0]['id']}/read", headers=manager
            )
            assert resp.json()["read"] is True
            resp = await client.get(
                "/notifications/", headers=manager, params={"unread_only": True}
            )
            assert resp.json() == []

            # hiding the quiz drops it from the average
            resp = await client.put(
                f"/quizzes/{quiz['id']}", headers=manager, json={"is_available": False}
            )
            assert resp.status_code == 200
            resp = await client.get(f"/staff/{sam_id}/progress", headers=manager)
            assert resp.json()["average_score"] is None

            resp = await client.delete(f"/quizzes/{quiz['id']}", headers=manager)
            assert resp.status_code == 200
            resp = await client.get(f"/quizzes/{quiz['id']}", headers=manager)
            assert resp.status_code == 404
            assert resp.json()["code"] == "not_found"
            resp = await client.get(f"/staff/{sam_id}/attempts", headers=manager)
            assert resp.json() == []

            resp = await client.delete(f"/staff/{sam_id}", headers=manager)
            assert resp.status_code == 200
            resp = await client.get(f"/staff/{sam_id}", headers=manager)
            assert resp.status_code == 404

    asyncio.run(run())


def test_other_restaurants_are_invisible():
    async def run():
        await _setup_test_db(FakeClock(datetime(2024, 5, 1, 8, 0)))
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            await client.post(
                "/register",
                json={"name": "Admin", "email": "admin@example.com", "password": "pw"},
            )
            for name, email in (("Bistro", "a@example.com"), ("Diner", "b@example.com")):
                resp = await client.post(
                    "/register",
                    json={
                        "name": name,
                        "email": email,
                        "password": "pw",
                        "restaurant_name": name,
                    },
                )
                assert resp.status_code == 200
            bistro = await _login(client, "a@example.com", "pw")
            diner = await _login(client, "b@example.com", "pw")

            resp = await client.post(
                "/question-banks/", headers=bistro, json={"name": "Bistro menu"}
            )
            bank_id = resp.json()["id"]
            await client.post(
                f"/question-banks/{bank_id}/questions",
                headers=bistro,
                json=_question("Soup of the day"),
            )
            resp = await client.post(
                "/quizzes/",
                headers=bistro,
                json={"title": "Soups", "source_question_bank_ids": [bank_id]},
            )
            quiz_id = resp.json()["id"]

            resp = await client.get(f"/quizzes/{quiz_id}", headers=diner)
            assert resp.status_code == 404
            resp = await client.put(
                f"/quizzes/{quiz_id}", headers=diner, json={"is_available": True}
            )
            assert resp.status_code == 404
            resp = await client.delete(f"/quizzes/{quiz_id}", headers=diner)
            assert resp.status_code == 404
            resp = await client.get(f"/question-banks/{bank_id}/questions", headers=diner)
            assert resp.status_code == 404
            resp = await client.post(
                "/quizzes/",
                headers=diner,
                json={"title": "Copy", "source_question_bank_ids": [bank_id]},
            )
            assert resp.status_code == 404

            resp = await client.post(f"/quizzes/{quiz_id}/snapshot", headers=bistro)
            assert resp.status_code == 200
            assert resp.json()["total_unique_questions_in_source_snapshot"] == 1

    asyncio.run(run())
