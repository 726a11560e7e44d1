"""Tests for viewing and updating application settings."""

import asyncio
import pathlib
import sys

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlmodel import SQLModel

# Allow importing the app package
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2]))

from app.main import app
from app.database import get_session
from app.models import Restaurant, User
from app.auth import get_password_hash
from app.crud import ensure_permissions_exist
from app.acl import ALL_PERMISSIONS


async def _setup_test_db():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    TestSession = async_sessionmaker(engine, expire_on_commit=False)

    async def override_get_session():
        async with TestSession() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    async with TestSession() as session:
        await ensure_permissions_exist(session, ALL_PERMISSIONS)
        restaurant = Restaurant(name="Bistro")
        session.add(restaurant)
        await session.commit()
        await session.refresh(restaurant)
        admin = User(
            name="Admin",
            email="admin@example.com",
            password_hash=get_password_hash("adminpass"),
            role="admin",
        )
        manager = User(
            name="Manager",
            email="manager@example.com",
            password_hash=get_password_hash("managerpass"),
            role="manager",
            restaurant_id=restaurant.id,
        )
        session.add(admin)
        session.add(manager)
        await session.commit()

    return TestSession


def test_settings_endpoints():
    async def run():
        await _setup_test_db()
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            # Initial settings read
            resp = await client.get("/settings/")
            assert resp.status_code == 200
            data = resp.json()
            assert data["site_name"] == "Staff Training"
            assert data["default_retake_cooldown_hours"] == 24
            assert data["default_questions_per_attempt"] == 10
            assert data["attempt_window_minutes"] == 120

            # Managers cannot change site configuration
            resp = await client.post(
                "/login",
                json={"email": "manager@example.com", "password": "managerpass"},
            )
            assert resp.status_code == 200
            manager_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
            resp = await client.put(
                "/settings/",
                headers=manager_headers,
                json={"site_name": "Hacked"},
            )
            assert resp.status_code == 403

            # Admin updates settings
            resp = await client.post(
                "/login", json={"email": "admin@example.com", "password": "adminpass"}
            )
            assert resp.status_code == 200
            admin_headers = {"Authorization": f"Bearer {resp.json()['access_token']}"}
            resp = await client.put(
                "/settings/",
                headers=admin_headers,
                json={"site_name": "Bistro Academy", "default_retake_cooldown_hours": 48},
            )
            assert resp.status_code == 200
            data = resp.json()
            assert data["site_name"] == "Bistro Academy"
            assert data["default_retake_cooldown_hours"] == 48

            # Out of range values are rejected
            resp = await client.put(
                "/settings/",
                headers=admin_headers,
                json={"default_questions_per_attempt": 0},
            )
            assert resp.status_code == 422

            # Updated values persist on subsequent read
            resp = await client.get("/settings/")
            assert resp.status_code == 200
            data = resp.json()
            assert data["site_name"] == "Bistro Academy"
            assert data["default_retake_cooldown_hours"] == 48
            assert data["default_questions_per_attempt"] == 10

    asyncio.run(run())
