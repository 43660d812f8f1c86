"""
Resume API tests
"""
import pytest
from httpx import AsyncClient

from mockmate.models.resume import UserResume
from mockmate.models.user import User
from tests.conftest import DataFactory

RESUME_TEXT = "Senior Python engineer. FastAPI, SQLAlchemy, Redis, Kubernetes."


@pytest.mark.asyncio
async def test_first_resume_becomes_default(client: AsyncClient, user_headers: dict):
    response = await client.post("/api/resumes", headers=user_headers, json={
        "title": "Backend CV",
        "content": RESUME_TEXT,
    })
    assert response.status_code == 201
    first = response.json()["data"]
    assert first["is_default"] is True

    response = await client.post("/api/resumes", headers=user_headers, json={
        "title": "Data CV",
        "content": RESUME_TEXT,
    })
    assert response.json()["data"]["is_default"] is False

    response = await client.get("/api/resumes", headers=user_headers)
    items = response.json()["data"]
    assert len(items) == 2
    assert items[0]["id"] == first["id"]
    assert "content" not in items[0]


@pytest.mark.asyncio
async def test_set_default_moves_flag(
    client: AsyncClient, factory: DataFactory, user: User, user_headers: dict
):
    first = await factory.create_resume(user)
    second = await factory.create_resume(user)

    response = await client.post(f"/api/resumes/{second.id}/default", headers=user_headers)
    assert response.status_code == 200
    assert response.json()["data"]["is_default"] is True

    assert (await factory.get(UserResume, first.id)).is_default is False
    assert (await factory.get(UserResume, second.id)).is_default is True


@pytest.mark.asyncio
async def test_update_and_delete(client: AsyncClient, factory: DataFactory, user: User, user_headers: dict):
    resume = await factory.create_resume(user)

    response = await client.put(f"/api/resumes/{resume.id}", headers=user_headers, json={"title": "Renamed"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["title"] == "Renamed"
    assert data["content"] == resume.content

    response = await client.delete(f"/api/resumes/{resume.id}", headers=user_headers)
    assert response.status_code == 200

    response = await client.get(f"/api/resumes/{resume.id}", headers=user_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_other_users_resume_is_hidden(client: AsyncClient, factory: DataFactory, user_headers: dict):
    other = await factory.create_user()
    resume = await factory.create_resume(other)

    response = await client.get(f"/api/resumes/{resume.id}", headers=user_headers)
    assert response.status_code == 404
    assert response.json()["code"] == "RESUME_NOT_FOUND"

    response = await client.delete(f"/api/resumes/{resume.id}", headers=user_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_resume_validation(client: AsyncClient, user_headers: dict):
    response = await client.post("/api/resumes", headers=user_headers, json={"title": "", "content": RESUME_TEXT})
    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
