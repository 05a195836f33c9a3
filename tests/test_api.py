"""Tests for the HTTP API, run against an in-memory database."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.api.flashcard_router import get_scheduler
from backend.database import get_session
from backend.main import app
from backend.models.flashcard import Flashcard
from backend.srs import store
from backend.srs.errors import ConcurrentModificationConflict
from backend.srs.scheduler import Scheduler


@pytest_asyncio.fixture
async def client(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncClient, None]:
    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_scheduler] = lambda: Scheduler()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def _create(client: AsyncClient, front: str = "bonjour", user_id: str = "alice") -> dict:
    response = await client.post(
        "/api/flashcards",
        params={"user_id": user_id},
        json={"front": front, "back": "hello", "type": "Definition", "tags": ["fr"]},
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_create_and_get_flashcard(client: AsyncClient) -> None:
    created = await _create(client)
    assert created["state"] == "NEW"
    assert created["type"] == "Definition"
    assert created["tags"] == ["fr"]
    assert created["reps"] == 0
    assert created["version"] == 1

    response = await client.get(f"/api/flashcards/{created['id']}", params={"user_id": "alice"})
    assert response.status_code == 200
    assert response.json()["front"] == "bonjour"


@pytest.mark.asyncio
async def test_create_rejects_unknown_type(client: AsyncClient) -> None:
    response = await client.post(
        "/api/flashcards", json={"front": "a", "back": "b", "type": "Essay"}
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_missing_or_foreign_flashcard(client: AsyncClient) -> None:
    created = await _create(client)
    assert (await client.get("/api/flashcards/9999", params={"user_id": "alice"})).status_code == 404
    response = await client.get(f"/api/flashcards/{created['id']}", params={"user_id": "bob"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_review_flashcard(client: AsyncClient) -> None:
    created = await _create(client)
    response = await client.post(
        f"/api/flashcards/{created['id']}/review",
        params={"user_id": "alice"},
        json={"rating": 3, "review_duration_ms": 2500},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["card_state"] == "LEARNING"
    assert body["state_changed"] is True
    assert body["interval_days"] == 0
    assert body["reps"] == 1
    assert body["lapses"] == 0

    stored = (await client.get(f"/api/flashcards/{created['id']}", params={"user_id": "alice"})).json()
    assert stored["state"] == "LEARNING"
    assert stored["version"] == 2


@pytest.mark.asyncio
async def test_review_invalid_rating(client: AsyncClient) -> None:
    created = await _create(client)
    for rating in (0, 5):
        response = await client.post(
            f"/api/flashcards/{created['id']}/review",
            params={"user_id": "alice"},
            json={"rating": rating},
        )
        assert response.status_code == 400

    stored = (await client.get(f"/api/flashcards/{created['id']}", params={"user_id": "alice"})).json()
    assert stored["reps"] == 0
    assert stored["version"] == 1


@pytest.mark.asyncio
async def test_review_missing_flashcard(client: AsyncClient) -> None:
    response = await client.post("/api/flashcards/9999/review", json={"rating": 3})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_review_conflict_returns_409(
    client: AsyncClient, monkeypatch: pytest.MonkeyPatch
) -> None:
    created = await _create(client)

    async def lost_race(db, flashcard_id, *args, **kwargs):
        raise ConcurrentModificationConflict(flashcard_id, 1)

    monkeypatch.setattr(store, "submit_review", lost_race)
    response = await client.post(
        f"/api/flashcards/{created['id']}/review",
        params={"user_id": "alice"},
        json={"rating": 3},
    )
    assert response.status_code == 409
    assert "not recorded" in response.json()["detail"]


@pytest.mark.asyncio
async def test_review_corrupt_state_returns_500(
    client: AsyncClient, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    created = await _create(client)
    async with session_factory() as db:
        await db.execute(
            update(Flashcard).where(Flashcard.id == created["id"]).values(state="ARCHIVED")
        )
        await db.commit()

    response = await client.post(
        f"/api/flashcards/{created['id']}/review",
        params={"user_id": "alice"},
        json={"rating": 3},
    )
    assert response.status_code == 500
    assert "rating not recorded" in response.json()["detail"]


@pytest.mark.asyncio
async def test_preview_new_flashcard(client: AsyncClient) -> None:
    created = await _create(client)
    response = await client.get(
        f"/api/flashcards/{created['id']}/preview", params={"user_id": "alice"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["flashcard_id"] == created["id"]
    assert body["again"]["minutes_until_due"] == 1.0
    assert body["hard"]["minutes_until_due"] == 5.5
    assert body["good"]["minutes_until_due"] == 10.0
    assert body["good"]["state"] == "LEARNING"
    assert body["easy"]["state"] == "REVIEW"
    assert body["easy"]["interval_days"] == 15

    # Previewing records nothing
    stored = (await client.get(f"/api/flashcards/{created['id']}", params={"user_id": "alice"})).json()
    assert stored["version"] == 1


@pytest.mark.asyncio
async def test_due_flashcards(client: AsyncClient) -> None:
    first = await _create(client, "one")
    await _create(client, "two")
    await _create(client, "elsewhere", user_id="bob")

    response = await client.get("/api/flashcards/due", params={"user_id": "alice"})
    assert response.status_code == 200
    body = response.json()
    assert body["total_due"] == 0
    assert body["total_new"] == 2
    assert {c["front"] for c in body["flashcards"]} == {"one", "two"}

    limited = await client.get(
        "/api/flashcards/due", params={"user_id": "alice", "limit": 1, "new_cards_limit": 5}
    )
    assert limited.json()["has_more"] is True
    assert len(limited.json()["flashcards"]) == 1

    await client.post(
        f"/api/flashcards/{first['id']}/review", params={"user_id": "alice"}, json={"rating": 3}
    )
    body = (await client.get("/api/flashcards/due", params={"user_id": "alice"})).json()
    # Reviewed card is in learning, due in ten minutes
    assert body["total_new"] == 1
    assert body["total_due"] == 0


@pytest.mark.asyncio
async def test_delete_flashcard(client: AsyncClient) -> None:
    created = await _create(client)
    response = await client.delete(f"/api/flashcards/{created['id']}", params={"user_id": "alice"})
    assert response.status_code == 204

    assert (
        await client.get(f"/api/flashcards/{created['id']}", params={"user_id": "alice"})
    ).status_code == 404
    assert (
        await client.delete(f"/api/flashcards/{created['id']}", params={"user_id": "alice"})
    ).status_code == 404


@pytest.mark.asyncio
async def test_stats(client: AsyncClient) -> None:
    created = await _create(client)
    await _create(client, "two")
    await client.post(
        f"/api/flashcards/{created['id']}/review", params={"user_id": "alice"}, json={"rating": 1}
    )

    response = await client.get("/api/stats", params={"user_id": "alice"})
    assert response.status_code == 200
    assert response.json() == {
        "due_today": 0,
        "due_overdue": 0,
        "new_cards": 1,
        "total_reviews_today": 1,
    }
