"""Tests for API endpoints."""
import pytest
from unittest.mock import AsyncMock

from glowup.dependencies import get_kv_store, get_profile_service
from glowup.errors import ConcurrentUpdateError
from glowup.main import app


async def signup(client, email="a@x.com", password="pw", username="alice"):
    response = await client.post(
        "/signup",
        json={"email": email, "password": password, "username": username}
    )
    assert response.status_code == 201
    return response.json()["user"]


def auth_header(auth_provider, user_id):
    return {"Authorization": f"Bearer {auth_provider.issue_token(user_id)}"}


@pytest.mark.asyncio
async def test_health_check(client):
    """Test health check endpoint."""
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_root_endpoint(client):
    """Test root endpoint."""
    response = await client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "GlowUp API"
    assert "points" in data["endpoints"]


@pytest.mark.asyncio
async def test_signup_creates_starting_profile(client, auth_provider):
    """New accounts start at level 1 with no points."""
    response = await client.post(
        "/signup",
        json={"email": "a@x.com", "password": "pw", "username": "alice"}
    )

    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "User created successfully"
    user = data["user"]
    assert user["user_metadata"]["username"] == "alice"

    profile = await client.get(f"/user/{user['id']}", headers=auth_header(auth_provider, user["id"]))

    assert profile.status_code == 200
    body = profile.json()
    assert body["points"] == 0
    assert body["level"] == 1
    assert body["badge"] == "Newbie"
    assert body["username"] == "alice"
    assert body["email"] == "a@x.com"
    assert body["responses_given"] == 0
    assert body["created_at"]


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"password": "pw", "username": "alice"},
    {"email": "a@x.com", "username": "alice"},
    {"email": "a@x.com", "password": "pw"},
    {"email": "", "password": "pw", "username": "alice"},
])
async def test_signup_missing_fields(client, kv_store, auth_provider, payload):
    """Missing fields are rejected without creating anything."""
    response = await client.post("/signup", json=payload)

    assert response.status_code == 400
    assert response.json()["error"] == "Email, password, and username are required"
    assert auth_provider.users == {}
    assert kv_store.data == {}


@pytest.mark.asyncio
async def test_signup_duplicate_email_rejected(client):
    """Provider rejections come back as 400 with the provider message."""
    await signup(client)

    response = await client.post(
        "/signup",
        json={"email": "a@x.com", "password": "pw2", "username": "alice2"}
    )

    assert response.status_code == 400
    assert "already been registered" in response.json()["error"]


@pytest.mark.asyncio
async def test_signup_profile_write_failure(client, auth_provider):
    """A store failure after account creation leaves the account and returns 500."""
    broken_store = AsyncMock()
    broken_store.set.side_effect = RuntimeError("store down")
    app.dependency_overrides[get_kv_store] = lambda: broken_store

    response = await client.post(
        "/signup",
        json={"email": "a@x.com", "password": "pw", "username": "alice"}
    )

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    assert len(auth_provider.users) == 1


@pytest.mark.asyncio
async def test_get_user_requires_token(client):
    """Missing and unknown tokens are rejected."""
    user = await signup(client)

    missing = await client.get(f"/user/{user['id']}")
    invalid = await client.get(
        f"/user/{user['id']}",
        headers={"Authorization": "Bearer not-a-token"}
    )

    assert missing.status_code == 401
    assert invalid.status_code == 401
    assert invalid.json() == {"error": "Unauthorized"}


@pytest.mark.asyncio
async def test_get_unknown_user(client, auth_provider):
    """Unknown ids are 404 even with a valid token."""
    user = await signup(client)

    response = await client.get("/user/unknown-id", headers=auth_header(auth_provider, user["id"]))

    assert response.status_code == 404
    assert response.json() == {"error": "User not found"}


@pytest.mark.asyncio
async def test_any_user_can_read_any_profile(client, auth_provider):
    """Reads are not restricted to the token owner."""
    alice = await signup(client)
    bob = await signup(client, email="b@x.com", username="bob")

    response = await client.get(f"/user/{alice['id']}", headers=auth_header(auth_provider, bob["id"]))

    assert response.status_code == 200
    assert response.json()["username"] == "alice"


@pytest.mark.asyncio
async def test_get_user_store_failure(client, auth_provider):
    """Store errors surface as a generic 500."""
    user = await signup(client)
    headers = auth_header(auth_provider, user["id"])

    broken_store = AsyncMock()
    broken_store.get.side_effect = RuntimeError("connection reset")
    app.dependency_overrides[get_kv_store] = lambda: broken_store

    response = await client.get(f"/user/{user['id']}", headers=headers)

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}


@pytest.mark.asyncio
async def test_update_points_levels_up(client, auth_provider):
    """160 points for a response moves a fresh profile to Explorer."""
    user = await signup(client)

    response = await client.post(
        f"/user/{user['id']}/points",
        json={"points": 160, "action": "response"},
        headers=auth_header(auth_provider, user["id"])
    )

    assert response.status_code == 200
    data = response.json()
    assert data["points"] == 160
    assert data["level"] == 2
    assert data["badge"] == "Explorer"
    assert data["response_count"] == 1
    assert data["responses_given"] == 1


@pytest.mark.asyncio
async def test_update_points_is_additive(client, auth_provider):
    """Repeating an award adds the points again."""
    user = await signup(client)
    headers = auth_header(auth_provider, user["id"])

    for _ in range(2):
        response = await client.post(
            f"/user/{user['id']}/points",
            json={"points": 10, "action": "upvote"},
            headers=headers
        )

    data = response.json()
    assert data["points"] == 20
    assert data["upvote_count"] == 2
    assert data["upvotes_received"] == 2


@pytest.mark.asyncio
async def test_update_points_invalid_token_leaves_state(client, kv_store):
    """Unauthenticated awards change nothing."""
    user = await signup(client)
    before = dict(kv_store.data[f"user:{user['id']}"])

    response = await client.post(
        f"/user/{user['id']}/points",
        json={"points": 50, "action": "response"},
        headers={"Authorization": "Bearer stale"}
    )

    assert response.status_code == 401
    assert kv_store.data[f"user:{user['id']}"] == before


@pytest.mark.asyncio
async def test_update_points_unknown_user(client, auth_provider):
    """Awards to unknown ids are 404."""
    user = await signup(client)

    response = await client.post(
        "/user/unknown-id/points",
        json={"points": 5, "action": "help"},
        headers=auth_header(auth_provider, user["id"])
    )

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [
    {"points": 10, "action": "dance"},
    {"points": -5, "action": "response"},
    {"points": "lots", "action": "response"},
    {"action": "response"},
    {"points": True, "action": "help"},
    {"points": 2.5, "action": "help"},
])
async def test_update_points_validation(client, auth_provider, kv_store, payload):
    """Bad deltas and unknown actions are 400."""
    user = await signup(client)
    before = dict(kv_store.data[f"user:{user['id']}"])

    response = await client.post(
        f"/user/{user['id']}/points",
        json=payload,
        headers=auth_header(auth_provider, user["id"])
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"
    assert kv_store.data[f"user:{user['id']}"] == before


@pytest.mark.asyncio
async def test_user_progress(client, auth_provider):
    """Progress reports the distance to the next level."""
    user = await signup(client)
    headers = auth_header(auth_provider, user["id"])
    await client.post(
        f"/user/{user['id']}/points",
        json={"points": 200, "action": "request"},
        headers=headers
    )

    response = await client.get(f"/user/{user['id']}/progress", headers=headers)

    assert response.status_code == 200
    data = response.json()
    assert data["level"] == 2
    assert data["points_into_level"] == 50
    assert data["next_level_points"] == 300
    assert data["points_to_next_level"] == 100
    assert data["next_badge"] == "Helper"


@pytest.mark.asyncio
async def test_leaderboard_orders_by_points(client, auth_provider):
    """Leaderboard ranks users by points."""
    alice = await signup(client)
    bob = await signup(client, email="b@x.com", username="bob")
    await client.post(
        f"/user/{bob['id']}/points",
        json={"points": 300, "action": "help"},
        headers=auth_header(auth_provider, bob["id"])
    )

    response = await client.get("/leaderboard", params={"limit": 5})

    assert response.status_code == 200
    rows = response.json()
    assert [row["username"] for row in rows] == ["bob", "alice"]
    assert rows[0]["rank"] == 1
    assert rows[0]["level"] == 3
    assert rows[0]["helped_people"] == 1
    assert rows[1]["id"] == alice["id"]


@pytest.mark.asyncio
async def test_update_points_without_header(client, kv_store):
    """Awards with no Authorization header are 401 and change nothing."""
    user = await signup(client)
    before = dict(kv_store.data[f"user:{user['id']}"])

    response = await client.post(
        f"/user/{user['id']}/points",
        json={"points": 50, "action": "response"}
    )

    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}
    assert kv_store.data[f"user:{user['id']}"] == before


@pytest.mark.asyncio
async def test_update_points_conflict(client, auth_provider):
    """Exhausted version retries surface as 409."""
    user = await signup(client)
    contended = AsyncMock()
    contended.award_points.side_effect = ConcurrentUpdateError(user["id"], 4)
    app.dependency_overrides[get_profile_service] = lambda: contended

    response = await client.post(
        f"/user/{user['id']}/points",
        json={"points": 10, "action": "response"},
        headers=auth_header(auth_provider, user["id"])
    )

    assert response.status_code == 409
    assert response.json() == {"error": "Concurrent update conflict"}


@pytest.mark.asyncio
async def test_user_progress_requires_token(client):
    """Progress is only shown to authenticated callers."""
    user = await signup(client)

    missing = await client.get(f"/user/{user['id']}/progress")
    invalid = await client.get(
        f"/user/{user['id']}/progress",
        headers={"Authorization": "Bearer not-a-token"}
    )

    assert missing.status_code == 401
    assert invalid.status_code == 401


@pytest.mark.asyncio
async def test_user_progress_unknown_user(client, auth_provider):
    """Progress for an unknown id is 404."""
    user = await signup(client)

    response = await client.get("/user/unknown-id/progress", headers=auth_header(auth_provider, user["id"]))

    assert response.status_code == 404
    assert response.json() == {"error": "User not found"}


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [0, 101, -1])
async def test_leaderboard_limit_bounds(client, limit):
    """Limits outside 1..100 are rejected."""
    response = await client.get("/leaderboard", params={"limit": limit})

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid request"


@pytest.mark.asyncio
async def test_leaderboard_ignores_malformed_record(client, kv_store):
    """A stored record without required fields does not break the ranking."""
    await signup(client)
    kv_store.data["user:x"] = {"id": "x", "username": "broken", "points": 5000}

    response = await client.get("/leaderboard")

    assert response.status_code == 200
    assert [row["username"] for row in response.json()] == ["alice"]


@pytest.mark.asyncio
async def test_signup_stores_provider_email(client, auth_provider):
    """The profile email matches the identity record."""
    user = await signup(client, email="Alice@X.com")

    response = await client.get(f"/user/{user['id']}", headers=auth_header(auth_provider, user["id"]))

    assert user["email"] == "alice@x.com"
    assert response.json()["email"] == "alice@x.com"
