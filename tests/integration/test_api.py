"""Integration tests for the API endpoints."""

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from passlib.hash import bcrypt

from keygate.config import settings
from keygate.core.rate_limiter import RateLimiter
from keygate.core.search_provider import PROVIDER_BRANDING, SearchProvider
from keygate.dependencies import get_db
from keygate.main import app
from keygate.models.usage_record import UsageRecord
from keygate.utils.datetime import utctoday

ADMIN_PASSWORD = "correct horse battery staple"


def _provider_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={
        "results": [{"source": "breach", "credit": PROVIDER_BRANDING}],
        "osintdog": {"promo": True},
    })


@pytest.fixture(scope="module")
def admin_hash():
    return bcrypt.hash(ADMIN_PASSWORD)


@pytest_asyncio.fixture
async def client(db_session, monkeypatch, admin_hash):
    async def _override_get_db():
        yield db_session

    monkeypatch.setattr(settings, "admin_password_hash", admin_hash)
    app.dependency_overrides[get_db] = _override_get_db
    app.state.rate_limiter = RateLimiter(max_requests=100, window_seconds=60)
    app.state.search_provider = SearchProvider(
        "https://provider.test/search",
        "provider-key",
        client=httpx.AsyncClient(transport=httpx.MockTransport(_provider_handler)),
    )
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    finally:
        await app.state.search_provider.close()
        app.dependency_overrides.clear()


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def _admin_token(client) -> str:
    response = await client.post("/api/admin/login", json={
        "username": settings.admin_username,
        "password": ADMIN_PASSWORD,
    })
    assert response.status_code == 200
    return response.json()["access_token"]


async def _issue_key(client, admin_token, plan_tier="basic", duration_days=30) -> dict:
    response = await client.post(
        "/api/admin/keys",
        json={"plan_tier": plan_tier, "duration_days": duration_days},
        headers=_bearer(admin_token),
    )
    assert response.status_code == 200
    return response.json()


async def _user_token(client, key: str, email="a@x.com") -> str:
    response = await client.post("/api/auth/login", json={"email": email, "key": key})
    assert response.status_code == 200
    return response.json()["access_token"]


@pytest.mark.asyncio
async def test_health_check():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestAdmin:
    @pytest.mark.asyncio
    async def test_login_invalid_credentials(self, client):
        response = await client.post("/api/admin/login", json={
            "username": settings.admin_username,
            "password": "wrong",
        })
        assert response.status_code == 401
        assert response.json()["reason"] == "invalid_credentials"

    @pytest.mark.asyncio
    async def test_key_endpoints_require_admin(self, client):
        response = await client.post("/api/admin/keys", json={"plan_tier": "basic"})
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_issue_list_and_revoke(self, client):
        token = await _admin_token(client)
        created = await _issue_key(client, token, plan_tier="premium", duration_days=7)

        assert len(created["key"]) == 32
        assert created["key_preview"] == f"{created['key'][:4]}****{created['key'][-4:]}"
        assert created["plan_tier"] == "premium"
        assert created["owner_identity"] is None
        assert created["expires_at"] is None

        response = await client.get("/api/admin/keys", headers=_bearer(token))
        body = response.json()
        assert body["total"] == 1
        assert "key" not in body["items"][0]

        response = await client.post(f"/api/admin/keys/{created['id']}/revoke", headers=_bearer(token))
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        response = await client.get("/api/admin/keys", params={"active": True}, headers=_bearer(token))
        assert response.json()["total"] == 0

    @pytest.mark.asyncio
    async def test_batch_issue(self, client):
        token = await _admin_token(client)
        response = await client.post(
            "/api/admin/keys/batch",
            json={"plan_tier": "standard", "duration_days": 30, "count": 3},
            headers=_bearer(token),
        )
        assert response.status_code == 200
        keys = response.json()["keys"]
        assert len({k["key"] for k in keys}) == 3

    @pytest.mark.asyncio
    async def test_unknown_key(self, client):
        token = await _admin_token(client)
        response = await client.get("/api/admin/keys/999", headers=_bearer(token))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_logout_ends_admin_session(self, client):
        token = await _admin_token(client)
        response = await client.post("/api/admin/logout", headers=_bearer(token))
        assert response.status_code == 200

        response = await client.get("/api/admin/keys", headers=_bearer(token))
        assert response.status_code == 401


class TestUserAuth:
    @pytest.mark.asyncio
    async def test_login_redeems_and_check(self, client):
        admin = await _admin_token(client)
        created = await _issue_key(client, admin, plan_tier="standard")
        token = await _user_token(client, created["key"])

        response = await client.get("/api/auth/check", headers=_bearer(token))
        assert response.status_code == 200
        assert response.json() == {"authenticated": True, "email": "a@x.com", "plan_tier": "standard"}

        response = await client.get(f"/api/admin/keys/{created['id']}", headers=_bearer(admin))
        assert response.json()["owner_identity"] == "a@x.com"
        assert response.json()["expires_at"] is not None

    @pytest.mark.asyncio
    async def test_second_identity_is_forbidden(self, client):
        admin = await _admin_token(client)
        created = await _issue_key(client, admin)
        await _user_token(client, created["key"], email="a@x.com")

        response = await client.post("/api/auth/login", json={"email": "b@x.com", "key": created["key"]})
        assert response.status_code == 403
        assert response.json()["reason"] == "identity_mismatch"

    @pytest.mark.asyncio
    async def test_unknown_key(self, client):
        response = await client.post("/api/auth/login", json={"email": "a@x.com", "key": "0" * 32})
        assert response.status_code == 401
        assert response.json()["reason"] == "invalid_key"

    @pytest.mark.asyncio
    async def test_check_without_session(self, client):
        response = await client.get("/api/auth/check")
        assert response.status_code == 401
        assert response.json()["authenticated"] is False

    @pytest.mark.asyncio
    async def test_refresh_replaces_token(self, client):
        admin = await _admin_token(client)
        created = await _issue_key(client, admin)
        old = await _user_token(client, created["key"])

        response = await client.post("/api/auth/refresh", headers=_bearer(old))
        assert response.status_code == 200
        new = response.json()["access_token"]
        assert new != old

        assert (await client.get("/api/auth/check", headers=_bearer(old))).status_code == 401
        assert (await client.get("/api/auth/check", headers=_bearer(new))).status_code == 200

    @pytest.mark.asyncio
    async def test_refresh_rejected_after_key_revoked(self, client):
        admin = await _admin_token(client)
        created = await _issue_key(client, admin)
        token = await _user_token(client, created["key"])

        await client.post(f"/api/admin/keys/{created['id']}/revoke", headers=_bearer(admin))

        response = await client.post("/api/auth/refresh", headers=_bearer(token))
        assert response.status_code == 401
        assert response.json()["reason"] == "invalid_key"
        assert "set-cookie" not in response.headers

    @pytest.mark.asyncio
    async def test_logout(self, client):
        admin = await _admin_token(client)
        created = await _issue_key(client, admin)
        token = await _user_token(client, created["key"])

        response = await client.post("/api/auth/logout", headers=_bearer(token))
        assert response.status_code == 200
        assert (await client.get("/api/auth/check", headers=_bearer(token))).status_code == 401

    @pytest.mark.asyncio
    async def test_revoked_key_ends_sessions(self, client):
        admin = await _admin_token(client)
        created = await _issue_key(client, admin)
        token = await _user_token(client, created["key"])

        await client.post(f"/api/admin/keys/{created['id']}/revoke", headers=_bearer(admin))

        response = await client.post(
            "/api/search", json={"type": "email", "query": "t@x.com"}, headers=_bearer(token)
        )
        assert response.status_code == 401
        assert response.json()["reason"] == "invalid_key"


class TestSearch:
    @pytest.mark.asyncio
    async def test_search_with_session(self, client):
        admin = await _admin_token(client)
        created = await _issue_key(client, admin)
        token = await _user_token(client, created["key"])

        response = await client.post(
            "/api/search", json={"type": "email", "query": "t@x.com"}, headers=_bearer(token)
        )
        assert response.status_code == 200
        body = response.json()
        assert body["credits"] == "CSINT Network"
        assert body["scan_type"] == "email"
        assert body["csint"] == {"results": [{"source": "breach"}]}

        response = await client.get("/api/usage/stats", headers=_bearer(token))
        assert response.json()["search_count"] == 1
        assert response.json()["api_call_count"] == 1

    @pytest.mark.asyncio
    async def test_search_with_access_key_headers(self, client):
        admin = await _admin_token(client)
        created = await _issue_key(client, admin)

        response = await client.post(
            "/api/search",
            json={"type": "domain", "query": "example.com"},
            headers={"X-API-Key": created["key"], "X-Identity": "direct@x.com"},
        )
        assert response.status_code == 200

        response = await client.get(
            "/api/plans/daily-stats",
            headers={"X-API-Key": created["key"], "X-Identity": "direct@x.com"},
        )
        body = response.json()
        assert body["plan_type"] == "basic"
        assert body["searches_remaining"] == 49

    @pytest.mark.asyncio
    async def test_invalid_query(self, client):
        admin = await _admin_token(client)
        created = await _issue_key(client, admin)
        token = await _user_token(client, created["key"])

        response = await client.post(
            "/api/search", json={"type": "ip", "query": "999.1.1.1"}, headers=_bearer(token)
        )
        assert response.status_code == 400

        response = await client.post("/api/search", json={"type": "ip"}, headers=_bearer(token))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_quota_exhausted(self, client, db_session):
        admin = await _admin_token(client)
        created = await _issue_key(client, admin)
        token = await _user_token(client, created["key"])

        db_session.add(UsageRecord(
            owner_identity="a@x.com",
            usage_date=utctoday(),
            search_count=50,
            api_call_count=50,
            search_limit=50,
            api_call_limit=200,
        ))
        await db_session.commit()

        response = await client.post(
            "/api/search", json={"type": "email", "query": "t@x.com"}, headers=_bearer(token)
        )
        assert response.status_code == 429
        assert response.json()["limit_kind"] == "searches"
        assert "Retry-After" not in response.headers

    @pytest.mark.asyncio
    async def test_upstream_failure_still_counts(self, client):
        await app.state.search_provider.close()
        app.state.search_provider = SearchProvider(
            "https://provider.test/search",
            "provider-key",
            client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))),
        )
        admin = await _admin_token(client)
        created = await _issue_key(client, admin)
        token = await _user_token(client, created["key"])

        response = await client.post(
            "/api/search", json={"type": "email", "query": "t@x.com"}, headers=_bearer(token)
        )
        assert response.status_code == 502

        response = await client.get("/api/usage/stats", headers=_bearer(token))
        assert response.json()["search_count"] == 1

    @pytest.mark.asyncio
    async def test_requires_credentials(self, client):
        response = await client.post("/api/search", json={"type": "email", "query": "t@x.com"})
        assert response.status_code == 401


class TestMiddleware:
    @pytest.mark.asyncio
    async def test_rate_limited_login(self, client):
        app.state.rate_limiter = RateLimiter(max_requests=2, window_seconds=60)
        for _ in range(2):
            response = await client.post("/api/auth/login", json={"email": "a@x.com", "key": "nope"})
            assert response.status_code == 401

        response = await client.post("/api/auth/login", json={"email": "a@x.com", "key": "nope"})
        assert response.status_code == 429
        assert int(response.headers["Retry-After"]) >= 1

    @pytest.mark.asyncio
    async def test_forwarded_header_cannot_bypass_limit(self, client):
        app.state.rate_limiter = RateLimiter(max_requests=2, window_seconds=60)
        statuses = []
        for i in range(5):
            response = await client.post(
                "/api/auth/login",
                json={"email": "a@x.com", "key": "nope"},
                headers={"X-Forwarded-For": f"10.0.0.{i}"},
            )
            statuses.append(response.status_code)
        assert statuses == [401, 401, 429, 429, 429]
        assert len(app.state.rate_limiter) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_headers(self, client):
        app.state.rate_limiter = RateLimiter(max_requests=5, window_seconds=60)
        response = await client.post("/api/auth/refresh")
        assert response.status_code == 401

        admin = await _admin_token(client)
        response = await client.post(
            "/api/admin/keys", json={"plan_tier": "basic"}, headers=_bearer(admin)
        )
        assert "X-RateLimit-Limit" not in response.headers

        response = await client.post("/api/admin/login", json={
            "username": settings.admin_username,
            "password": ADMIN_PASSWORD,
        })
        assert response.headers["X-RateLimit-Limit"] == "5"
        assert response.headers["X-RateLimit-Remaining"] == "2"
        assert int(response.headers["X-RateLimit-Reset"]) <= 60

    @pytest.mark.asyncio
    async def test_security_headers(self, client):
        response = await client.get("/api/auth/check")
        assert response.headers["X-Frame-Options"] == "DENY"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "frame-ancestors 'none'" in response.headers["Content-Security-Policy"]
