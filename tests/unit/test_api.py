"""API tests.

Requests go through ``httpx.ASGITransport`` on the test's event loop, with
storage, settings and the fetcher replaced via dependency overrides.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import httpx
import pytest

from app.api import dependencies
from app.api.dependencies import get_fetcher, get_redis, get_storage
from app.config import get_settings
from app.errors import AcquisitionError, ConfigurationError
from app.main import app
from app.services.standings.fetcher import Acquisition
from app.storage import UnavailableStorage

ORDER = ["FLA", "TOR", "BOS", "TB", "DET", "OTT", "BUF", "MTL"]


class StubFetcher:
    """Records calls; returns fixed records or raises a fixed error."""

    def __init__(self, records=None, error=None):
        self.records = records
        self.error = error
        self.calls = 0

    async def acquire(self):
        self.calls += 1
        if self.error:
            raise self.error
        return Acquisition(records=self.records, provider="stub")


@pytest.fixture
def fetcher(sample_records):
    return StubFetcher(records=sample_records)


@pytest.fixture
async def make_client(storage, settings, fetcher):
    """Build a client for the app with the given overrides."""
    clients = []

    def _make(settings=settings, storage=storage, fetcher=fetcher):
        async def _storage():
            return storage

        app.dependency_overrides[get_storage] = _storage
        app.dependency_overrides[get_settings] = lambda: settings
        app.dependency_overrides[get_fetcher] = lambda: fetcher
        client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=app), base_url="http://test"
        )
        clients.append(client)
        return client

    yield _make
    app.dependency_overrides.clear()
    for client in clients:
        await client.aclose()


@pytest.fixture
def client(make_client):
    return make_client()


async def standings_rows(storage):
    return await storage.query_all("SELECT team FROM standings")


class TestUpdateEndpoint:
    """Test POST /api/standings/update."""

    async def test_unconfigured_cron_secret_is_503(self, make_client, settings, fetcher, storage):
        client = make_client(settings=settings.model_copy(update={"cron_secret": ""}))
        response = await client.post(
            "/api/standings/update", headers={"Authorization": "Bearer anything"}
        )
        assert response.status_code == 503
        assert response.json() == {"success": False, "error": "CRON_SECRET not configured"}
        assert fetcher.calls == 0
        assert await standings_rows(storage) == []

    async def test_wrong_bearer_is_401_without_fetching(self, client, fetcher, storage):
        response = await client.post(
            "/api/standings/update", headers={"Authorization": "Bearer wrong"}
        )
        assert response.status_code == 401
        assert response.json()["success"] is False
        assert fetcher.calls == 0
        assert await standings_rows(storage) == []

    async def test_missing_credentials_is_401(self, client, fetcher):
        response = await client.post("/api/standings/update")
        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized - Missing admin password"
        assert fetcher.calls == 0

    async def test_cron_refresh(self, client, fetcher, storage):
        response = await client.post(
            "/api/standings/update", headers={"Authorization": "Bearer cron-secret"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["updated"] == 8
        assert body["source"] == "cron"
        assert body["provider"] == "stub"
        assert fetcher.calls == 1
        assert len(await standings_rows(storage)) == 8

    async def test_admin_applies_posted_standings(self, client, fetcher, sample_payload):
        response = await client.post(
            "/api/standings/update",
            json={"standings": sample_payload},
            headers={"x-admin-password": "admin-password"},
        )
        assert response.status_code == 200
        assert response.json()["source"] == "admin"
        assert fetcher.calls == 0

    async def test_admin_password_in_body(self, client):
        response = await client.post(
            "/api/standings/update", json={"password": "admin-password"}
        )
        assert response.status_code == 200
        assert response.json()["provider"] == "stub"

    async def test_invalid_batch_is_400(self, client, storage, sample_payload):
        batch = sample_payload + [{"team": "Broken", "gamesPlayed": -1, "points": 0}]
        response = await client.post(
            "/api/standings/update",
            json={"standings": batch},
            headers={"x-admin-password": "admin-password"},
        )
        assert response.status_code == 400
        assert await standings_rows(storage) == []

    async def test_acquisition_failure_is_502(self, make_client, storage):
        failing = StubFetcher(
            error=AcquisitionError("All standings providers failed", last_error=TimeoutError("slow"))
        )
        client = make_client(fetcher=failing)
        response = await client.post(
            "/api/standings/update", headers={"Authorization": "Bearer cron-secret"}
        )
        assert response.status_code == 502
        assert response.json() == {
            "success": False,
            "error": "All standings providers failed: slow",
        }
        assert await standings_rows(storage) == []


class TestIngestEndpoint:
    """Test POST /api/standings/ingest."""

    async def test_ingest(self, client, sample_payload):
        response = await client.post(
            "/api/standings/ingest",
            json={"standings": sample_payload},
            headers={"Authorization": "Bearer ingest-secret"},
        )
        assert response.status_code == 200
        assert response.json()["updated"] == 8
        assert response.json()["source"] == "ingest"

    async def test_cron_secret_rejected(self, client, sample_payload):
        response = await client.post(
            "/api/standings/ingest",
            json={"standings": sample_payload},
            headers={"Authorization": "Bearer cron-secret"},
        )
        assert response.status_code == 401

    async def test_unconfigured_is_503(self, make_client, settings, sample_payload):
        client = make_client(
            settings=settings.model_copy(update={"standings_ingest_secret": ""})
        )
        response = await client.post(
            "/api/standings/ingest",
            json={"standings": sample_payload},
            headers={"Authorization": "Bearer ingest-secret"},
        )
        assert response.status_code == 503

    async def test_missing_standings_is_400(self, client):
        response = await client.post(
            "/api/standings/ingest",
            json={},
            headers={"Authorization": "Bearer ingest-secret"},
        )
        assert response.status_code == 400
        assert response.json()["error"] == "standings array is required"


class TestStandingsRead:
    """Test the public read endpoints."""

    async def test_empty(self, client):
        response = await client.get("/api/standings")
        assert response.status_code == 200
        assert response.json() == []

        response = await client.get("/api/standings/last-updated")
        assert response.json() == {"last_updated": None}

    async def test_ordered_with_rank(self, client, sample_payload):
        await client.post(
            "/api/standings/ingest",
            json={"standings": list(reversed(sample_payload))},
            headers={"Authorization": "Bearer ingest-secret"},
        )
        items = (await client.get("/api/standings")).json()
        assert [i["rank"] for i in items] == list(range(1, 9))
        assert items[0]["team"] == "Florida Panthers"
        assert items[0]["points"] == 30

        response = await client.get("/api/standings/last-updated")
        assert response.json()["last_updated"] is not None

    async def test_unavailable_storage_is_503(self, make_client):
        client = make_client(storage=UnavailableStorage("connection refused"))
        response = await client.get("/api/standings")
        assert response.status_code == 503
        assert "Database unavailable" in response.json()["error"]


class TestCronEndpoints:
    """Test /api/cron."""

    async def test_cron_standings(self, client, fetcher):
        response = await client.get(
            "/api/cron/standings", headers={"Authorization": "Bearer cron-secret"}
        )
        assert response.status_code == 200
        assert response.json()["updated"] == 8
        assert fetcher.calls == 1

    async def test_cron_standings_rejects_admin_password(self, client, fetcher):
        response = await client.get(
            "/api/cron/standings", headers={"x-admin-password": "admin-password"}
        )
        assert response.status_code == 401
        assert fetcher.calls == 0

    async def test_status(self, client):
        await client.get("/api/cron/standings", headers={"Authorization": "Bearer cron-secret"})
        body = (await client.get("/api/cron/status")).json()
        assert body["configured"] is True
        assert body["schedule"] == "Daily at 08:00 UTC"
        assert body["last_run"]["status"] == "success"
        assert "cron-secret" not in str(body)

    async def test_status_unconfigured(self, make_client, settings):
        client = make_client(settings=settings.model_copy(update={"cron_secret": ""}))
        body = (await client.get("/api/cron/status")).json()
        assert body["configured"] is False
        assert body["last_run"] is None


class TestAdminEndpoints:
    """Test /api/admin."""

    async def test_auth(self, client):
        response = await client.post("/api/admin/auth", json={"password": "admin-password"})
        assert response.status_code == 200
        assert response.json()["success"] is True

    async def test_auth_wrong_password(self, client):
        response = await client.post("/api/admin/auth", json={"password": "guess"})
        assert response.status_code == 401

    async def test_database_info(self, client):
        response = await client.get(
            "/api/admin/database", headers={"x-admin-password": "admin-password"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["database_type"] == "sqlite"
        assert body["connection_status"] == "connected"
        assert "standings" in {t["name"] for t in body["tables"]}

    async def test_database_info_requires_password(self, client):
        response = await client.get("/api/admin/database")
        assert response.status_code == 401


class TestPredictionsAndLeaderboard:
    """Test /api/predictions and /api/leaderboard."""

    async def _add_user(self, storage, name):
        await storage.execute("INSERT INTO users (name) VALUES ($1)", [name])
        row = await storage.query_one("SELECT id FROM users WHERE name = $1", [name])
        return row["id"]

    async def test_save_and_read(self, client, storage):
        owner = await self._add_user(storage, "alice")
        picks = [{"rank": i, "team": t} for i, t in enumerate(ORDER, start=1)]

        response = await client.post(f"/api/predictions/{owner}", json={"predictions": picks})
        assert response.status_code == 200
        assert response.json()["success"] is True

        body = (await client.get(f"/api/predictions/{owner}")).json()
        assert body["predictions"] == picks

    async def test_read_without_predictions(self, client, storage):
        owner = await self._add_user(storage, "alice")
        body = (await client.get(f"/api/predictions/{owner}")).json()
        assert body["predictions"] is None

    async def test_invalid_predictions(self, client, storage):
        owner = await self._add_user(storage, "alice")
        response = await client.post(
            f"/api/predictions/{owner}", json={"predictions": [{"rank": 1, "team": "FLA"}]}
        )
        assert response.status_code == 400

    async def test_deadline_passed(self, make_client, settings, storage):
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        client = make_client(settings=settings.model_copy(update={"prediction_deadline": past}))
        owner = await self._add_user(storage, "alice")
        picks = [{"rank": i, "team": t} for i, t in enumerate(ORDER, start=1)]
        response = await client.post(f"/api/predictions/{owner}", json={"predictions": picks})
        assert response.status_code == 403

    async def test_leaderboard(self, client, storage, sample_payload):
        await client.post(
            "/api/standings/ingest",
            json={"standings": sample_payload},
            headers={"Authorization": "Bearer ingest-secret"},
        )
        alice = await self._add_user(storage, "alice")
        bob = await self._add_user(storage, "bob")
        perfect = [{"rank": i, "team": t} for i, t in enumerate(ORDER, start=1)]
        swapped = [{"rank": 1, "team": "TOR"}, {"rank": 2, "team": "FLA"}] + perfect[2:]
        await client.post(f"/api/predictions/{alice}", json={"predictions": swapped})
        await client.post(f"/api/predictions/{bob}", json={"predictions": perfect})

        body = (await client.get("/api/leaderboard")).json()
        assert [i["name"] for i in body["items"]] == ["bob", "alice"]
        assert body["items"][0]["total"] == 24
        assert body["items"][1]["total"] == 20
        assert body["items"][1]["rank"] == 2
        assert body["standings_last_updated"] is not None


class TestHealth:
    """Test liveness."""

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestProviderMisconfiguration:
    """A broken provider list only affects endpoints that fetch."""

    @pytest.fixture
    def misconfigured_client(self, make_client):
        client = make_client()

        def _no_providers():
            raise ConfigurationError("No standings providers configured")

        app.dependency_overrides[get_fetcher] = _no_providers
        return client

    async def test_read_endpoints_still_work(self, misconfigured_client):
        for path in (
            "/api/standings",
            "/api/standings/last-updated",
            "/api/leaderboard",
            "/api/cron/status",
        ):
            response = await misconfigured_client.get(path)
            assert response.status_code == 200, path

    async def test_ingest_still_works(self, misconfigured_client, sample_payload):
        response = await misconfigured_client.post(
            "/api/standings/ingest",
            json={"standings": sample_payload},
            headers={"Authorization": "Bearer ingest-secret"},
        )
        assert response.status_code == 200

    async def test_fetching_update_reports_misconfiguration(self, misconfigured_client):
        response = await misconfigured_client.post(
            "/api/standings/update", headers={"Authorization": "Bearer cron-secret"}
        )
        assert response.status_code == 503
        assert response.json()["error"] == "No standings providers configured"


class FakeRedis:
    def __init__(self, healthy=True):
        self.healthy = healthy

    async def ping(self):
        if not self.healthy:
            raise ConnectionError("redis down")
        return True


class TestReady:
    """Test the readiness check."""

    async def test_all_dependencies_ready(self, client):
        app.dependency_overrides[get_redis] = lambda: FakeRedis()
        response = await client.get("/ready")
        assert response.status_code == 200
        body = response.json()
        assert body["ready"] is True
        assert body["checks"]["db"] == {"status": "ok", "message": "sqlite"}
        assert body["checks"]["redis"]["status"] == "ok"
        assert body["checks"]["cron_secret"]["status"] == "ok"

    async def test_missing_secret_only_warns(self, make_client, settings):
        client = make_client(settings=settings.model_copy(update={"cron_secret": ""}))
        app.dependency_overrides[get_redis] = lambda: FakeRedis()
        body = (await client.get("/ready")).json()
        assert body["ready"] is True
        assert body["checks"]["cron_secret"]["status"] == "warning"

    async def test_unavailable_dependencies(self, make_client):
        client = make_client(storage=UnavailableStorage("connection refused"))
        app.dependency_overrides[get_redis] = lambda: FakeRedis(healthy=False)
        body = (await client.get("/ready")).json()
        assert body["ready"] is False
        assert body["checks"]["db"]["status"] == "error"
        assert body["checks"]["redis"] == {"status": "error", "message": "redis down"}


class TestStorageDependency:
    """Test reconnecting while the database is unavailable."""

    def _request(self, storage):
        return SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(storage=storage)))

    async def test_available_storage_is_reused(self, storage, monkeypatch):
        async def _connect(settings):
            raise AssertionError("should not reconnect")

        monkeypatch.setattr(dependencies, "connect_storage", _connect)
        assert await dependencies.get_storage(self._request(storage)) is storage

    async def test_concurrent_requests_reconnect_once(self, storage, monkeypatch):
        calls = []

        async def _connect(settings):
            calls.append(settings)
            await asyncio.sleep(0)
            return storage

        monkeypatch.setattr(dependencies, "connect_storage", _connect)
        request = self._request(UnavailableStorage("down"))

        results = await asyncio.gather(
            *(dependencies.get_storage(request) for _ in range(5))
        )

        assert len(calls) == 1
        assert all(result is storage for result in results)
        assert request.app.state.storage is storage

    async def test_failed_reconnect_keeps_stub(self, monkeypatch):
        async def _connect(settings):
            return UnavailableStorage("still down")

        monkeypatch.setattr(dependencies, "connect_storage", _connect)
        request = self._request(UnavailableStorage("down"))
        result = await dependencies.get_storage(request)
        assert result.available is False
        assert result.reason == "still down"
