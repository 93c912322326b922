"""HTTP API tests with in-memory collaborators."""

import asyncio
import json

from fakes import FakeProcessRunner, FakeServiceStore, drain, status_kinds
from httpx import ASGITransport, AsyncClient
import pytest
import pytest_asyncio
import structlog

from redeployer.api import create_app
from redeployer.api.routers.live import event_stream
from redeployer.context import AppContext
from redeployer.models import (
    DeploymentStatus,
    RequestFullStatus,
    ServiceStatusUpdate,
    StatusKind,
)

NEW_SERVICE = {
    "name": "shop",
    "compose_name": "app",
    "repo_url": "git@example.com:me/shop.git",
    "access_url": "https://shop.example.com",
    "active": True,
}


@pytest.fixture
def store(service) -> FakeServiceStore:
    return FakeServiceStore([service])


@pytest.fixture
def context(settings, store) -> AppContext:
    return AppContext.build(settings, runner=FakeProcessRunner(), store=store)


@pytest_asyncio.fixture
async def client(context):
    app = create_app(context)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_list_services(client):
    response = await client.get("/api/services")

    assert response.status_code == 200
    assert [s["name"] for s in response.json()] == ["blog"]


@pytest.mark.asyncio
async def test_get_service(client):
    response = await client.get("/api/services/7")

    assert response.status_code == 200
    assert response.json()["compose_name"] == "web"


@pytest.mark.asyncio
async def test_get_missing_service(client):
    response = await client.get("/api/services/99")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_service_requests_refresh(client, context):
    sub = context.bus.subscribe()

    response = await client.post("/api/services", json=NEW_SERVICE)

    assert response.status_code == 201
    body = response.json()
    assert body["id"] == 8
    assert body["use_credential_file"] is False
    assert [type(e) for e in await drain(sub)] == [RequestFullStatus]


@pytest.mark.asyncio
async def test_create_rejects_unsafe_name(client):
    response = await client.post("/api/services", json={**NEW_SERVICE, "name": "../etc"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_duplicate_name(client):
    response = await client.post("/api/services", json={**NEW_SERVICE, "name": "blog"})

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_update_service(client, context):
    sub = context.bus.subscribe()

    response = await client.put("/api/services/7", json={**NEW_SERVICE, "name": "blog"})

    assert response.status_code == 200
    assert response.json()["access_url"] == "https://shop.example.com"
    assert [type(e) for e in await drain(sub)] == [RequestFullStatus]


@pytest.mark.asyncio
async def test_update_missing_service(client):
    response = await client.put("/api/services/99", json=NEW_SERVICE)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_store_unavailable(client, store):
    store.broken = True

    response = await client.get("/api/services")

    assert response.status_code == 503
    assert response.json()["detail"].startswith("Database error")


@pytest.mark.asyncio
async def test_deploy_is_accepted_and_runs_in_background(client, context, compose_file):
    sub = context.bus.subscribe()

    response = await client.post("/api/services/7/deploy")

    assert response.status_code == 202
    assert response.json() == {"status": "accepted", "service_id": 7}

    await asyncio.gather(*context.dispatcher.pending_tasks)
    kinds = await status_kinds(sub)
    assert kinds[0] is StatusKind.DEPLOYMENT_REQUESTED
    assert kinds[-1] is StatusKind.RUNNING


@pytest.mark.asyncio
async def test_all_status_reports_subscribers(client, context):
    context.bus.subscribe()
    context.bus.subscribe()

    response = await client.post("/api/all_status")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "subscribers": 2}


@pytest.mark.asyncio
async def test_correlation_id_is_unbound_after_request(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "req_fixed"})

    assert response.status_code == 200
    assert "correlation_id" not in structlog.contextvars.get_contextvars()


def _parse_sse(chunk: str) -> tuple[str, dict]:
    event_line, data_line = chunk.strip().split("\n")
    return event_line.removeprefix("event: "), json.loads(data_line.removeprefix("data: "))


@pytest.mark.asyncio
async def test_live_stream_renders_bus_events(context):
    stream = event_stream(context.bus, context.view)
    assert context.bus.subscriber_count == 0

    name, first = _parse_sse(await anext(stream))
    assert context.bus.subscriber_count == 1
    assert name == "service_event"
    assert first["kind"] == "connected"

    context.bus.publish(
        ServiceStatusUpdate(service_id=7, status=DeploymentStatus.of(StatusKind.PULLING))
    )
    _, update = _parse_sse(await anext(stream))
    assert update["kind"] == "service_update"
    assert update["service"]["status"] == "pulling"

    context.bus.publish(RequestFullStatus())
    _, listing = _parse_sse(await anext(stream))
    assert listing["kind"] == "service_list"
    assert [row["status"] for row in listing["services"]] == ["inactive"]

    await stream.aclose()
    assert context.bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_live_stream_abandoned_before_start_leaves_no_subscriber(context):
    stream = event_stream(context.bus, context.view)

    await stream.aclose()

    assert context.bus.subscriber_count == 0
    assert context.bus.publish(RequestFullStatus()) == 0
