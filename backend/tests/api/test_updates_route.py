"""Updates ingress tests — end-to-end through the FastAPI route.

Tests cover:
    - OPTIONS pre-flight echoes origin and allows any rate
    - Validation handshake returns the exact echo envelope + one broadcast
    - Grid notifications: N broadcasts, elevation policy, trigger once in the background
    - Cloud notifications: exactly one broadcast
    - Unknown/missing kind header, invalid JSON, empty validation batch → 400
    - Broadcast failures still yield 200
    - Skip mode delivers the valid part of a batch
    - Opt-in wait for pending authentication
"""

import asyncio
import json

import pytest

from app.core.domain_types import BatchFailureMode, ELEVATED_EVENT_TYPE
from app.services.dispatch_router import drain_pending_triggers

URL = "/api/updates"
NOTIFICATION = {"aeg-event-type": "Notification"}
VALIDATION = {"aeg-event-type": "SubscriptionValidation"}


def _grid(*ids: str, event_type: str = "Microsoft.Storage.BlobCreated") -> str:
    return json.dumps([
        {
            "id": i, "eventType": event_type, "subject": f"/blobs/{i}",
            "eventTime": "2019-05-02T08:00:00Z", "data": {"url": f"https://x/{i}"},
        }
        for i in ids
    ])


def _cloud(data) -> str:
    return json.dumps({
        "specversion": "1.0", "id": "c-1", "type": "Microsoft.Storage.BlobCreated",
        "source": "/storage", "subject": "/blobs/c", "time": "2019-05-02T08:00:00Z",
        "data": data,
    })


# --- Pre-flight ---------------------------------------------------------------

@pytest.mark.asyncio
async def test_options_echoes_origin(client):
    resp = await client.options(URL, headers={
        "WebHook-Request-Origin": "eventgrid.azure.net",
        "WebHook-Request-Callback": "https://cb",
        "WebHook-Request-Rate": "120",
    })
    assert resp.status_code == 200
    assert resp.headers["WebHook-Allowed-Origin"] == "eventgrid.azure.net"
    assert resp.headers["WebHook-Allowed-Rate"] == "*"
    assert resp.content == b""


@pytest.mark.asyncio
async def test_options_without_origin_still_allows_rate(client):
    resp = await client.options(URL)
    assert resp.status_code == 200
    assert resp.headers["WebHook-Allowed-Rate"] == "*"
    assert "WebHook-Allowed-Origin" not in resp.headers


# --- Validation handshake -----------------------------------------------------

@pytest.mark.asyncio
async def test_validation_returns_exact_echo(client, gateway):
    body = json.dumps([{
        "id": "1", "eventType": "x", "subject": "s", "eventTime": "...",
        "data": {"validationCode": "abc123"},
    }])
    resp = await client.post(URL, content=body, headers=VALIDATION)
    assert resp.status_code == 200
    assert resp.content == b'{"validationResponse":"abc123"}'
    assert len(gateway.sink.calls) == 1


@pytest.mark.asyncio
async def test_empty_validation_batch_is_400(client, gateway):
    resp = await client.post(URL, content="[]", headers=VALIDATION)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_PRECONDITION"
    assert gateway.sink.calls == []


# --- Request kind -------------------------------------------------------------

@pytest.mark.asyncio
async def test_unknown_kind_is_400(client, gateway):
    resp = await client.post(URL, content=_grid("a"), headers={"aeg-event-type": "Other"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "UNRECOGNIZED_REQUEST_KIND"
    assert gateway.sink.calls == []


@pytest.mark.asyncio
async def test_missing_kind_is_400(client, gateway):
    resp = await client.post(URL, content=_grid("a"))
    assert resp.status_code == 400
    assert gateway.sink.calls == []


# --- Notifications ------------------------------------------------------------

@pytest.mark.asyncio
async def test_grid_batch_broadcasts_each_event(client, gateway):
    resp = await client.post(URL, content=_grid("a", "b", "c"), headers=NOTIFICATION)
    assert resp.status_code == 200
    assert resp.content == b""
    assert [c.event_id for c in gateway.sink.calls] == ["a", "b", "c"]
    assert gateway.sink.calls[0].formatted_time == "8:00:00 AM"


@pytest.mark.asyncio
async def test_grid_blob_created_elevated_when_authenticated(client, gateway, authenticated):
    gateway.auth = authenticated
    await client.post(URL, content=_grid("a"), headers=NOTIFICATION)
    assert gateway.sink.calls[0].event_type == ELEVATED_EVENT_TYPE


@pytest.mark.asyncio
async def test_grid_blob_created_forwarded_when_unauthenticated(client, gateway):
    await client.post(URL, content=_grid("a"), headers=NOTIFICATION)
    assert gateway.sink.calls[0].event_type == "Microsoft.Storage.BlobCreated"


@pytest.mark.asyncio
async def test_grid_batch_triggers_build_once(client, gateway, trigger):
    gateway.trigger = trigger
    await client.post(URL, content=_grid("a", "b"), headers=NOTIFICATION)
    await drain_pending_triggers()
    assert trigger.calls == 1


@pytest.mark.asyncio
async def test_in_flight_build_trigger_does_not_hold_response(client, gateway, blocking_trigger):
    gateway.trigger = blocking_trigger
    resp = await asyncio.wait_for(
        client.post(URL, content=_grid("a"), headers=NOTIFICATION), timeout=2.0,
    )
    assert resp.status_code == 200
    assert len(gateway.sink.calls) == 1
    assert blocking_trigger.finished is False
    blocking_trigger.release.set()
    await drain_pending_triggers()
    assert blocking_trigger.finished is True


@pytest.mark.asyncio
@pytest.mark.parametrize("data", [None, "text", [1, 2], {"deep": {"deeper": [{}]}}])
async def test_cloud_event_single_broadcast(client, gateway, trigger, data):
    gateway.trigger = trigger
    resp = await client.post(URL, content=_cloud(data), headers=NOTIFICATION)
    assert resp.status_code == 200
    assert len(gateway.sink.calls) == 1
    assert gateway.sink.calls[0].event_id == "c-1"
    await drain_pending_triggers()
    assert trigger.calls == 0


@pytest.mark.asyncio
async def test_invalid_json_is_400_with_no_broadcast(client, gateway, trigger):
    gateway.trigger = trigger
    resp = await client.post(URL, content="[{\"id\": ", headers=NOTIFICATION)
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "MALFORMED_EVENT"
    assert gateway.sink.calls == []
    assert trigger.calls == 0


@pytest.mark.asyncio
async def test_non_utf8_body_is_400(client, gateway):
    resp = await client.post(URL, content=b"\xff\xfe[]", headers=NOTIFICATION)
    assert resp.status_code == 400
    assert gateway.sink.calls == []


@pytest.mark.asyncio
async def test_malformed_element_aborts_batch_by_default(client, gateway):
    body = json.dumps(json.loads(_grid("a")) + [{"id": "b"}])
    resp = await client.post(URL, content=body, headers=NOTIFICATION)
    assert resp.status_code == 400
    assert gateway.sink.calls == []


@pytest.mark.asyncio
async def test_skip_mode_delivers_valid_elements(client, gateway):
    gateway.settings.grid_batch_failure_mode = BatchFailureMode.SKIP
    body = json.dumps(json.loads(_grid("a")) + [{"id": "b"}] + json.loads(_grid("c")))
    resp = await client.post(URL, content=body, headers=NOTIFICATION)
    assert resp.status_code == 200
    assert [c.event_id for c in gateway.sink.calls] == ["a", "c"]


@pytest.mark.asyncio
async def test_broadcast_failure_still_200(client, gateway, make_sink):
    gateway.sink = make_sink(fail_on={"a"})
    resp = await client.post(URL, content=_grid("a", "b"), headers=NOTIFICATION)
    assert resp.status_code == 200
    assert [c.event_id for c in gateway.sink.calls] == ["a", "b"]


# --- Startup race -------------------------------------------------------------

@pytest.mark.asyncio
async def test_waits_for_pending_auth_when_configured(client, gateway, pending_auth):
    gateway.auth = pending_auth
    gateway.settings.auth_wait_timeout_seconds = 2.0

    async def resolve_soon():
        await asyncio.sleep(0.05)
        pending_auth.mark_authenticated()

    resolver = asyncio.create_task(resolve_soon())
    resp = await client.post(URL, content=_grid("a"), headers=NOTIFICATION)
    await resolver
    assert resp.status_code == 200
    assert gateway.sink.calls[0].event_type == ELEVATED_EVENT_TYPE


@pytest.mark.asyncio
async def test_pending_auth_without_wait_routes_unauthenticated(client, gateway, pending_auth):
    gateway.auth = pending_auth
    await client.post(URL, content=_grid("a"), headers=NOTIFICATION)
    assert gateway.sink.calls[0].event_type == "Microsoft.Storage.BlobCreated"


@pytest.mark.asyncio
async def test_wait_timeout_routes_unauthenticated(client, gateway, pending_auth):
    gateway.auth = pending_auth
    gateway.settings.auth_wait_timeout_seconds = 0.01
    resp = await client.post(URL, content=_grid("a"), headers=NOTIFICATION)
    assert resp.status_code == 200
    assert gateway.sink.calls[0].event_type == "Microsoft.Storage.BlobCreated"


@pytest.mark.asyncio
async def test_numeric_data_version_does_not_reject_batch(client, gateway):
    body = json.dumps([{
        "id": "a", "eventType": "Microsoft.Storage.BlobDeleted", "subject": "/blobs/a",
        "dataVersion": 2, "metadataVersion": 1, "topic": None, "data": {},
    }])
    resp = await client.post(URL, content=body, headers=NOTIFICATION)
    assert resp.status_code == 200
    assert [c.event_id for c in gateway.sink.calls] == ["a"]
