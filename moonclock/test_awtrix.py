from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone

import httpx

from awtrix import AwtrixApp, AwtrixClient, build_apps
from broadcaster import Broadcaster
from snapshot import build_snapshot, serialize
from store import SnapshotStore

DOC = json.loads(serialize(build_snapshot(datetime(2025, 8, 12, tzinfo=timezone.utc))))


def _client(handler, **kwargs) -> AwtrixClient:
    transport = httpx.MockTransport(handler)
    http = httpx.AsyncClient(transport=transport, base_url="http://awtrix.test")
    return AwtrixClient("http://awtrix.test", client=http, retry_delay_s=0.0, **kwargs)


def test_build_apps_from_document():
    apps = build_apps(DOC)
    names = [app.name for app in apps]
    assert names[0] == "moonphase"
    assert apps[0].text == DOC["moonPhaseName"]
    assert apps[0].icon == DOC["moonPhaseIcon"]
    assert "fullmoon" in names
    assert "lightMars" in names
    mars = next(app for app in apps if app.name == "marsDistanceAu")
    assert mars.text.endswith("au")
    summer = next(app for app in apps if app.name == "summersolstice")
    assert summer.text == f"{DOC['daysUntilSummerSolstice']}d"


def test_build_apps_skips_absent_values():
    doc = dict(DOC, marsDistanceAu=None, lightTimeEarthToMars=None, moonIlluminationPercent=None)
    names = [app.name for app in build_apps(doc)]
    assert "marsDistanceAu" not in names
    assert "lightMars" not in names
    assert "moonillumination" not in names
    assert "jupiterDistanceAu" in names


def test_push_posts_one_request_per_app():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200)

    client = _client(handler)
    sent = asyncio.run(client.push(DOC))

    assert sent == len(build_apps(DOC)) == len(requests)
    first = requests[0]
    assert first.method == "POST"
    assert first.url.path == "/api/custom"
    assert first.url.params["name"] == "moonphase"
    body = json.loads(first.content)
    assert body == {"name": "moonphase", "text": DOC["moonPhaseName"], "save": "1", "effect": "", "icon": DOC["moonPhaseIcon"]}
    assert client.success_count == sent
    assert client.failure_count == 0


def test_send_app_retries_then_succeeds():
    statuses = iter([500, 503, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(next(statuses))

    client = _client(handler)
    assert asyncio.run(client.send_app(AwtrixApp("fullmoon", "3d", "FullMoon"))) is True
    assert client.success_count == 1


def test_send_app_gives_up_after_max_attempts():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("unreachable", request=request)

    client = _client(handler, max_attempts=3)
    assert asyncio.run(client.send_app(AwtrixApp("fullmoon", "3d", "FullMoon"))) is False
    assert len(attempts) == 3
    assert client.failure_count == 1


def test_check_connectivity():
    ok = _client(lambda request: httpx.Response(200, json={"bat": 100}))
    assert asyncio.run(ok.check_connectivity()) is True

    def refuse(request):
        raise httpx.ConnectError("refused", request=request)

    assert asyncio.run(_client(refuse).check_connectivity()) is False
    assert asyncio.run(_client(lambda request: httpx.Response(404)).check_connectivity()) is False


def test_run_pushes_current_then_published_snapshots():
    posted = []

    def handler(request: httpx.Request) -> httpx.Response:
        posted.append(json.loads(request.content))
        return httpx.Response(200)

    async def scenario():
        store = SnapshotStore()
        broadcaster = Broadcaster()
        first = build_snapshot(datetime(2025, 8, 12, tzinfo=timezone.utc))
        store.replace(first)
        client = _client(handler)

        task = asyncio.create_task(client.run(broadcaster, store))
        for _ in range(50):
            await asyncio.sleep(0.01)
            if len(broadcaster) == 1:
                break
        broadcaster.publish(build_snapshot(datetime(2025, 8, 27, tzinfo=timezone.utc)))
        for _ in range(50):
            await asyncio.sleep(0.01)
            if len(posted) >= 2 * len(build_apps(DOC)):
                break
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return broadcaster

    broadcaster = asyncio.run(scenario())
    per_snapshot = len(build_apps(DOC))
    assert len(posted) == 2 * per_snapshot
    assert len(broadcaster) == 0


def test_push_stops_after_first_app_exhausts_retries():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request.url.params["name"])
        raise httpx.ConnectError("offline", request=request)

    client = _client(handler, max_attempts=3)
    assert asyncio.run(client.push(DOC)) == 0
    assert attempts == ["moonphase"] * 3
    assert client.failure_count == 1
    assert client.success_count == 0


def test_push_keeps_apps_sent_before_device_went_offline():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] <= 2:
            return httpx.Response(200)
        raise httpx.ConnectError("offline", request=request)

    client = _client(handler, max_attempts=2)
    assert asyncio.run(client.push(DOC)) == 2
    assert calls["n"] == 4
    assert client.success_count == 2
    assert client.failure_count == 1
