"""
Platform notifier tests.
"""

import json
import logging

import httpx
import pytest

from config import PlatformConfig
from exceptions import PlatformError
from infrastructure.platform import HttpPlatformService, LoggingPlatformService

pytestmark = pytest.mark.asyncio


def _service(handler, **config):
    base = dict(callback_url="https://platform.test/api/", max_retries=3, retry_base_delay_seconds=0)
    base.update(config)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpPlatformService(PlatformConfig(**base), client=client)


class Recorder:
    def __init__(self, *statuses):
        self.statuses = list(statuses)
        self.requests = []

    def __call__(self, request):
        self.requests.append((request.url.path, json.loads(request.content)))
        status = self.statuses.pop(0) if self.statuses else 200
        return httpx.Response(status, text="")


async def test_requires_callback_url():
    with pytest.raises(ValueError):
        HttpPlatformService(PlatformConfig())


async def test_completed_posts_stats():
    recorder = Recorder()
    await _service(recorder).build_completed("b1", 250, 0.61)

    path, body = recorder.requests[0]
    assert path == "/api/builds/b1/completed"
    assert body == {"build_id": "b1", "event": "completed", "train_size": 250, "confidence": 0.61}


async def test_faulted_posts_message():
    recorder = Recorder()
    await _service(recorder).build_faulted("b1", "out of memory")
    assert recorder.requests[0] == ("/api/builds/b1/faulted", {"build_id": "b1", "event": "faulted", "message": "out of memory"})


@pytest.mark.parametrize("method,event", [
    ("build_started", "started"),
    ("build_canceled", "canceled"),
    ("build_restarting", "restarting"),
])
async def test_simple_events(method, event):
    recorder = Recorder()
    await getattr(_service(recorder), method)("b9")
    assert recorder.requests == [(f"/api/builds/b9/{event}", {"build_id": "b9", "event": event})]


async def test_transient_failures_are_retried():
    recorder = Recorder(503, 429)
    await _service(recorder).build_started("b1")
    assert len(recorder.requests) == 3


async def test_client_error_fails_at_once():
    recorder = Recorder(404)
    with pytest.raises(PlatformError, match="HTTP 404"):
        await _service(recorder).build_started("b1")
    assert len(recorder.requests) == 1


async def test_retries_exhausted():
    recorder = Recorder(500, 500)
    with pytest.raises(PlatformError, match="started"):
        await _service(recorder, max_retries=2).build_started("b1")
    assert len(recorder.requests) == 2


async def test_transport_error_is_retried():
    calls = {"n": 0}

    def handler(request):
        calls["n"] += 1
        if calls["n"] == 1:
            raise httpx.ReadTimeout("slow", request=request)
        return httpx.Response(204)

    await _service(handler).build_canceled("b1")
    assert calls["n"] == 2


async def test_logging_service_logs_each_event(caplog):
    service = LoggingPlatformService()
    with caplog.at_level(logging.INFO):
        await service.build_started("b1")
        await service.build_completed("b1", 10, 0.5)
        await service.build_faulted("b2", "boom")
    messages = [r.getMessage() for r in caplog.records]
    assert any("b1 started" in m for m in messages)
    assert any("b1 completed" in m for m in messages)
    assert any("b2 faulted" in m for m in messages)
