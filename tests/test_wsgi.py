"""Tests for hirefire_resource/wsgi.py — the WSGI adapter for synchronous hosts."""

import concurrent.futures
import json
import time
from unittest.mock import MagicMock

import httpx
import pytest

import hirefire_resource.hirefire
import hirefire_resource.wsgi


def _application(environ, start_response):
    start_response("200 OK", [("Content-Type", "text/plain")])
    return [b"application response"]


def _buffered_samples(hirefire) -> list[int]:
    return [
        sample
        for samples in hirefire.configuration.web.buffer.snapshot().values()
        for sample in samples
    ]


@pytest.fixture
def hirefire():
    hirefire = hirefire_resource.hirefire.HireFire()
    hirefire.configuration.logger = MagicMock()
    hirefire.configuration.dyno("web")
    hirefire.configuration.dyno("worker", lambda: 4)
    # Keep the schedule from ticking during a test.
    hirefire.configuration.web._dispatch_interval = 60
    return hirefire


@pytest.fixture
def wsgi_middleware(hirefire):
    wsgi_middleware = hirefire_resource.wsgi.HireFireWSGIMiddleware(_application, hirefire=hirefire)
    yield wsgi_middleware
    wsgi_middleware.close()


@pytest.fixture
def client(wsgi_middleware):
    with httpx.Client(
        transport=httpx.WSGITransport(app=wsgi_middleware),
        base_url="http://testserver",
    ) as sync_client:
        yield sync_client


class TestHireFireWSGIMiddleware:
    def test_application_requests_pass_through(self, client, hirefire):
        response = client.get("/")

        assert response.status_code == 200
        assert response.content == b"application response"
        assert hirefire.configuration.web.dispatcher_running() is False

    def test_info_request_is_answered_by_the_middleware(self, client, hirefire_token):
        response = client.get("/hirefire", headers={"HireFire-Token": hirefire_token})

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        assert response.headers["cache-control"] == "must-revalidate, private, max-age=0"
        assert response.headers["hirefire-resource"] == "Python-1.0.0"
        assert response.headers["content-length"] == str(len(response.content))
        assert json.loads(response.content) == [{"name": "worker", "value": 4}]

    def test_info_path_request(self, client, hirefire_token):
        response = client.get(f"/hirefire/{hirefire_token}/info")

        assert response.json() == [{"name": "worker", "value": 4}]

    def test_wrong_token_reaches_the_application(self, client, hirefire_token):
        response = client.get("/hirefire", headers={"HireFire-Token": "wrong-token"})

        assert response.content == b"application response"

    def test_x_request_start_is_recorded_and_dispatcher_started(self, client, hirefire, hirefire_token):
        request_start = int(time.time() * 1000) - 2000

        response = client.get("/", headers={"X-Request-Start": str(request_start)})

        assert response.status_code == 200
        assert hirefire.configuration.web.dispatcher_running() is True
        samples = _buffered_samples(hirefire)
        assert len(samples) == 1
        assert samples[0] >= 2000

    def test_samples_from_concurrent_threads_are_all_recorded(self, wsgi_middleware, hirefire, hirefire_token):
        request_start = int(time.time() * 1000)

        def send_request(_):
            with httpx.Client(
                transport=httpx.WSGITransport(app=wsgi_middleware),
                base_url="http://testserver",
            ) as sync_client:
                return sync_client.get("/", headers={"X-Request-Start": str(request_start)}).status_code

        with concurrent.futures.ThreadPoolExecutor(max_workers=8) as executor:
            status_codes = list(executor.map(send_request, range(40)))

        assert status_codes == [200] * 40
        assert len(_buffered_samples(hirefire)) == 40

    def test_close_stops_the_dispatcher(self, client, wsgi_middleware, hirefire, hirefire_token):
        client.get("/", headers={"X-Request-Start": str(int(time.time() * 1000))})
        assert hirefire.configuration.web.dispatcher_running() is True

        wsgi_middleware.close()

        assert hirefire.configuration.web.dispatcher_running() is False
        assert hirefire.configuration.web.buffer.snapshot() == {}

    def test_close_twice_is_harmless(self, wsgi_middleware):
        wsgi_middleware.close()
        wsgi_middleware.close()
