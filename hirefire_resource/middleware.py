"""
Request interception for HireFire.

Two responsibilities apply to every inbound request:

- **Request queue time**: when the router stamped the request with an
  ``X-Request-Start`` header (milliseconds since the epoch), the time the
  request spent queued before reaching the application is recorded in the
  web dispatcher's buffer.  The first such request starts the dispatcher.

- **Info endpoint**: HireFire polls either ``/hirefire`` (authenticated
  with the ``HireFire-Token`` request header) or ``/hirefire/<token>/info``
  for the current job queue metric of every registered worker.  Those
  requests are answered by the agent and never reach the application.

``request`` is framework-neutral.  ``HireFireMiddleware`` adapts it to
any ASGI application (FastAPI, Starlette, ...); synchronous WSGI hosts use
``hirefire_resource.wsgi.HireFireWSGIMiddleware`` instead::

    fastapi_application.add_middleware(
        hirefire_resource.middleware.HireFireMiddleware,
    )
"""

import asyncio
import json
import time

import starlette.types

import hirefire_resource.hirefire
import hirefire_resource.models
import hirefire_resource.settings
import hirefire_resource.version

HIREFIRE_PATH = "/hirefire"

_INFO_RESPONSE_HEADERS: dict[str, str] = {
    "Content-Type": "application/json",
    "Cache-Control": "must-revalidate, private, max-age=0",
    "HireFire-Resource": hirefire_resource.version.RESOURCE_IDENTITY,
}


async def request(
    request_info: hirefire_resource.models.RequestInfo,
    hirefire: hirefire_resource.hirefire.HireFire | None = None,
) -> hirefire_resource.models.HireFireResponse | None:
    """
    Process one inbound request.

    Records its queue time when applicable, then returns the info endpoint
    response when the request targets it, or ``None`` when the request
    should be handed to the application.
    """
    hirefire = hirefire or hirefire_resource.hirefire.hirefire_instance
    token = hirefire_resource.settings.HireFireSettings().token

    await _process_request_queue_time(request_info, hirefire, token)

    if not (_matches_hirefire_path(request_info, token) or _matches_info_path(request_info, token)):
        return None

    workers = hirefire.configuration.workers
    worker_values = await asyncio.gather(*(worker.value() for worker in workers))
    hirefire.configuration.logger.debug("hirefire_info_request_served", workers=len(workers))

    return hirefire_resource.models.HireFireResponse(
        status=200,
        headers=dict(_INFO_RESPONSE_HEADERS),
        body=[
            hirefire_resource.models.WorkerMetric(name=worker.name, value=worker_value)
            for worker, worker_value in zip(workers, worker_values)
        ],
    )


def _matches_hirefire_path(
    request_info: hirefire_resource.models.RequestInfo,
    token: str | None,
) -> bool:
    return token is not None and request_info.path == HIREFIRE_PATH and request_info.token == token


def _matches_info_path(
    request_info: hirefire_resource.models.RequestInfo,
    token: str | None,
) -> bool:
    return token is not None and request_info.path == f"{HIREFIRE_PATH}/{token}/info"


async def _process_request_queue_time(
    request_info: hirefire_resource.models.RequestInfo,
    hirefire: hirefire_resource.hirefire.HireFire,
    token: str | None,
) -> None:
    web = hirefire.configuration.web
    if token is None or web is None or not request_info.request_start_time:
        return

    await web.start_dispatcher()
    web.add_to_buffer(calculate_request_queue_time(request_info.request_start_time))


def calculate_request_queue_time(request_start_time: int) -> int:
    """Milliseconds between ``request_start_time`` and now, never negative."""
    return max(int(time.time() * 1000) - request_start_time, 0)


class HireFireMiddleware:
    """
    Pure ASGI middleware that feeds every HTTP request through ``request``.

    Reads ``X-Request-Start`` and ``HireFire-Token`` from the request
    headers.  Info endpoint requests are answered with a JSON list of
    ``{"name", "value"}`` objects; all other requests pass through to the
    wrapped application untouched.
    """

    def __init__(
        self,
        app: starlette.types.ASGIApp,
        hirefire: hirefire_resource.hirefire.HireFire | None = None,
    ) -> None:
        self.app = app
        self._hirefire = hirefire

    async def __call__(
        self,
        scope: starlette.types.Scope,
        receive: starlette.types.Receive,
        send: starlette.types.Send,
    ) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_headers = _decode_headers(scope.get("headers", []))

        hirefire_response = await request(
            hirefire_resource.models.RequestInfo(
                path=scope.get("path", ""),
                request_start_time=request_headers.get("x-request-start"),
                token=request_headers.get("hirefire-token"),
            ),
            hirefire=self._hirefire,
        )

        if hirefire_response is None:
            await self.app(scope, receive, send)
            return

        response_body = render_response_body(hirefire_response)

        await send(
            {
                "type": "http.response.start",
                "status": hirefire_response.status,
                "headers": [
                    *(
                        (header_name.lower().encode("latin-1"), header_value.encode("latin-1"))
                        for header_name, header_value in hirefire_response.headers.items()
                    ),
                    (b"content-length", str(len(response_body)).encode()),
                ],
            }
        )
        await send(
            {
                "type": "http.response.body",
                "body": response_body,
            }
        )


def _decode_headers(headers: list[tuple[bytes, bytes]]) -> dict[str, str]:
    """Lower-cased header names mapped to their decoded values; the first occurrence wins."""
    decoded_headers: dict[str, str] = {}
    for header_name, header_value in headers:
        decoded_headers.setdefault(header_name.decode("latin-1").lower(), header_value.decode("latin-1"))
    return decoded_headers


def render_response_body(hirefire_response: hirefire_resource.models.HireFireResponse) -> bytes:
    """The info endpoint body: a JSON list of ``{"name", "value"}`` objects."""
    return json.dumps(
        [worker_metric.model_dump() for worker_metric in hirefire_response.body],
    ).encode("utf-8")
