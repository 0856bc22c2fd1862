"""
WSGI adapter for synchronous hosts (Flask, Django, ...).

WSGI applications have no event loop to run the web dispatcher on, so
``HireFireWSGIMiddleware`` owns one: an asyncio loop running forever in a
daemon thread.  Every request hands ``hirefire_resource.middleware.request``
to that loop and blocks until it returns.  The dispatcher schedule, the
metric submissions and async worker callables all run there, while
samples are recorded from whichever worker thread serves the request
(the buffer is guarded by a ``threading.Lock`` for exactly this case)::

    flask_application.wsgi_app = hirefire_resource.wsgi.HireFireWSGIMiddleware(
        flask_application.wsgi_app,
    )

Call ``close()`` on shutdown to stop the dispatcher and the loop thread.
"""

import asyncio
import collections.abc
import http
import threading
import typing
import wsgiref.types

import hirefire_resource.hirefire
import hirefire_resource.middleware
import hirefire_resource.models

# Grace period, on top of the dispatch timeout, for an in-flight
# submission to finish while closing.
_CLOSE_GRACE_SECONDS = 1


class _BackgroundEventLoop:
    """An asyncio event loop running forever in a daemon thread."""

    def __init__(self) -> None:
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_forever,
            name="hirefire-event-loop",
            daemon=True,
        )
        self._thread.start()

    def _run_forever(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def run(self, coroutine: collections.abc.Coroutine[typing.Any, typing.Any, typing.Any]) -> typing.Any:
        """Run ``coroutine`` on the loop and block the calling thread until it finishes."""
        return asyncio.run_coroutine_threadsafe(coroutine, self._loop).result()

    def is_running(self) -> bool:
        return self._thread.is_alive()

    def close(self) -> None:
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()


class HireFireWSGIMiddleware:
    """
    WSGI middleware that feeds every request through
    ``hirefire_resource.middleware.request``.

    Reads ``X-Request-Start`` and ``HireFire-Token`` from the WSGI
    environ.  Info endpoint requests are answered with the same JSON body
    and headers as the ASGI middleware; everything else is passed to the
    wrapped application untouched.
    """

    def __init__(
        self,
        app: wsgiref.types.WSGIApplication,
        hirefire: hirefire_resource.hirefire.HireFire | None = None,
    ) -> None:
        self.app = app
        self._hirefire = hirefire
        self._event_loop = _BackgroundEventLoop()

    def __call__(
        self,
        environ: wsgiref.types.WSGIEnvironment,
        start_response: wsgiref.types.StartResponse,
    ) -> collections.abc.Iterable[bytes]:
        hirefire_response = self._event_loop.run(
            hirefire_resource.middleware.request(
                hirefire_resource.models.RequestInfo(
                    path=environ.get("PATH_INFO", ""),
                    request_start_time=environ.get("HTTP_X_REQUEST_START"),
                    token=environ.get("HTTP_HIREFIRE_TOKEN"),
                ),
                hirefire=self._hirefire,
            )
        )

        if hirefire_response is None:
            return self.app(environ, start_response)

        response_body = hirefire_resource.middleware.render_response_body(hirefire_response)
        status = http.HTTPStatus(hirefire_response.status)

        start_response(
            f"{status.value} {status.phrase}",
            [
                *hirefire_response.headers.items(),
                ("Content-Length", str(len(response_body))),
            ],
        )
        return [response_body]

    def close(self) -> None:
        """Stop the web dispatcher, let an in-flight submission finish, and stop the loop thread."""
        if not self._event_loop.is_running():
            return

        web = (self._hirefire or hirefire_resource.hirefire.hirefire_instance).configuration.web
        if web is not None:
            self._event_loop.run(web.stop_dispatcher())
            self._event_loop.run(_wait_for_pending_tasks(web.dispatch_timeout + _CLOSE_GRACE_SECONDS))

        self._event_loop.close()


async def _wait_for_pending_tasks(timeout: float) -> None:
    pending_tasks = asyncio.all_tasks() - {asyncio.current_task()}
    if pending_tasks:
        await asyncio.wait(pending_tasks, timeout=timeout)
