"""
Web dyno metrics dispatcher.

Collects request queue time samples recorded by the request interception
layer and ships them to the HireFire collector on a recurring tick::

    add_to_buffer → [tick] → flush → submit_buffer ─┬─ 200    → adjust parameters
                                                    └─ failure → log + repopulate

Dispatch cycle
--------------
Every tick flushes the buffer, POSTs the flushed buckets as JSON, and
classifies the outcome.  A successful (HTTP 200) response may carry
headers that retune the dispatcher:

- ``HireFire-Resource-Dispatcher-Interval``: seconds between ticks.
- ``HireFire-Resource-Dispatcher-Timeout``: seconds allowed per submission.
- ``HireFire-Resource-Buffer-TTL``: seconds an undelivered bucket is kept.

Any failure is logged and the flushed buckets that are still within the
TTL are merged back into the live buffer, to be retried on the next tick
together with whatever arrived in the meantime.  Failures never escape a
tick: the host process and the schedule keep running.

Scheduling
----------
The schedule is a single asyncio task per ``Web`` instance.  It waits for
the current interval, runs one dispatch cycle to completion, and only
then starts waiting again.  Ticks are therefore serialised: a submission
that takes longer than the interval delays the next tick rather than
overlapping with it.  The interval is re-read before every wait, so an
adjusted interval applies from the next tick onwards.

Each schedule owns one ``httpx.AsyncClient`` for its submissions, closed
when the schedule ends.

Stopping the dispatcher wakes the waiting task and ends the schedule.  A
submission already in flight is not cancelled; its own timeout bounds it.
If it fails, its samples are dropped rather than put back, so a stopped
dispatcher holds nothing.  The final flush performed by ``stop_dispatcher``
is discarded, not sent.  Restarting while the old schedule is still
submitting makes the new schedule wait for the old one to finish first,
so ticks stay serialised across a restart.
"""

import asyncio
import collections.abc
import json
import re
import threading
import time
import typing

import httpx
import structlog

import hirefire_resource.buffer
import hirefire_resource.exceptions
import hirefire_resource.settings
import hirefire_resource.version

if typing.TYPE_CHECKING:
    import hirefire_resource.configuration

DEFAULT_DISPATCH_INTERVAL_SECONDS = 1
DEFAULT_DISPATCH_TIMEOUT_SECONDS = 5
DEFAULT_BUFFER_TTL_SECONDS = 60

DISPATCHER_INTERVAL_HEADER = "HireFire-Resource-Dispatcher-Interval"
DISPATCHER_TIMEOUT_HEADER = "HireFire-Resource-Dispatcher-Timeout"
BUFFER_TTL_HEADER = "HireFire-Resource-Buffer-TTL"

MISSING_TOKEN_DETAIL = (
    "The HIREFIRE_TOKEN environment variable is not set. Unable to submit "
    "Request Queue Time metric data. The HIREFIRE_TOKEN can be found in "
    "the HireFire Web UI in the web dyno manager settings."
)

REQUEST_TIMED_OUT_DETAIL = "Request timed out."

_URL_SCHEME_PATTERN = re.compile(r"^https?://")


class Web:
    """
    Buffers request queue time samples and dispatches them to HireFire.

    Created by ``Configuration.dyno("web")``.  The dispatcher is started
    lazily by the request interception layer on the first request that
    carries an ``X-Request-Start`` header, and stopped by the host on
    shutdown (see ``hirefire_resource.lifespan``).
    """

    def __init__(
        self,
        configuration: "hirefire_resource.configuration.Configuration",
        clock: collections.abc.Callable[[], float] = time.time,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Args:
            configuration: The owning configuration; supplies the logger.
            clock: Returns the current unix time in seconds.  Used for
                bucket assignment and TTL evaluation.
            transport: Optional httpx transport used for submissions.
                Defaults to httpx's network transport.
        """
        self._configuration = configuration
        self._buffer = hirefire_resource.buffer.RequestQueueTimeBuffer(clock=clock)
        self._transport = transport

        self._dispatch_interval = DEFAULT_DISPATCH_INTERVAL_SECONDS
        self._dispatch_timeout = DEFAULT_DISPATCH_TIMEOUT_SECONDS
        self._buffer_ttl = DEFAULT_BUFFER_TTL_SECONDS

        self._state_lock = threading.Lock()
        self._dispatcher_running = False
        self._dispatcher_stop_event: asyncio.Event | None = None
        # Strong references to schedule tasks; the event loop only keeps
        # weak ones.  A task removes itself once its schedule has ended.
        self._dispatcher_tasks: set[asyncio.Task[None]] = set()

    # ── Lifecycle ─────────────────────────────────────────────────────

    async def start_dispatcher(self) -> bool:
        """
        Start the recurring dispatch schedule on the running event loop.

        Returns ``False`` without side effects when the dispatcher is
        already running, ``True`` otherwise.  When a previous schedule is
        still finishing an in-flight submission, the new schedule waits
        for it before its first tick.
        """
        with self._state_lock:
            if self._dispatcher_running:
                return False
            self._dispatcher_running = True
            stop_event = asyncio.Event()
            self._dispatcher_stop_event = stop_event
            previous_dispatcher_tasks = set(self._dispatcher_tasks)
            dispatcher_task = asyncio.get_running_loop().create_task(
                self._run_dispatcher(stop_event, previous_dispatcher_tasks),
                name="hirefire-web-dispatcher",
            )
            self._dispatcher_tasks.add(dispatcher_task)
            dispatcher_task.add_done_callback(self._dispatcher_tasks.discard)

        self._logger.info(
            "web_metrics_dispatcher_started",
            dispatch_interval_seconds=self._dispatch_interval,
        )
        return True

    async def stop_dispatcher(self) -> bool:
        """
        Stop the recurring dispatch schedule.

        Returns ``False`` when the dispatcher is not running.  Otherwise
        ends the schedule, discards whatever is left in the buffer, and
        returns ``True``.  A submission still in flight is allowed to
        finish, but its samples are not put back if it fails.
        """
        with self._state_lock:
            if not self._dispatcher_running:
                return False
            self._dispatcher_running = False
            if self._dispatcher_stop_event is not None:
                self._dispatcher_stop_event.set()
                self._dispatcher_stop_event = None

        discarded_buffer = self._buffer.flush()

        self._logger.info(
            "web_metrics_dispatcher_stopped",
            discarded_samples=sum(len(samples) for samples in discarded_buffer.values()),
        )
        return True

    def dispatcher_running(self) -> bool:
        return self._dispatcher_running

    async def _run_dispatcher(
        self,
        stop_event: asyncio.Event,
        previous_dispatcher_tasks: set[asyncio.Task[None]],
    ) -> None:
        if previous_dispatcher_tasks:
            await asyncio.wait(previous_dispatcher_tasks)

        async with httpx.AsyncClient(transport=self._transport) as http_client:
            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self._dispatch_interval)
                except TimeoutError:
                    await self.dispatch_buffer(http_client=http_client, stop_event=stop_event)

    # ── Buffer ────────────────────────────────────────────────────────

    def add_to_buffer(self, request_queue_time: int) -> None:
        """Record one request queue time sample, in milliseconds."""
        self._buffer.add(request_queue_time)

    @property
    def buffer(self) -> hirefire_resource.buffer.RequestQueueTimeBuffer:
        return self._buffer

    # ── Dispatch cycle ────────────────────────────────────────────────

    async def dispatch_buffer(
        self,
        http_client: httpx.AsyncClient | None = None,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """
        Run one dispatch cycle: flush, submit, then adjust or recover.

        Never raises.  An empty buffer is not submitted.  When
        ``stop_event`` is set by the time a submission fails, the
        schedule it belongs to has been stopped and the flushed samples
        are dropped instead of being put back.
        """
        flushed_buffer = self._buffer.flush()

        if not flushed_buffer:
            return

        try:
            if hirefire_resource.settings.HireFireSettings().verbose:
                self._logger.info(
                    "web_metrics_dispatching",
                    buffer={str(bucket): samples for bucket, samples in flushed_buffer.items()},
                )
            await self.submit_buffer(flushed_buffer, http_client=http_client)
        except hirefire_resource.exceptions.DispatchError as dispatch_error:
            self._recover(flushed_buffer, dispatch_error.detail, stop_event)
        except Exception as unexpected_error:
            self._recover(flushed_buffer, str(unexpected_error) or type(unexpected_error).__name__, stop_event)

    def _recover(
        self,
        flushed_buffer: dict[int, list[int]],
        error_detail: str,
        stop_event: asyncio.Event | None,
    ) -> None:
        self._logger.error(
            "web_metrics_dispatch_failed",
            error=f"Error while dispatching web metrics: {error_detail}",
        )
        if stop_event is not None and stop_event.is_set():
            return
        self._buffer.repopulate(
            flushed_buffer,
            now_seconds=self._buffer.now_seconds(),
            ttl_seconds=self._buffer_ttl,
        )

    async def submit_buffer(
        self,
        buffer: dict[int, list[int]],
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        POST a flushed buffer to the HireFire collector.

        The token and dispatch host are read from the environment on every
        call.  On HTTP 200 the dispatcher parameters are adjusted from the
        response headers.  ``http_client`` is the running schedule's
        client; direct calls without one use a short-lived client.

        Raises:
            hirefire_resource.exceptions.DispatchError:
                With kind ``CONFIGURATION`` when HIREFIRE_TOKEN is unset (no
                request is made), ``TIMEOUT`` when the submission exceeds
                the dispatch timeout, ``SERVER_ERROR`` on HTTP 5xx,
                ``UNEXPECTED_STATUS`` on any other non-200 status, and
                ``NETWORK`` on transport failures.
        """
        settings = hirefire_resource.settings.HireFireSettings()

        if settings.token is None:
            raise hirefire_resource.exceptions.DispatchError(
                MISSING_TOKEN_DETAIL,
                kind=hirefire_resource.exceptions.DispatchErrorKind.CONFIGURATION,
            )

        dispatch_host = _URL_SCHEME_PATTERN.sub("", settings.dispatch_url)
        payload = json.dumps(
            {str(bucket): samples for bucket, samples in buffer.items()},
        ).encode("utf-8")
        request_headers = {
            "Content-Type": "application/json",
            "HireFire-Token": settings.token,
            "HireFire-Resource": hirefire_resource.version.RESOURCE_IDENTITY,
            "Content-Length": str(len(payload)),
        }
        dispatch_timeout = self._dispatch_timeout

        try:
            if http_client is None:
                async with httpx.AsyncClient(transport=self._transport) as short_lived_client:
                    http_response = await self._post(
                        short_lived_client, dispatch_host, payload, request_headers, dispatch_timeout
                    )
            else:
                http_response = await self._post(
                    http_client, dispatch_host, payload, request_headers, dispatch_timeout
                )
        except (TimeoutError, httpx.TimeoutException) as timeout_error:
            raise hirefire_resource.exceptions.DispatchError(
                REQUEST_TIMED_OUT_DETAIL,
                kind=hirefire_resource.exceptions.DispatchErrorKind.TIMEOUT,
            ) from timeout_error
        except httpx.RequestError as request_error:
            raise hirefire_resource.exceptions.DispatchError(
                f"Network error occurred ({str(request_error) or type(request_error).__name__}).",
                kind=hirefire_resource.exceptions.DispatchErrorKind.NETWORK,
            ) from request_error

        if http_response.status_code == 200:
            self._adjust_parameters(http_response.headers)
            return

        if http_response.status_code >= 500:
            raise hirefire_resource.exceptions.DispatchError(
                f"Server responded with {http_response.status_code} status.",
                kind=hirefire_resource.exceptions.DispatchErrorKind.SERVER_ERROR,
            )

        raise hirefire_resource.exceptions.DispatchError(
            f"Unexpected response code {http_response.status_code}.",
            kind=hirefire_resource.exceptions.DispatchErrorKind.UNEXPECTED_STATUS,
        )

    @staticmethod
    async def _post(
        http_client: httpx.AsyncClient,
        dispatch_host: str,
        payload: bytes,
        request_headers: dict[str, str],
        dispatch_timeout: float,
    ) -> httpx.Response:
        return await asyncio.wait_for(
            http_client.post(
                f"https://{dispatch_host}:443/",
                content=payload,
                headers=request_headers,
                timeout=httpx.Timeout(dispatch_timeout),
            ),
            timeout=dispatch_timeout,
        )

    # ── Adaptive parameters ───────────────────────────────────────────

    def _adjust_parameters(self, response_headers: httpx.Headers) -> None:
        self._dispatch_interval = _seconds_from_header(
            response_headers, DISPATCHER_INTERVAL_HEADER, self._dispatch_interval, minimum=1
        )
        self._dispatch_timeout = _seconds_from_header(
            response_headers, DISPATCHER_TIMEOUT_HEADER, self._dispatch_timeout, minimum=1
        )
        self._buffer_ttl = _seconds_from_header(
            response_headers, BUFFER_TTL_HEADER, self._buffer_ttl, minimum=0
        )

    @property
    def dispatch_interval(self) -> int:
        return self._dispatch_interval

    @property
    def dispatch_timeout(self) -> int:
        return self._dispatch_timeout

    @property
    def buffer_ttl(self) -> int:
        return self._buffer_ttl

    @property
    def _logger(self) -> typing.Any:
        return self._configuration.logger


def _seconds_from_header(
    response_headers: httpx.Headers,
    header_name: str,
    current_value: int,
    minimum: int,
) -> int:
    """
    Parse an integer number of seconds from a response header.

    Absent, non-integer, and below-minimum values leave ``current_value``
    in place.
    """
    raw_value = response_headers.get(header_name)
    if raw_value is None:
        return current_value
    try:
        parsed_value = int(raw_value.strip())
    except ValueError:
        return current_value
    if parsed_value < minimum:
        return current_value
    return parsed_value
