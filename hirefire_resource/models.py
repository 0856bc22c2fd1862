"""
Pydantic models exchanged between the request interception layer and
the host framework adapters.
"""

import typing

import pydantic


class RequestInfo(pydantic.BaseModel):
    """
    The parts of an inbound request the agent cares about.

    ``request_start_time`` is the ``X-Request-Start`` header value: the
    unix time in milliseconds at which the router received the request.
    Values that cannot be read as a number are treated as absent.
    """

    path: str
    request_start_time: int | None = None
    token: str | None = None

    @pydantic.field_validator("request_start_time", mode="before")
    @classmethod
    def _parse_request_start_time(cls, value: typing.Any) -> int | None:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, bytes):
            value = value.decode("latin-1")
        try:
            return int(value)
        except (TypeError, ValueError):
            pass
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return None


class WorkerMetric(pydantic.BaseModel):
    """One entry of the info endpoint response body."""

    name: str
    value: typing.Any


class HireFireResponse(pydantic.BaseModel):
    """A response the host framework adapter should send as JSON."""

    status: int
    headers: dict[str, str]
    body: list[WorkerMetric]
