"""
BullMQ job queue macros.

BullMQ keeps each queue's state in Redis under ``bull:<queue>:*`` keys,
so the queue can be measured from Python without a BullMQ client:

- ``bull:<queue>:wait``    list of waiting job ids
- ``bull:<queue>:active``  list of jobs currently being processed
- ``bull:<queue>:delayed`` sorted set of delayed jobs, scored by
  ``timestamp_ms * 0x1000``

Usage::

    config.dyno("worker", lambda: bullmq.job_queue_size("default", "mailer"))
"""

import collections.abc
import os
import time
import typing

import redis.asyncio

import hirefire_resource.exceptions

REDIS_URL_ENVIRONMENT_VARIABLES = (
    "REDIS_TLS_URL",
    "REDIS_URL",
    "REDISTOGO_URL",
    "REDISCLOUD_URL",
    "OPENREDIS_URL",
)

DEFAULT_REDIS_URL = "redis://localhost:6379"

# BullMQ encodes delayed job timestamps as ``timestamp_ms * 0x1000``.
DELAYED_JOB_SCORE_MULTIPLIER = 0x1000

# BullMQ pushes a marker entry prefixed with "0:" onto the wait list; it is
# not a job and must not be counted.
_MARKER_PREFIX = "0:"


async def job_queue_latency(*queues: typing.Any, **options: typing.Any) -> typing.NoReturn:
    """
    Job queue latency is not measurable for BullMQ.

    Raises:
        hirefire_resource.exceptions.JobQueueLatencyUnsupportedError: Always.
    """
    raise hirefire_resource.exceptions.JobQueueLatencyUnsupportedError("BullMQ")


async def job_queue_size(
    *queues: str | collections.abc.Iterable[str],
    connection: str | redis.asyncio.Redis | None = None,
) -> int:
    """
    Calculate the total job queue size across the given queues.

    Counts waiting, active, and due delayed jobs.  Queue names may be
    passed individually or as iterables, which are flattened.

    Args:
        queues: The names of the queues to measure.
        connection: A Redis URL or an existing ``redis.asyncio.Redis``
            client.  Defaults to the first of REDIS_TLS_URL, REDIS_URL,
            REDISTOGO_URL, REDISCLOUD_URL, OPENREDIS_URL that is set, or
            ``redis://localhost:6379``.  Clients passed in are left open;
            clients created from a URL are closed before returning.

    Raises:
        hirefire_resource.exceptions.MissingQueueError: When no queue is given.

    Example::

        await job_queue_size("default")
        await job_queue_size("default", "mailer", connection="redis://localhost:6379/0")
    """
    queue_names = _flatten_queue_names(queues)

    if not queue_names:
        raise hirefire_resource.exceptions.MissingQueueError()

    if isinstance(connection, redis.asyncio.Redis):
        return await _count_jobs(connection, queue_names)

    redis_client = redis.asyncio.from_url(connection or _redis_url_from_environment(), decode_responses=True)
    try:
        return await _count_jobs(redis_client, queue_names)
    finally:
        await redis_client.aclose()


async def _count_jobs(redis_client: redis.asyncio.Redis, queue_names: list[str]) -> int:
    due_delayed_score = int(time.time() * 1000) * DELAYED_JOB_SCORE_MULTIPLIER

    pipeline = redis_client.pipeline(transaction=False)
    for queue_name in queue_names:
        pipeline.lindex(f"bull:{queue_name}:wait", -1)
        pipeline.llen(f"bull:{queue_name}:wait")
        pipeline.llen(f"bull:{queue_name}:active")
        pipeline.zcount(f"bull:{queue_name}:delayed", "-inf", due_delayed_score)
    results = await pipeline.execute()

    total_count = 0
    for index in range(0, len(results), 4):
        last_waiting_job, waiting_count, active_count, delayed_count = results[index : index + 4]
        total_count += (waiting_count or 0) + (active_count or 0) + (delayed_count or 0)

        if isinstance(last_waiting_job, bytes):
            last_waiting_job = last_waiting_job.decode("utf-8", errors="replace")
        if last_waiting_job and last_waiting_job.startswith(_MARKER_PREFIX):
            total_count -= 1

    return total_count


def _flatten_queue_names(queues: tuple[str | collections.abc.Iterable[str], ...]) -> list[str]:
    queue_names: list[str] = []
    for queue in queues:
        if isinstance(queue, str):
            queue_names.append(queue)
        else:
            queue_names.extend(queue)
    return queue_names


def _redis_url_from_environment() -> str:
    for variable_name in REDIS_URL_ENVIRONMENT_VARIABLES:
        redis_url = os.environ.get(variable_name)
        if redis_url:
            return redis_url
    return DEFAULT_REDIS_URL
