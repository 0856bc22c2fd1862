"""
Structured logging for the HireFire resource agent.

Every agent event (dispatcher lifecycle, dispatch failures, verbose buffer
dumps, info endpoint requests) goes through ``Configuration.logger``.
``configure_logging`` builds that logger: a structlog ``BoundLogger``
wrapping the standard library logger named ``hirefire_resource``, rendered
as one JSON object per line on stdout::

    {"event": "web_metrics_dispatch_failed",
     "error": "Error while dispatching web metrics: Request timed out.",
     "logger": "hirefire_resource", "service_name": "hirefire-resource",
     "resource": "Python-1.0.0", "level": "ERROR",
     "timestamp": "2026-01-01T00:00:00.000000Z"}

Only the ``hirefire_resource`` logger is configured.  The host's root
logger and its global structlog configuration are left alone, so the
agent can be dropped into an application that already has its own
logging setup.  Standard library records emitted below
``hirefire_resource`` (e.g. ``hirefire_resource.macro``) share the same
JSON output.
"""

import logging
import sys
import typing

import structlog

import hirefire_resource.settings
import hirefire_resource.version

if typing.TYPE_CHECKING:
    import hirefire_resource.configuration

LOGGER_NAME = "hirefire_resource"
SERVICE_NAME = "hirefire-resource"


def _add_agent_identity(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Tag every entry with the service name and the resource identity sent to HireFire."""
    event_dict["service_name"] = SERVICE_NAME
    event_dict["resource"] = hirefire_resource.version.RESOURCE_IDENTITY
    return event_dict


def _uppercase_level(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    if "level" in event_dict:
        event_dict["level"] = event_dict["level"].upper()
    return event_dict


_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    _add_agent_identity,
    structlog.stdlib.add_log_level,
    _uppercase_level,
    structlog.processors.TimeStamper(fmt="iso", utc=True),
]


def configure_logging(
    log_level: str | None = None,
    configuration: "hirefire_resource.configuration.Configuration | None" = None,
) -> structlog.stdlib.BoundLogger:
    """
    Set up JSON logging for the agent and return the agent logger.

    Args:
        log_level: Minimum level name.  Defaults to HIREFIRE_LOG_LEVEL
            (INFO when unset).  Unknown names fall back to INFO.
        configuration: When given, its ``logger`` is replaced with the
            returned logger so that every agent event is rendered as JSON.

    Calling it again replaces the previous handler rather than adding a
    second one.
    """
    if log_level is None:
        log_level = hirefire_resource.settings.HireFireSettings().log_level
    level = getattr(logging, log_level.upper(), logging.INFO)
    if not isinstance(level, int):
        level = logging.INFO

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=_SHARED_PROCESSORS,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    agent_stdlib_logger = logging.getLogger(LOGGER_NAME)
    agent_stdlib_logger.handlers.clear()
    agent_stdlib_logger.addHandler(handler)
    agent_stdlib_logger.setLevel(level)
    # Agent records are rendered here; the host's root handlers never see them.
    agent_stdlib_logger.propagate = False

    agent_logger = structlog.wrap_logger(
        agent_stdlib_logger,
        processors=[
            structlog.stdlib.filter_by_level,
            *_SHARED_PROCESSORS,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
    ).bind()

    if configuration is not None:
        configuration.logger = agent_logger

    return agent_logger
