"""
Dyno configuration for the HireFire resource agent.

Applications describe which of their process types HireFire should
autoscale::

    def setup(config):
        config.dyno("web")
        config.dyno("worker", lambda: 42)

    hirefire_resource.hirefire.hirefire_instance.configure(setup)

``dyno("web")`` enables request queue time collection; every other name
registers a worker whose callable reports that process type's job queue
metric through the info endpoint.
"""

import collections.abc
import typing

import structlog

import hirefire_resource.web
import hirefire_resource.worker

WEB_DYNO_NAME = "web"


class Configuration:
    """
    Holds the web dispatcher, the registered workers, and the logger.

    Attributes:
        web: The ``Web`` dispatcher, or ``None`` until ``dyno("web")``
            is called.
        workers: Registered ``Worker`` instances, in registration order.
        logger: A structlog-style logger (event name plus key/value
            context) used for every agent log event.  Replace it to route
            agent logs elsewhere.
    """

    def __init__(self) -> None:
        self.web: hirefire_resource.web.Web | None = None
        self.workers: list[hirefire_resource.worker.Worker] = []
        self.logger: typing.Any = structlog.get_logger("hirefire_resource")

    def dyno(
        self,
        name: str,
        fn: collections.abc.Callable[[], typing.Any] | None = None,
    ) -> None:
        """
        Register a process type.

        Raises:
            hirefire_resource.exceptions.InvalidDynoNameError:
                When a worker name does not match the Procfile naming rules.
            hirefire_resource.exceptions.MissingDynoFnError:
                When a worker is registered without a callable.
        """
        if name == WEB_DYNO_NAME:
            self.web = hirefire_resource.web.Web(self)
        else:
            self.workers.append(hirefire_resource.worker.Worker(name, fn))
