"""
FastAPI lifespan integration.

The web dispatcher starts itself on the first request carrying an
``X-Request-Start`` header, but it has to be stopped by the host.  Pass
``hirefire_lifespan`` to the FastAPI constructor (or enter it from an
existing lifespan) so the dispatch schedule ends cleanly on shutdown::

    fastapi_application = fastapi.FastAPI(
        lifespan=hirefire_resource.lifespan.hirefire_lifespan,
    )
"""

import collections.abc
import contextlib

import fastapi

import hirefire_resource.hirefire


def create_lifespan(
    hirefire: hirefire_resource.hirefire.HireFire | None = None,
) -> collections.abc.Callable[[fastapi.FastAPI], contextlib.AbstractAsyncContextManager[None]]:
    """Build a lifespan bound to ``hirefire`` (the default instance when omitted)."""

    @contextlib.asynccontextmanager
    async def lifespan(
        fastapi_application: fastapi.FastAPI,
    ) -> collections.abc.AsyncIterator[None]:
        configuration = (hirefire or hirefire_resource.hirefire.hirefire_instance).configuration
        configuration.logger.info(
            "hirefire_resource_initialised",
            web_dyno_configured=configuration.web is not None,
            workers=[worker.name for worker in configuration.workers],
        )

        yield

        if configuration.web is not None:
            await configuration.web.stop_dispatcher()

    return lifespan


hirefire_lifespan = create_lifespan()
