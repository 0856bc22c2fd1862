"""
Example host application for the HireFire resource agent.

Builds a minimal FastAPI application with request queue time collection
enabled and a single worker metric, then serves it with Uvicorn when
executed directly.  Set HIREFIRE_TOKEN before starting it.
"""

import fastapi
import uvicorn

import hirefire_resource.configuration
import hirefire_resource.hirefire
import hirefire_resource.lifespan
import hirefire_resource.logging_config
import hirefire_resource.middleware


def configure_dynos(configuration: hirefire_resource.configuration.Configuration) -> None:
    configuration.dyno("web")
    configuration.dyno("worker", lambda: 0)


def create_application() -> fastapi.FastAPI:
    hirefire_resource.hirefire.hirefire_instance.configure(configure_dynos)
    hirefire_resource.logging_config.configure_logging(
        configuration=hirefire_resource.hirefire.hirefire_instance.configuration,
    )

    fastapi_application = fastapi.FastAPI(
        title="HireFire Resource Example",
        lifespan=hirefire_resource.lifespan.hirefire_lifespan,
    )
    fastapi_application.add_middleware(hirefire_resource.middleware.HireFireMiddleware)

    @fastapi_application.get("/")
    async def index() -> dict[str, str]:
        return {"status": "ok"}

    return fastapi_application


if __name__ == "__main__":
    uvicorn.run(create_application(), host="127.0.0.1", port=8000)
