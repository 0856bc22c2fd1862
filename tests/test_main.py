"""Tests for main.py — the example host application."""

import logging

import fastapi
import structlog

import hirefire_resource.configuration
import hirefire_resource.hirefire
import hirefire_resource.logging_config
import hirefire_resource.middleware
import main


class TestConfigureDynos:
    def test_registers_web_and_worker(self):
        configuration = hirefire_resource.configuration.Configuration()

        main.configure_dynos(configuration)

        assert configuration.web is not None
        assert [worker.name for worker in configuration.workers] == ["worker"]


class TestCreateApplication:
    def teardown_method(self):
        agent_stdlib_logger = logging.getLogger(hirefire_resource.logging_config.LOGGER_NAME)
        agent_stdlib_logger.handlers.clear()
        agent_stdlib_logger.propagate = True

    def test_application_has_hirefire_middleware(self, monkeypatch):
        monkeypatch.setattr(
            hirefire_resource.hirefire, "hirefire_instance", hirefire_resource.hirefire.HireFire()
        )

        fastapi_application = main.create_application()

        assert isinstance(fastapi_application, fastapi.FastAPI)
        assert any(
            middleware.cls is hirefire_resource.middleware.HireFireMiddleware
            for middleware in fastapi_application.user_middleware
        )
        configuration = hirefire_resource.hirefire.hirefire_instance.configuration
        assert configuration.web is not None
        assert isinstance(configuration.logger, structlog.stdlib.BoundLogger)
