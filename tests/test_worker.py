"""Tests for hirefire_resource/worker.py."""

import pytest

import hirefire_resource.exceptions
import hirefire_resource.worker


class TestWorkerName:

    @pytest.mark.parametrize(
        "name",
        ["worker", "Worker", "w", "mailer_queue", "mailer-queue", "worker2", "a" * 30],
    )
    def test_valid_names(self, name):
        worker = hirefire_resource.worker.Worker(name, lambda: 0)
        assert worker.name == name

    @pytest.mark.parametrize(
        "name",
        ["", "1worker", "_worker", "-worker", "worker.1", "worker queue", "a" * 31, None],
    )
    def test_invalid_names(self, name):
        with pytest.raises(hirefire_resource.exceptions.InvalidDynoNameError) as raised:
            hirefire_resource.worker.Worker(name, lambda: 0)

        assert "Ensure it matches the Procfile process name (i.e. web, worker)." in raised.value.detail

    def test_missing_fn(self):
        with pytest.raises(hirefire_resource.exceptions.MissingDynoFnError) as raised:
            hirefire_resource.worker.Worker("worker")

        assert "returns the job queue metric" in raised.value.detail

    def test_non_callable_fn(self):
        with pytest.raises(hirefire_resource.exceptions.MissingDynoFnError):
            hirefire_resource.worker.Worker("worker", 42)


class TestWorkerValue:

    async def test_sync_fn(self):
        worker = hirefire_resource.worker.Worker("worker", lambda: 42)
        assert await worker.value() == 42

    async def test_async_fn(self):
        async def measure_queue():
            return 7

        worker = hirefire_resource.worker.Worker("worker", measure_queue)
        assert await worker.value() == 7

    async def test_fn_is_invoked_on_every_call(self):
        calls = []

        def measure_queue():
            calls.append(1)
            return len(calls)

        worker = hirefire_resource.worker.Worker("worker", measure_queue)

        assert await worker.value() == 1
        assert await worker.value() == 2

    async def test_fn_errors_propagate(self):
        def broken_measurement():
            raise ConnectionError("redis down")

        worker = hirefire_resource.worker.Worker("worker", broken_measurement)

        with pytest.raises(ConnectionError):
            await worker.value()
