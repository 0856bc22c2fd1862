"""Tests for hirefire_resource/exceptions.py — custom exception classes."""

import hirefire_resource.exceptions


class TestHireFireErrorBase:

    def test_all_exceptions_inherit_from_hirefire_error(self):
        for exc_cls in (
            hirefire_resource.exceptions.DispatchError,
            hirefire_resource.exceptions.InvalidDynoNameError,
            hirefire_resource.exceptions.MissingDynoFnError,
            hirefire_resource.exceptions.MissingQueueError,
            hirefire_resource.exceptions.JobQueueLatencyUnsupportedError,
        ):
            assert issubclass(exc_cls, hirefire_resource.exceptions.HireFireError)


class TestDispatchError:

    def test_default_message_and_kind(self):
        exc = hirefire_resource.exceptions.DispatchError()
        assert exc.detail == "Unable to dispatch web metrics."
        assert exc.kind is hirefire_resource.exceptions.DispatchErrorKind.NETWORK

    def test_custom_message_and_kind(self):
        exc = hirefire_resource.exceptions.DispatchError(
            "Request timed out.",
            kind=hirefire_resource.exceptions.DispatchErrorKind.TIMEOUT,
        )
        assert exc.detail == "Request timed out."
        assert str(exc) == "Request timed out."
        assert exc.kind is hirefire_resource.exceptions.DispatchErrorKind.TIMEOUT

    def test_kinds_are_a_closed_set(self):
        assert {kind.value for kind in hirefire_resource.exceptions.DispatchErrorKind} == {
            "configuration",
            "timeout",
            "server_error",
            "unexpected_status",
            "network",
        }


class TestMissingQueueError:

    def test_default_message(self):
        exc = hirefire_resource.exceptions.MissingQueueError()
        assert exc.detail == "No queue was specified. Please specify at least one queue."


class TestJobQueueLatencyUnsupportedError:

    def test_message_names_the_library(self):
        exc = hirefire_resource.exceptions.JobQueueLatencyUnsupportedError("BullMQ")
        assert str(exc) == "BullMQ currently does not support job queue latency measurements."
