"""Tests for hirefire_resource/models.py — request and response Pydantic models."""

import pytest

import hirefire_resource.models


class TestRequestInfo:
    def test_defaults(self) -> None:
        request_info = hirefire_resource.models.RequestInfo(path="/")
        assert request_info.request_start_time is None
        assert request_info.token is None

    @pytest.mark.parametrize(
        ("raw_value", "expected"),
        [
            (1700000000123, 1700000000123),
            ("1700000000123", 1700000000123),
            (" 1700000000123 ", 1700000000123),
            ("1700000000123.7", 1700000000123),
            (b"1700000000123", 1700000000123),
            ("t=1700000000123", None),
            ("", None),
            ("not-a-number", None),
            ("inf", None),
            (True, None),
            (None, None),
        ],
    )
    def test_request_start_time_parsing(self, raw_value, expected) -> None:
        request_info = hirefire_resource.models.RequestInfo(path="/", request_start_time=raw_value)
        assert request_info.request_start_time == expected


class TestHireFireResponse:
    def test_body_serialises_as_name_value_pairs(self) -> None:
        response = hirefire_resource.models.HireFireResponse(
            status=200,
            headers={"Content-Type": "application/json"},
            body=[
                hirefire_resource.models.WorkerMetric(name="worker", value=5),
                hirefire_resource.models.WorkerMetric(name="mailer", value=1.5),
            ],
        )

        assert [metric.model_dump() for metric in response.body] == [
            {"name": "worker", "value": 5},
            {"name": "mailer", "value": 1.5},
        ]
