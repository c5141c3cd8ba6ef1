"""Tests for error containment utilities."""

import asyncio
import logging
import time
from unittest.mock import MagicMock, patch

import pytest

from chargeamps_sync.error_recovery import ErrorAggregator, guarded_stage
from chargeamps_sync.exceptions import RemoteApiError


class TestErrorAggregator:
    def test_record_error(self) -> None:
        aggregator = ErrorAggregator()
        aggregator.record_error(ValueError("bad"), "CP-1", "status")

        assert len(aggregator.errors) == 1
        error = aggregator.errors[0]
        assert error["error_type"] == "ValueError"
        assert error["message"] == "bad"
        assert error["context"] == "CP-1"
        assert error["operation"] == "status"

    def test_max_errors_limit(self) -> None:
        aggregator = ErrorAggregator(max_errors=3)
        for i in range(5):
            aggregator.record_error(ValueError(f"error {i}"))

        assert len(aggregator.errors) == 3
        assert aggregator.errors[0]["message"] == "error 2"

    def test_summary_groups_by_type(self) -> None:
        aggregator = ErrorAggregator()
        aggregator.record_error(ValueError("a"), operation="status")
        aggregator.record_error(ValueError("b"), operation="charging_info[1]")
        aggregator.record_error(KeyError("c"), operation="status")

        summary = aggregator.get_error_summary()

        assert summary["total_errors"] == 3
        assert summary["error_types"]["ValueError"]["count"] == 2
        assert summary["error_types"]["ValueError"]["operations"] == [
            "status",
            "charging_info[1]",
        ]
        assert summary["error_types"]["KeyError"]["count"] == 1

    def test_summary_time_window(self) -> None:
        aggregator = ErrorAggregator()
        with patch("time.time", return_value=time.time() - 7200):
            aggregator.record_error(ValueError("old"))
        aggregator.record_error(ValueError("new"))

        assert aggregator.get_error_summary(last_minutes=60)["total_errors"] == 1

    def test_log_error_summary(self) -> None:
        aggregator = ErrorAggregator()
        aggregator.logger = MagicMock()

        aggregator.log_error_summary()
        aggregator.logger.info.assert_not_called()

        aggregator.record_error(ValueError("a"), operation="status")
        aggregator.log_error_summary()
        assert aggregator.logger.info.call_count == 2


class TestGuardedStage:
    @pytest.mark.asyncio
    async def test_success_passes_through(self) -> None:
        logger = MagicMock()
        errors = []
        async with guarded_stage("status", logger, errors=errors):
            pass
        assert errors == []
        logger.error.assert_not_called()

    @pytest.mark.asyncio
    async def test_domain_error_is_contained(self) -> None:
        logger = MagicMock()
        aggregator = ErrorAggregator()
        errors = []

        async with guarded_stage("status", logger, aggregator, "CP-1", errors):
            raise RemoteApiError("GET", "/status", 500)

        logger.error.assert_called_once()
        assert aggregator.errors[0]["operation"] == "status"
        assert aggregator.errors[0]["context"] == "CP-1"
        assert errors[0].startswith("status: GET /status failed")

    @pytest.mark.asyncio
    async def test_unexpected_error_is_logged_with_traceback(self) -> None:
        logger = MagicMock()
        errors = []

        async with guarded_stage("light", logger, errors=errors):
            raise KeyError("dimmer")

        logger.exception.assert_called_once()
        assert errors == ["light: KeyError: 'dimmer'"]

    @pytest.mark.asyncio
    async def test_cancellation_is_not_contained(self) -> None:
        with pytest.raises(asyncio.CancelledError):
            async with guarded_stage("status", logging.getLogger("test")):
                raise asyncio.CancelledError()
