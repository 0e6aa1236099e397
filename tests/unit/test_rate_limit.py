"""Tests for rate limiting utilities."""

from __future__ import annotations

from unittest.mock import patch

import garage_operator.utils.rate_limit as rl
from garage_operator.utils.rate_limit import rate_limit_garage, rate_limit_k8s


class TestRateLimitK8s:
    """Test cases for Kubernetes API rate limiting."""

    def test_passes_arguments_and_result(self):
        @rate_limit_k8s
        def read(a, b, c=None):
            return f"{a}-{b}-{c}"

        assert read("x", "y", c="z") == "x-y-z"

    def test_preserves_function_name(self):
        @rate_limit_k8s
        def read_secret():
            return None

        assert read_secret.__name__ == "read_secret"

    @patch("garage_operator.utils.rate_limit.time.sleep")
    def test_sleeps_when_called_too_soon(self, mock_sleep):
        with patch.object(rl, "_K8S_RATE_LIMIT_PER_SECOND", 1.0), patch.object(rl, "_k8s_last_call_time", 0.0):

            @rate_limit_k8s
            def read():
                return "ok"

            with patch("garage_operator.utils.rate_limit.time.time", return_value=10.0):
                read()
            mock_sleep.assert_not_called()

            with patch("garage_operator.utils.rate_limit.time.time", return_value=10.25):
                read()
            mock_sleep.assert_called_once()
            assert abs(mock_sleep.call_args[0][0] - 0.75) < 1e-6

    def test_exceptions_propagate_without_retry(self):
        calls = 0

        @rate_limit_k8s
        def failing():
            nonlocal calls
            calls += 1
            raise RuntimeError("boom")

        try:
            failing()
        except RuntimeError:
            pass
        assert calls == 1


class TestRateLimitGarage:
    """Test cases for Garage Admin API rate limiting."""

    def test_passes_arguments_and_result(self):
        @rate_limit_garage
        def call(x, y):
            return x + y

        assert call(2, 3) == 5

    @patch("garage_operator.utils.rate_limit.time.sleep")
    def test_sleeps_when_called_too_soon(self, mock_sleep):
        with patch.object(rl, "_GARAGE_RATE_LIMIT_PER_SECOND", 2.0), patch.object(rl, "_garage_last_call_time", 0.0):

            @rate_limit_garage
            def call():
                return "ok"

            with patch("garage_operator.utils.rate_limit.time.time", return_value=5.0):
                call()
            with patch("garage_operator.utils.rate_limit.time.time", return_value=5.1):
                call()

            mock_sleep.assert_called_once()
            assert abs(mock_sleep.call_args[0][0] - 0.4) < 1e-6
