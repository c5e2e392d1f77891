"""Tests for openspec_sync.core.jira.http retry policy."""

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from unittest.mock import MagicMock, patch

import httpx
import pytest

from openspec_sync.core.jira.http import (
    MAX_RETRY_AFTER,
    RetryPolicy,
    is_retryable_error,
    retry_after_seconds,
    with_retry,
)


def _status_error(code: int, headers: dict[str, str] | None = None) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://acme.atlassian.net/rest/api/3/issue/ABC-1")
    response = httpx.Response(code, request=request, headers=headers)
    return httpx.HTTPStatusError(f"HTTP {code}", request=request, response=response)


class TestRetryAfter:
    """Tests for reading the Retry-After header."""

    def test_seconds(self) -> None:
        assert retry_after_seconds(httpx.Response(429, headers={"Retry-After": "12"})) == 12.0

    def test_http_date(self) -> None:
        when = datetime.now(timezone.utc) + timedelta(seconds=30)
        response = httpx.Response(429, headers={"Retry-After": format_datetime(when, usegmt=True)})

        assert 25.0 <= retry_after_seconds(response) <= 30.0

    def test_date_in_the_past_means_now(self) -> None:
        response = httpx.Response(429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"})
        assert retry_after_seconds(response) == 0.0

    @pytest.mark.parametrize("value", [None, "", "soon"])
    def test_missing_or_unreadable(self, value: str | None) -> None:
        headers = {"Retry-After": value} if value is not None else {}
        assert retry_after_seconds(httpx.Response(429, headers=headers)) is None


class TestRetryPolicy:
    """Tests for RetryPolicy validation and waits."""

    def test_defaults(self) -> None:
        policy = RetryPolicy()
        assert policy.max_retries == 3
        assert policy.base_delay == 1.0
        assert policy.max_delay == MAX_RETRY_AFTER

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_retries": -1},
            {"base_delay": 0},
            {"multiplier": 0.5},
            {"max_delay": 0.5},
            {"jitter_ratio": 1.5},
        ],
    )
    def test_invalid_values(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)

    def test_backoff_without_jitter(self) -> None:
        policy = RetryPolicy(jitter_ratio=0.0, max_delay=5.0)
        assert [policy.backoff(i) for i in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_jitter_stays_in_range(self) -> None:
        policy = RetryPolicy(jitter_ratio=0.2)
        for _ in range(50):
            assert 0.8 <= policy.backoff(0) <= 1.2

    def test_retry_after_replaces_backoff(self) -> None:
        policy = RetryPolicy(jitter_ratio=0.0)
        assert policy.delay_for(_status_error(429, {"Retry-After": "9"}), attempt=0) == 9.0

    def test_retry_after_is_capped(self) -> None:
        policy = RetryPolicy(max_delay=10.0)
        assert policy.delay_for(_status_error(429, {"Retry-After": "3600"}), attempt=0) == 10.0

    def test_no_hint_falls_back_to_backoff(self) -> None:
        policy = RetryPolicy(jitter_ratio=0.0)
        assert policy.delay_for(_status_error(503), attempt=2) == 4.0


class TestIsRetryableError:
    """Tests for is_retryable_error classification."""

    @pytest.mark.parametrize("code", [429, 500, 502, 503, 504])
    def test_rate_limit_and_server_errors_retryable(self, code: int) -> None:
        assert is_retryable_error(_status_error(code)) is True

    @pytest.mark.parametrize("code", [400, 401, 403, 404, 413])
    def test_client_errors_not_retryable(self, code: int) -> None:
        assert is_retryable_error(_status_error(code)) is False

    def test_transport_errors_retryable(self) -> None:
        assert is_retryable_error(httpx.ConnectError("refused")) is True
        assert is_retryable_error(httpx.ReadTimeout("slow")) is True

    def test_other_exceptions_not_retryable(self) -> None:
        assert is_retryable_error(ValueError("bad json")) is False


class TestWithRetry:
    """Tests for the with_retry decorator."""

    @patch("openspec_sync.core.jira.http.time.sleep")
    def test_success_first_try(self, mock_sleep: MagicMock) -> None:
        func = MagicMock(return_value="ok", __name__="func")
        assert with_retry()(func)() == "ok"
        assert func.call_count == 1
        mock_sleep.assert_not_called()

    @patch("openspec_sync.core.jira.http.time.sleep")
    def test_retries_transient_then_succeeds(self, mock_sleep: MagicMock) -> None:
        func = MagicMock(side_effect=[_status_error(503), httpx.ConnectError("x"), "ok"], __name__="func")
        wrapped = with_retry(RetryPolicy(jitter_ratio=0.0))(func)

        assert wrapped() == "ok"
        assert func.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    @patch("openspec_sync.core.jira.http.time.sleep")
    def test_rate_limit_waits_as_told(self, mock_sleep: MagicMock) -> None:
        func = MagicMock(
            side_effect=[_status_error(429, {"Retry-After": "5"}), _status_error(429, {"Retry-After": "2"}), "ok"],
            __name__="func",
        )

        assert with_retry(RetryPolicy(jitter_ratio=0.0))(func)() == "ok"
        assert [c.args[0] for c in mock_sleep.call_args_list] == [5.0, 2.0]

    @patch("openspec_sync.core.jira.http.time.sleep")
    def test_gives_up_after_max_retries(self, mock_sleep: MagicMock) -> None:
        func = MagicMock(side_effect=_status_error(429), __name__="func")
        wrapped = with_retry(RetryPolicy(max_retries=2, jitter_ratio=0.0))(func)

        with pytest.raises(httpx.HTTPStatusError):
            wrapped()
        assert func.call_count == 3
        assert mock_sleep.call_count == 2

    @patch("openspec_sync.core.jira.http.time.sleep")
    def test_client_error_not_retried(self, mock_sleep: MagicMock) -> None:
        func = MagicMock(side_effect=_status_error(404), __name__="func")

        with pytest.raises(httpx.HTTPStatusError):
            with_retry()(func)()
        assert func.call_count == 1
        mock_sleep.assert_not_called()

    @patch("openspec_sync.core.jira.http.time.sleep")
    def test_zero_retries(self, mock_sleep: MagicMock) -> None:
        func = MagicMock(side_effect=httpx.ConnectError("down"), __name__="func")

        with pytest.raises(httpx.ConnectError):
            with_retry(RetryPolicy(max_retries=0))(func)()
        assert func.call_count == 1
        mock_sleep.assert_not_called()
