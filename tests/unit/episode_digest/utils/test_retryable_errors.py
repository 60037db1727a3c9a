"""Unit tests for episode_digest.utils.retryable_errors module."""

from __future__ import annotations

import pytest

from episode_digest.exceptions import ConfigurationError, ProviderError
from episode_digest.utils.retryable_errors import (
    extract_status_code,
    get_retry_reason,
    is_non_retryable_http_error,
    is_retryable_error,
)
from episode_digest.utils.timeout import OperationTimeoutError


class _StatusError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.status_code = status_code


class _Response:
    def __init__(self, status_code):
        self.status_code = status_code


class _ResponseError(Exception):
    def __init__(self, message, status_code):
        super().__init__(message)
        self.response = _Response(status_code)


@pytest.mark.unit
class TestIsRetryableError:
    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_transient_statuses_are_retryable(self, status):
        assert is_retryable_error(ProviderError("boom", status_code=status))

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 422])
    def test_client_statuses_are_not_retryable(self, status):
        assert not is_retryable_error(ProviderError("boom", status_code=status))

    def test_configuration_error_is_never_retried(self):
        error = ConfigurationError("missing key", provider="Deepgram", config_key="deepgram_api_key")
        assert not is_retryable_error(error)

    def test_timeout_is_retryable(self):
        assert is_retryable_error(OperationTimeoutError("voxtral transcription", 90))

    def test_sdk_error_status_attribute(self):
        assert is_retryable_error(_StatusError("overloaded", 529))
        assert not is_retryable_error(_StatusError("invalid request", 400))

    def test_connection_errors_by_message(self):
        assert is_retryable_error(RuntimeError("Connection reset by peer"))
        assert is_retryable_error(RuntimeError("Rate limit reached"))

    def test_provider_error_without_status_is_retryable(self):
        assert is_retryable_error(ProviderError("network hiccup"))

    def test_unknown_error_is_not_retried(self):
        assert not is_retryable_error(KeyError("speaker"))


@pytest.mark.unit
class TestStatusHelpers:
    def test_extract_status_code_from_response(self):
        assert extract_status_code(_ResponseError("bad", 404)) == 404

    def test_extract_status_code_missing(self):
        assert extract_status_code(ValueError("nope")) is None

    def test_non_retryable_http_error(self):
        assert is_non_retryable_http_error(_StatusError("bad", 401))
        assert not is_non_retryable_http_error(_StatusError("slow down", 429))
        assert is_non_retryable_http_error(RuntimeError("403 Forbidden"))

    def test_retry_reason(self):
        assert get_retry_reason(ProviderError("x", status_code=503)) == "503"
        assert get_retry_reason(RuntimeError("request timed out")) == "timeout"
        assert get_retry_reason(RuntimeError("connection refused")) == "connection_error"
        assert get_retry_reason(KeyError("x")) == "KeyError"
