"""Unit tests for response classification."""

from __future__ import annotations

import pytest
import requests

from ciflow.errors import (
    CIFlowError,
    InvalidResponseError,
    NotFoundError,
    RemoteServiceError,
    ResponseReadError,
    classify_response,
    is_success,
    raise_for_response,
)


class _BrokenRaw:
    """Raw stream that fails mid-read."""

    def read(self, *args: object, **kwargs: object) -> bytes:
        raise requests.exceptions.ChunkedEncodingError("connection reset")


def _response(status: int, body: bytes = b"") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = body
    resp._content_consumed = True
    resp.encoding = "utf-8"
    resp.url = "https://tenant.example.com/api/v1/IntegrationPackages"
    return resp


class TestClassifyResponse:
    """Tests for mapping non-2xx responses to error kinds."""

    @pytest.mark.parametrize("status", [200, 201, 202, 204, 299])
    def test_success_range(self, status: int) -> None:
        assert is_success(status)
        raise_for_response(_response(status))

    @pytest.mark.parametrize("status", [199, 300, 304, 400, 500])
    def test_outside_success_range(self, status: int) -> None:
        assert not is_success(status)

    def test_404_is_not_found(self) -> None:
        """404 keeps its status and body."""
        error = classify_response(_response(404, b'{"error":"artifact missing"}'))
        assert isinstance(error, NotFoundError)
        assert error.status_code == 404
        assert error.body == '{"error":"artifact missing"}'
        assert str(error) == 'not found: {"error":"artifact missing"}'

    @pytest.mark.parametrize("status", [301, 400, 401, 403, 409, 500, 503])
    def test_other_statuses_are_invalid_response(self, status: int) -> None:
        error = classify_response(_response(status, b"boom"))
        assert isinstance(error, InvalidResponseError)
        assert not isinstance(error, NotFoundError)
        assert str(error) == "invalid server response: boom"

    def test_raise_for_response(self) -> None:
        with pytest.raises(RemoteServiceError) as excinfo:
            raise_for_response(_response(500, b"internal"))
        assert isinstance(excinfo.value, CIFlowError)
        assert excinfo.value.body == "internal"

    def test_unreadable_body(self) -> None:
        """A body that cannot be read becomes ResponseReadError."""
        resp = requests.Response()
        resp.status_code = 500
        resp.raw = _BrokenRaw()
        with pytest.raises(ResponseReadError, match="cannot read body"):
            raise_for_response(resp)
