"""Error taxonomy and the classifier for non-2xx service responses."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import TYPE_CHECKING

import requests

if TYPE_CHECKING:
    from requests import Response

logger = logging.getLogger(__name__)

_MAX_ERROR_BODY_BYTES = 64 * 1024


class CIFlowError(Exception):
    """Base class for every error raised by ciflow."""


class ConfigurationError(CIFlowError):
    """Raised when the configuration file or a tenant entry is unusable."""


class ConnectionFailedError(CIFlowError):
    """Raised when a request never received a response (DNS, refused, timeout)."""


class ResponseReadError(CIFlowError):
    """Raised when a response body could not be read."""


class ArchiveError(CIFlowError):
    """Raised when a flow archive cannot be extracted, rewritten or repacked."""


class RemoteServiceError(CIFlowError):
    """A response from the remote service with a status outside [200, 300).

    The body is kept verbatim so callers can show the service's own error
    payload; it is never parsed here.
    """

    reason = "invalid server response"

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"{self.reason}: {body}")
        self.status_code = status_code
        self.body = body


class NotFoundError(RemoteServiceError):
    """The remote service answered 404."""

    reason = "not found"


class InvalidResponseError(RemoteServiceError):
    """The remote service answered with any other non-2xx status, or with a
    2xx body that is not the expected JSON envelope.
    """


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def _read_body(response: Response, limit: int = _MAX_ERROR_BODY_BYTES) -> str:
    chunks: list[bytes] = []
    size = 0
    try:
        for chunk in response.iter_content(chunk_size=8192):
            chunks.append(chunk)
            size += len(chunk)
            if size >= limit:
                break
    except requests.RequestException as exc:
        raise ResponseReadError(f"cannot read body: {exc}") from exc

    body = b"".join(chunks)[:limit]
    encoding = response.encoding or "utf-8"
    return body.decode(encoding, errors="replace")


def classify_response(response: Response) -> RemoteServiceError:
    """Map a non-2xx response to NotFoundError or InvalidResponseError."""
    body = _read_body(response)
    if response.status_code == HTTPStatus.NOT_FOUND:
        return NotFoundError(response.status_code, body)
    return InvalidResponseError(response.status_code, body)


def raise_for_response(response: Response) -> None:
    """Raise the classified error when *response* is not a 2xx response."""
    if is_success(response.status_code):
        return

    error = classify_response(response)
    logger.debug(
        "%s %s returned %d",
        response.request.method if response.request is not None else "?",
        response.url,
        response.status_code,
    )
    raise error
