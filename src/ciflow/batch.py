"""Builder for OData ``$batch`` request bodies.

The service has no multi-parameter update, so configuration parameters are
sent as ``PUT`` operations inside one changeset of a ``multipart/mixed``
batch. Its parser is strict about the framing: boundaries, the
``Content-Transfer-Encoding:binary`` header (no space) and the blank lines
all have to be exactly as written below.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from ciflow.models.configuration import ConfigurationParameter
from ciflow.models.flow import ACTIVE_VERSION
from ciflow.models.odata import quote_literal

CRLF = "\r\n"
BATCH_BOUNDARY = "batch_request"
CHANGESET_BOUNDARY = "changeset_abc"


@dataclass(frozen=True)
class BatchOperation:
    """One sub-request of a changeset; *path* is relative to the API root."""

    method: str
    path: str
    body: dict[str, Any] = field(default_factory=dict)


def _render_json_body(body: dict[str, Any]) -> str:
    members = [f"{json.dumps(k)}: {json.dumps(v)}" for k, v in body.items()]
    return "{" + CRLF + ("," + CRLF).join(members) + CRLF + "}"


class BatchRequestBuilder:
    """Collects operations in order and serializes them into one changeset."""

    def __init__(
        self,
        batch_boundary: str = BATCH_BOUNDARY,
        changeset_boundary: str = CHANGESET_BOUNDARY,
    ) -> None:
        self.batch_boundary = batch_boundary
        self.changeset_boundary = changeset_boundary
        self._operations: list[BatchOperation] = []

    def add(self, method: str, path: str, body: dict[str, Any]) -> BatchRequestBuilder:
        self._operations.append(BatchOperation(method.upper(), path, body))
        return self

    @property
    def operations(self) -> list[BatchOperation]:
        return list(self._operations)

    @property
    def content_type(self) -> str:
        """Value of the outer request's ``Content-Type`` header."""
        return f"multipart/mixed; boundary={self.batch_boundary}"

    def __len__(self) -> int:
        return len(self._operations)

    def _render_operation(self, op: BatchOperation) -> str:
        return (
            f"--{self.changeset_boundary}{CRLF}"
            f"Content-Type: application/http{CRLF}"
            f"Content-Transfer-Encoding:binary{CRLF}"
            f"{CRLF}"
            f"{op.method} {op.path} HTTP/1.1{CRLF}"
            f"Accept: application/json{CRLF}"
            f"Content-Type: application/json{CRLF}"
            f"{CRLF}"
            f"{_render_json_body(op.body)}{CRLF}"
            f"{CRLF}"
        )

    def build(self) -> str:
        head = (
            f"--{self.batch_boundary}{CRLF}"
            f"Content-Type: multipart/mixed; boundary={self.changeset_boundary}{CRLF}"
            f"{CRLF}"
        )
        parts = "".join(self._render_operation(op) for op in self._operations)
        tail = (
            f"--{self.changeset_boundary}--{CRLF}"
            f"{CRLF}"
            f"--{self.batch_boundary}--"
        )
        return head + parts + tail


def configuration_path(flow_id: str, key: str, version: str = ACTIVE_VERSION) -> str:
    """Relative path addressing one configuration parameter of a flow."""
    return (
        f"IntegrationDesigntimeArtifacts(Id={quote_literal(flow_id)},"
        f"Version={quote_literal(version)})"
        f"/$links/Configurations({quote_literal(key)})"
    )


def build_configuration_batch(
    flow_id: str,
    parameters: list[ConfigurationParameter],
    version: str = ACTIVE_VERSION,
) -> BatchRequestBuilder:
    """One ``PUT`` per parameter, in the given order."""
    builder = BatchRequestBuilder()
    for param in parameters:
        builder.add("PUT", configuration_path(flow_id, param.key, version), param.update_body())
    return builder
