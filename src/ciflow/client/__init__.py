"""HTTP access to a Cloud Integration tenant."""

from ciflow.client.api import IntegrationClient
from ciflow.client.session import (
    ClientCredentialsAuth,
    SessionContext,
    build_session,
    fetch_session_context,
)

__all__ = [
    "ClientCredentialsAuth",
    "IntegrationClient",
    "SessionContext",
    "build_session",
    "fetch_session_context",
]
