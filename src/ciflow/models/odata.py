"""Helpers for the OData v2 JSON envelopes returned by the service."""

from __future__ import annotations

from typing import Any


def unwrap_entity(payload: dict[str, Any]) -> dict[str, Any]:
    """Return the entity from a ``{"d": {...}}`` envelope."""
    entity = payload.get("d") if isinstance(payload, dict) else None
    if not isinstance(entity, dict):
        raise ValueError("response is not an OData entity envelope")
    return entity


def unwrap_results(payload: dict[str, Any]) -> list[dict[str, Any]]:
    """Return the list from a ``{"d": {"results": [...]}}`` envelope."""
    results = unwrap_entity(payload).get("results")
    if not isinstance(results, list):
        raise ValueError("response is not an OData collection envelope")
    return results


def wrap_results(items: list[dict[str, Any]]) -> dict[str, Any]:
    return {"d": {"results": items}}


def quote_literal(value: str) -> str:
    """Quote *value* as an OData string literal (single quotes doubled)."""
    return "'" + value.replace("'", "''") + "'"
