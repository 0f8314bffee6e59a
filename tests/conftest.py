"""Shared fixtures for the ciflow test suite.

Provides running fake tenants, tenant configurations that point at them,
and flow archives on disk.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from ciflow.config import TenantConfiguration
from fakes import FakeTenant, build_flow_archive, make_tenant_config


# ---------------------------------------------------------------------------
# Fake tenants
# ---------------------------------------------------------------------------


@pytest.fixture()
def fake_tenant() -> Iterator[FakeTenant]:
    """A running fake tenant, shut down after the test."""
    tenant = FakeTenant().start()
    yield tenant
    tenant.stop()


@pytest.fixture()
def second_tenant() -> Iterator[FakeTenant]:
    """Another fake tenant, used as a transport destination."""
    tenant = FakeTenant().start()
    yield tenant
    tenant.stop()


@pytest.fixture()
def dev_tenant(fake_tenant: FakeTenant) -> TenantConfiguration:
    return make_tenant_config("dev", fake_tenant)


@pytest.fixture()
def qa_tenant(second_tenant: FakeTenant) -> TenantConfiguration:
    return make_tenant_config("qa", second_tenant)


# ---------------------------------------------------------------------------
# Flow archives
# ---------------------------------------------------------------------------


@pytest.fixture()
def flow_archive_factory() -> Callable[[str], bytes]:
    return build_flow_archive


@pytest.fixture()
def flow_archive_file(tmp_path: Path) -> Path:
    """``PurchaseOrder`` archive written to disk."""
    path = tmp_path / "PurchaseOrder.zip"
    path.write_bytes(build_flow_archive("PurchaseOrder"))
    return path


