"""Integration tests for the ``ciflow`` command line, driven with CliRunner."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner, Result

from ciflow.cli import cli
from ciflow.config import ConfigurationFile
from fakes import FakeTenant, artifact_entity, artifact_path, build_flow_archive, echo_created, make_tenant_config

pytestmark = pytest.mark.integration


@pytest.fixture()
def config_path(tmp_path: Path, fake_tenant: FakeTenant, second_tenant: FakeTenant) -> Path:
    """Configuration with ``dev`` (active) and ``qa`` pointing at the fake tenants."""
    config = ConfigurationFile(
        active_tenant_key="dev",
        tenants=(make_tenant_config("dev", fake_tenant), make_tenant_config("qa", second_tenant)),
    )
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config.to_dict()), encoding="utf-8")
    return path


@pytest.fixture()
def run(config_path: Path):
    runner = CliRunner()

    def _run(*args: str) -> Result:
        return runner.invoke(cli, ["--config", str(config_path), *args])

    return _run


# =========================================================================
# Packages
# =========================================================================


class TestPackageCommands:
    """Tests for ``ciflow package ...``."""

    def test_ls_lists_packages(self, run, fake_tenant: FakeTenant) -> None:
        fake_tenant.route(
            "GET",
            "/IntegrationPackages",
            {"d": {"results": [{"Id": "POscenario", "Name": "Orders", "Version": "1.0.0", "Mode": "EDIT"}]}},
        )
        result = run("package", "ls")
        assert result.exit_code == 0, result.output
        assert "POscenario" in result.output
        assert "Orders" in result.output

    def test_ls_with_package_lists_flows(self, run, fake_tenant: FakeTenant) -> None:
        fake_tenant.route(
            "GET",
            "/IntegrationPackages('POscenario')/IntegrationDesigntimeArtifacts",
            {"d": {"results": [artifact_entity("PurchaseOrder")]}},
        )
        result = run("package", "ls", "POscenario")
        assert result.exit_code == 0, result.output
        assert "PurchaseOrder" in result.output

    def test_inspect_prints_json(self, run, fake_tenant: FakeTenant) -> None:
        fake_tenant.route("GET", "/IntegrationPackages('POscenario')", {"d": {"Id": "POscenario"}})
        result = run("package", "inspect", "POscenario")
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["d"]["Id"] == "POscenario"


# =========================================================================
# Flows
# =========================================================================


class TestFlowCommands:
    """Tests for ``ciflow flow ...``."""

    def test_inspect_uses_tenant_option(self, run, second_tenant: FakeTenant) -> None:
        second_tenant.route("GET", artifact_path("PurchaseOrder"), {"d": artifact_entity("PurchaseOrder")})
        result = run("-t", "qa", "flow", "inspect", "PurchaseOrder")
        assert result.exit_code == 0, result.output
        assert '"Id": "PurchaseOrder"' in result.output

    def test_download_writes_file(self, run, fake_tenant: FakeTenant, tmp_path: Path) -> None:
        archive = build_flow_archive("PurchaseOrder")
        fake_tenant.route("GET", artifact_path("PurchaseOrder") + "/$value", archive)
        target = tmp_path / "po.zip"

        result = run("flow", "download", "PurchaseOrder", "-o", str(target))

        assert result.exit_code == 0, result.output
        assert target.read_bytes() == archive
        assert f"number of bytes: {len(archive)}" in result.output

    def test_download_refuses_to_overwrite(self, run, fake_tenant: FakeTenant, tmp_path: Path) -> None:
        fake_tenant.route("GET", artifact_path("PurchaseOrder") + "/$value", b"new")
        target = tmp_path / "po.zip"
        target.write_bytes(b"old")

        result = run("flow", "download", "PurchaseOrder", "-o", str(target))

        assert result.exit_code == 1
        assert "File exists" in result.output
        assert target.read_bytes() == b"old"

    def test_failed_download_leaves_no_file(self, run, tmp_path: Path) -> None:
        target = tmp_path / "missing.zip"
        result = run("flow", "download", "Missing", "-o", str(target))
        assert result.exit_code == 1
        assert "not found" in result.output
        assert not target.exists()

    def test_create_with_content(self, run, fake_tenant: FakeTenant, flow_archive_file: Path) -> None:
        fake_tenant.responder("POST", "/IntegrationDesigntimeArtifacts", echo_created)
        result = run(
            "flow", "create", "-n", "Purchase Order", "-i", "PurchaseOrder", "-p", "POscenario",
            "-f", str(flow_archive_file),
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["d"]["Name"] == "Purchase Order"
        assert "ArtifactContent" in fake_tenant.requests_for("POST")[0].json()

    def test_update(self, run, fake_tenant: FakeTenant) -> None:
        fake_tenant.route("PUT", artifact_path("PurchaseOrder"), "")
        result = run("flow", "update", "-n", "Renamed", "-i", "PurchaseOrder")
        assert result.exit_code == 0, result.output
        assert fake_tenant.requests_for("PUT")[0].json() == {"Name": "Renamed"}

    def test_deploy_prints_task_id(self, run, fake_tenant: FakeTenant) -> None:
        fake_tenant.route(
            "POST", "/DeployIntegrationDesigntimeArtifact?Id='PurchaseOrder'&Version='active'", "task-42", status=202
        )
        result = run("flow", "deploy", "PurchaseOrder")
        assert result.exit_code == 0, result.output
        assert "Task ID:\ntask-42" in result.output

    def test_transport_between_tenants(
        self, run, fake_tenant: FakeTenant, second_tenant: FakeTenant
    ) -> None:
        fake_tenant.route("GET", artifact_path("PurchaseOrder"), {"d": artifact_entity("PurchaseOrder")})
        fake_tenant.route("GET", artifact_path("PurchaseOrder") + "/$value", build_flow_archive("PurchaseOrder"))
        second_tenant.responder("POST", "/IntegrationDesigntimeArtifacts", echo_created)

        result = run("flow", "transport", "PurchaseOrder", "PurchaseOrderCopy1", "-d", "qa")

        assert result.exit_code == 0, result.output
        assert "Integration flow created." in result.output
        assert second_tenant.requests_for("POST")[0].json()["Id"] == "PurchaseOrderCopy1"

    def test_transport_strict_failure(
        self, run, fake_tenant: FakeTenant, second_tenant: FakeTenant
    ) -> None:
        fake_tenant.route("GET", artifact_path("PurchaseOrder"), {"d": artifact_entity("PurchaseOrder")})
        fake_tenant.route("GET", artifact_path("PurchaseOrder") + "/$value", build_flow_archive("PurchaseOrder"))
        second_tenant.route("GET", artifact_path("PurchaseOrder"), "forbidden", status=403)

        result = run("flow", "transport", "PurchaseOrder", "PurchaseOrder", "-d", "qa", "--strict")

        assert result.exit_code == 1
        assert "invalid server response: forbidden" in result.output

    def test_copy(self, run, fake_tenant: FakeTenant) -> None:
        fake_tenant.route("GET", artifact_path("PurchaseOrder"), {"d": artifact_entity("PurchaseOrder")})
        fake_tenant.route("GET", artifact_path("PurchaseOrder") + "/$value", build_flow_archive("PurchaseOrder"))
        fake_tenant.responder("POST", "/IntegrationDesigntimeArtifacts", echo_created)

        result = run("flow", "copy", "PurchaseOrder", "PurchaseOrderCopy2", "-n", "PO copy")

        assert result.exit_code == 0, result.output
        assert fake_tenant.requests_for("POST")[0].json()["Name"] == "PO copy"


class TestConfigurationCommands:
    """Tests for describe-configs and update-configs."""

    CONFIGS = {
        "d": {
            "results": [
                {"ParameterKey": "APIKey", "ParameterValue": "abc", "DataType": "xsd:string"},
                {"ParameterKey": "bodySize", "ParameterValue": "105", "DataType": "xsd:integer"},
            ]
        }
    }

    def test_describe_saves_file(self, run, fake_tenant: FakeTenant, tmp_path: Path) -> None:
        fake_tenant.route("GET", artifact_path("PurchaseOrder") + "/Configurations", self.CONFIGS)
        target = tmp_path / "params.json"

        result = run("flow", "describe-configs", "PurchaseOrder", "-o", str(target))

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == self.CONFIGS
        assert json.loads(target.read_text(encoding="utf-8")) == self.CONFIGS

    def test_update_from_options(self, run, fake_tenant: FakeTenant) -> None:
        fake_tenant.route("POST", "/$batch", "batch accepted", status=202)

        result = run(
            "flow", "update-configs", "PurchaseOrder",
            "-p", "Key=APIKey,Value=abc", "-p", "Key=bodySize,Value=105",
        )

        assert result.exit_code == 0, result.output
        assert "batch accepted" in result.output
        body = fake_tenant.requests_for("POST", "/$batch")[0].body.decode()
        assert "Configurations('APIKey')" in body
        assert "Configurations('bodySize')" in body

    def test_update_from_file_without_batch(self, run, fake_tenant: FakeTenant, tmp_path: Path) -> None:
        params = tmp_path / "params.json"
        params.write_text(json.dumps(self.CONFIGS), encoding="utf-8")
        base = artifact_path("PurchaseOrder") + "/$links/Configurations"
        fake_tenant.route("PUT", f"{base}('APIKey')", "")
        fake_tenant.route("PUT", f"{base}('bodySize')", "")

        result = run("flow", "update-configs", "PurchaseOrder", "-f", str(params), "--no-batch")

        assert result.exit_code == 0, result.output
        assert len(fake_tenant.requests_for("PUT")) == 2
        assert fake_tenant.requests_for("POST") == []

    def test_malformed_parameter(self, run, fake_tenant: FakeTenant) -> None:
        result = run("flow", "update-configs", "PurchaseOrder", "-p", "bodySize=105")
        assert result.exit_code == 1
        assert "Key=<key>,Value=<value>" in result.output
        assert fake_tenant.requests == []

    def test_no_parameters(self, run) -> None:
        result = run("flow", "update-configs", "PurchaseOrder")
        assert result.exit_code == 1
        assert "no configuration parameters" in result.output


class TestResourceCommands:
    """Tests for ``ciflow resource update``."""

    def test_update_resource(self, run, fake_tenant: FakeTenant, tmp_path: Path) -> None:
        script = tmp_path / "local.groovy"
        script.write_text("def x = 1\n", encoding="utf-8")
        path = artifact_path("PurchaseOrder") + "/$links/Resources(Name='transform.groovy',ResourceType='groovy')"
        fake_tenant.route("PUT", path, "")

        result = run("resource", "update", "transform.groovy", "-i", "PurchaseOrder", "-f", str(script))

        assert result.exit_code == 0, result.output
        assert len(fake_tenant.requests_for("PUT", path)) == 1


# =========================================================================
# Configuration file handling
# =========================================================================


class TestConfigHandling:
    """Tests for config lookup errors and generate-config."""

    def test_unknown_tenant(self, run) -> None:
        result = run("-t", "prod", "package", "ls")
        assert result.exit_code == 1
        assert "'prod' not found" in result.output

    def test_missing_config_file(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["--config", str(tmp_path / "none.json"), "package", "ls"])
        assert result.exit_code == 1
        assert "error opening config.json" in result.output

    def test_generate_config(self, tmp_path: Path) -> None:
        target = tmp_path / "config.json"
        runner = CliRunner()

        first = runner.invoke(cli, ["generate-config", "-o", str(target)])
        assert first.exit_code == 0, first.output
        assert json.loads(target.read_text(encoding="utf-8"))["ActiveTenantKey"] == "dev"

        second = runner.invoke(cli, ["generate-config", "-o", str(target)])
        assert second.exit_code == 1
        assert "cannot write" in second.output

    def test_version(self) -> None:
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "ciflow" in result.output
