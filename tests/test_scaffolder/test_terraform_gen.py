"""Tests for Terraform generation (platformgen.scaffolder.terraform_gen).

Covers:
- Module wiring: every module input the root wires exists, and every
  network output it reads is declared (scenario: EKS subnet_ids)
- Every .tf / .tfvars file parses as HCL
- Provider selection, backends and per-environment tfvars
- Every artifact is marked cloud-specific
"""

from __future__ import annotations

import re

import hcl2
import pytest

from platformgen.config import Environment
from platformgen.scaffolder.terraform_gen import TERRAFORM_DIR, TerraformGenerator, module_dir

pytestmark = pytest.mark.unit


def unquote(value):
    """Newer python-hcl2 releases keep the quotes around string literals."""
    if isinstance(value, str):
        return value.strip('"')
    return value


def expression(value: str) -> str:
    """``${module.a.b}`` (python-hcl2) -> ``module.a.b``."""
    match = re.fullmatch(r"\$\{(.*)\}", value.strip())
    return match.group(1) if match else value


def attributes(body: dict) -> dict:
    """Drop the ``__is_block__``-style markers python-hcl2 7+ adds to block bodies."""
    return {key: value for key, value in body.items() if not key.startswith("__")}


def blocks(parsed: dict, kind: str) -> dict[str, dict]:
    """Flatten ``{"module": [{"a": {...}}, ...]}`` into ``{"a": {...}}``."""
    flattened: dict[str, dict] = {}
    for entry in parsed.get(kind, []):
        for label, body in attributes(entry).items():
            flattened[unquote(label)] = attributes(body)
    return flattened


@pytest.fixture
def aws(stage, k8s_config):
    return stage(TerraformGenerator, k8s_config)


# ---------------------------------------------------------------------------
# Scenario: cross-module wiring
# ---------------------------------------------------------------------------


class TestModuleWiring:
    def test_eks_subnet_ids_reference_network_output(self, aws):
        root = hcl2.loads(aws.text(f"{TERRAFORM_DIR}/main.tf"))
        cluster = blocks(root, "module")["aws_kubernetes"]
        reference = expression(cluster["subnet_ids"])

        network_outputs = blocks(
            hcl2.loads(aws.text(f"{module_dir('aws', 'network')}/outputs.tf")), "output"
        )
        module, instance, output = reference.split(".")
        assert module == "module"
        assert instance == "aws_network"
        assert output == "private_subnet_ids"
        assert output in network_outputs

    def test_every_wired_input_is_a_module_variable(self, aws):
        root = blocks(hcl2.loads(aws.text(f"{TERRAFORM_DIR}/main.tf")), "module")
        for instance, arguments in root.items():
            provider, component = instance.split("_", 1)
            variables = blocks(
                hcl2.loads(aws.text(f"{module_dir(provider, component)}/variables.tf")),
                "variable",
            )
            for argument in arguments:
                if argument == "source":
                    continue
                assert argument in variables, f"{instance}.{argument} is not a module variable"

    def test_every_module_reference_resolves(self, aws):
        main = aws.text(f"{TERRAFORM_DIR}/main.tf")
        for instance, output in re.findall(r"module\.(\w+)\.(\w+)", main):
            provider, component = instance.split("_", 1)
            outputs = blocks(
                hcl2.loads(aws.text(f"{module_dir(provider, component)}/outputs.tf")), "output"
            )
            assert output in outputs

    def test_required_variables_are_set(self, aws):
        root = blocks(hcl2.loads(aws.text(f"{TERRAFORM_DIR}/main.tf")), "module")
        for instance, arguments in root.items():
            provider, component = instance.split("_", 1)
            variables = blocks(
                hcl2.loads(aws.text(f"{module_dir(provider, component)}/variables.tf")),
                "variable",
            )
            for name, body in variables.items():
                if "default" not in body:
                    assert name in arguments, f"{instance} is missing required input {name}"

    def test_root_outputs_read_module_outputs(self, aws):
        outputs = blocks(hcl2.loads(aws.text(f"{TERRAFORM_DIR}/outputs.tf")), "output")
        assert "aws_network_private_subnet_ids" in outputs
        value = expression(outputs["aws_network_private_subnet_ids"]["value"])
        assert value == "module.aws_network.private_subnet_ids"


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


class TestHclRoundTrip:
    @pytest.mark.parametrize("cloud", ["aws", "gcp", "azure", "all"])
    def test_every_file_parses(self, stage, make_config, cloud: str):
        staged = stage(TerraformGenerator, make_config(kubernetes=True, cloud=cloud))
        assert staged
        for path, artifact in staged.items():
            assert path.endswith((".tf", ".tfvars"))
            hcl2.loads(artifact.rendered)

    def test_every_artifact_is_cloud_specific(self, aws):
        assert all(artifact.cloud_specific for artifact in aws.values())


# ---------------------------------------------------------------------------
# Providers and environments
# ---------------------------------------------------------------------------


class TestProviders:
    def test_no_cloud_no_terraform(self, stage, make_config):
        assert stage(TerraformGenerator, make_config(cloud="none")) == {}

    def test_components_without_kubernetes(self, stage, make_config):
        staged = stage(TerraformGenerator, make_config(cloud="gcp"))
        assert f"{module_dir('gcp', 'network')}/main.tf" in staged
        assert f"{module_dir('gcp', 'database')}/main.tf" in staged
        assert not any("/kubernetes/" in path for path in staged)
        assert "node_max_count" not in staged.text(
            f"{TERRAFORM_DIR}/environments/production/terraform.tfvars"
        )

    def test_all_clouds(self, stage, make_config):
        staged = stage(TerraformGenerator, make_config(kubernetes=True, cloud="all"))
        modules = blocks(hcl2.loads(staged.text(f"{TERRAFORM_DIR}/main.tf")), "module")
        for provider in ("aws", "gcp", "azure"):
            for component in ("network", "kubernetes", "database", "cache"):
                assert f"{provider}_{component}" in modules

    def test_versions_pin_providers_and_backend(self, aws):
        versions = aws.text(f"{TERRAFORM_DIR}/versions.tf")
        assert 'source  = "hashicorp/aws"' in versions
        assert 'backend "s3" {}' in versions
        assert 'required_version = ">= 1.5.0"' in versions

    @pytest.mark.parametrize("cloud, backend", [("aws", "s3"), ("gcp", "gcs")])
    def test_backend_config_per_environment(self, stage, make_config, cloud: str, backend: str):
        staged = stage(TerraformGenerator, make_config(cloud=cloud))
        for env in Environment:
            parsed = hcl2.loads(
                staged.text(f"{TERRAFORM_DIR}/environments/{env.value}/backend.tfvars")
            )
            assert unquote(parsed["bucket"]) == "acme-terraform-state"
            if backend == "s3":
                assert unquote(parsed["key"]) == f"{env.value}/terraform.tfstate"
                assert unquote(parsed["dynamodb_table"]) == "acme-terraform-locks"
            else:
                assert unquote(parsed["prefix"]) == env.value

    def test_environment_sizing(self, aws):
        dev = hcl2.loads(aws.text(f"{TERRAFORM_DIR}/environments/development/terraform.tfvars"))
        prod = hcl2.loads(aws.text(f"{TERRAFORM_DIR}/environments/production/terraform.tfvars"))
        assert unquote(dev["environment"]) == "development"
        assert dev["deletion_protection"] is False
        assert prod["deletion_protection"] is True
        assert prod["node_max_count"] > dev["node_max_count"]

    def test_environment_validation(self, aws):
        variables = aws.text(f"{TERRAFORM_DIR}/variables.tf")
        assert 'contains(["development", "staging", "production"], var.environment)' in variables

    def test_azure_names_come_from_the_registry(self, stage, make_config):
        staged = stage(TerraformGenerator, make_config(cloud="azure"))
        main = staged.text(f"{TERRAFORM_DIR}/main.tf")
        assert "var.azure_resource_group_name" in main
        assert "-rg" not in main
        assert "azure_resource_group_name" in blocks(
            hcl2.loads(staged.text(f"{TERRAFORM_DIR}/variables.tf")), "variable"
        )
        for env in Environment:
            tfvars = hcl2.loads(
                staged.text(f"{TERRAFORM_DIR}/environments/{env.value}/terraform.tfvars")
            )
            assert unquote(tfvars["azure_resource_group_name"]) == f"acme-{env.value}-rg"
            backend = hcl2.loads(
                staged.text(f"{TERRAFORM_DIR}/environments/{env.value}/backend.tfvars")
            )
            assert unquote(backend["resource_group_name"]) == "acme-tfstate"

    def test_gcp_project_per_environment(self, stage, make_config):
        staged = stage(TerraformGenerator, make_config(cloud="gcp"))
        for env in Environment:
            tfvars = hcl2.loads(
                staged.text(f"{TERRAFORM_DIR}/environments/{env.value}/terraform.tfvars")
            )
            assert unquote(tfvars["gcp_project_id"]) == f"acme-{env.value}"
