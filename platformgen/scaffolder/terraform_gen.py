"""Terraform root configuration, environments and per-provider modules."""

from __future__ import annotations

import logging
import re
from typing import Any

from ..artifacts import ArtifactFormat, ArtifactRef
from ..config import Environment
from ..naming import TERRAFORM_COMPONENTS
from .base import ArtifactGenerator
from .hcl import Block, Expr, HclDocument, ref
from .terraform_modules import REQUIRED, TerraformModule, Variable, build_module

logger = logging.getLogger(__name__)

TERRAFORM_DIR = "infrastructure/terraform"

_BACKENDS = {"aws": "s3", "gcp": "gcs", "azure": "azurerm"}

_PROVIDER_SOURCES: dict[str, tuple[str, str, str]] = {
    # local name, source, version constraint
    "aws": ("aws", "hashicorp/aws", "~> 5.0"),
    "gcp": ("google", "hashicorp/google", "~> 5.0"),
    "azure": ("azurerm", "hashicorp/azurerm", "~> 4.0"),
    "tls": ("tls", "hashicorp/tls", "~> 4.0"),
    "random": ("random", "hashicorp/random", "~> 3.6"),
}

# Module input -> network module output feeding it.
_WIRING: dict[str, dict[str, str]] = {
    "kubernetes": {"network_id": "network_id", "subnet_ids": "private_subnet_ids"},
    "database": {"network_id": "network_id", "subnet_ids": "database_subnet_ids"},
    "cache": {"network_id": "network_id", "subnet_ids": "private_subnet_ids"},
}

# Module variables set from the root variable of the same name.
_PASSTHROUGH: tuple[str, ...] = (
    "project_name",
    "environment",
    "vpc_cidr",
    "kubernetes_version",
    "node_desired_count",
    "node_min_count",
    "node_max_count",
    "database_name",
    "deletion_protection",
    "high_availability",
)

_PROVIDER_ARGUMENTS: dict[str, dict[str, Expr]] = {
    "aws": {"tags": Expr("local.tags")},
    "gcp": {
        "project_id": ref("var", "gcp_project_id"),
        "region": ref("var", "gcp_region"),
        "labels": Expr("local.labels"),
    },
    "azure": {
        "resource_group_name": Expr("azurerm_resource_group.main.name"),
        "location": Expr("azurerm_resource_group.main.location"),
        "tags": Expr("local.tags"),
    },
}

_ENVIRONMENT_SIZING: dict[Environment, dict[str, Any]] = {
    Environment.DEVELOPMENT: {
        "vpc_cidr": "10.0.0.0/16",
        "node_desired_count": 1,
        "node_min_count": 1,
        "node_max_count": 3,
        "deletion_protection": False,
        "high_availability": False,
    },
    Environment.STAGING: {
        "vpc_cidr": "10.1.0.0/16",
        "node_desired_count": 2,
        "node_min_count": 2,
        "node_max_count": 5,
        "deletion_protection": False,
        "high_availability": False,
    },
    Environment.PRODUCTION: {
        "vpc_cidr": "10.2.0.0/16",
        "node_desired_count": 3,
        "node_min_count": 3,
        "node_max_count": 10,
        "deletion_protection": True,
        "high_availability": True,
    },
}

_NODE_VARIABLES = ("node_desired_count", "node_min_count", "node_max_count")


def module_dir(provider: str, component: str) -> str:
    return f"{TERRAFORM_DIR}/modules/{provider}/{component}"


class TerraformGenerator(ArtifactGenerator):
    """Stages ``infrastructure/terraform`` for every configured provider.

    Every artifact is marked cloud-specific.  Module instance names, outputs
    and inputs all come from the name registry, so a cluster module's
    ``subnet_ids`` argument always points at an output the network module
    really declares.
    """

    family = "infrastructure"

    def build(self) -> None:
        if not self.config.terraform_enabled:
            return

        modules: dict[str, TerraformModule] = {}
        for provider in self.config.providers:
            for component in self.components:
                module = build_module(self.names, provider, component)
                modules[self.names.resolve(f"tf.module.{provider}.{component}")] = module
                self._stage_module(module)

        self._stage_tf("versions.tf", self._versions(modules))
        self._stage_tf("variables.tf", self._root_variables())
        self._stage_tf("main.tf", self._main(modules), depends_on=self._wiring_refs(modules))
        self._stage_tf(
            "outputs.tf",
            self._outputs(modules),
            depends_on=[
                ArtifactRef(path=f"{module_dir(m.provider, m.component)}/outputs.tf")
                for m in modules.values()
            ],
        )

        backend = _BACKENDS[self.config.providers[0]]
        for env in self.config.environments:
            directory = f"environments/{env.value}"
            self._stage_tf(
                f"{directory}/backend.tfvars",
                self._backend_tfvars(backend, env),
                depends_on=[
                    ArtifactRef(path=f"{TERRAFORM_DIR}/versions.tf", contains=f'backend "{backend}"')
                ],
            )
            self._stage_tf(
                f"{directory}/terraform.tfvars",
                self._terraform_tfvars(env),
                depends_on=[ArtifactRef(path=f"{TERRAFORM_DIR}/variables.tf")],
            )
        logger.debug("Staged Terraform for %s (%d modules)", ", ".join(self.config.providers),
                     len(modules))

    @property
    def components(self) -> tuple[str, ...]:
        if self.config.kubernetes:
            return TERRAFORM_COMPONENTS
        return tuple(c for c in TERRAFORM_COMPONENTS if c != "kubernetes")

    # -- Staging -----------------------------------------------------------

    def _stage_tf(self, relative: str, text: str, depends_on: list[ArtifactRef] | None = None) -> None:
        self.stage(
            f"{TERRAFORM_DIR}/{relative}",
            ArtifactFormat.HCL,
            text,
            depends_on=depends_on or [],
            cloud_specific=True,
        )

    def _stage_module(self, module: TerraformModule) -> None:
        directory = module_dir(module.provider, module.component)
        for filename, text in (
            ("main.tf", module.main_tf()),
            ("variables.tf", module.variables_tf()),
            ("outputs.tf", module.outputs_tf()),
        ):
            self.stage(f"{directory}/{filename}", ArtifactFormat.HCL, text, cloud_specific=True)

    def _wiring_refs(self, modules: dict[str, TerraformModule]) -> list[ArtifactRef]:
        """Refs proving every wired input and output exists in its module."""
        refs: list[ArtifactRef] = []
        for module in modules.values():
            directory = module_dir(module.provider, module.component)
            refs.append(ArtifactRef(path=f"{directory}/main.tf"))
            for key, output_key in _WIRING.get(module.component, {}).items():
                variable = self.names.resolve(f"tf.input.{module.component}.{key}")
                if variable not in module.variable_names:
                    continue
                refs.append(
                    ArtifactRef(path=f"{directory}/variables.tf", contains=f'variable "{variable}"')
                )
                output = self.names.resolve(f"tf.output.network.{output_key}")
                refs.append(
                    ArtifactRef(
                        path=f"{module_dir(module.provider, 'network')}/outputs.tf",
                        contains=f'output "{output}"',
                    )
                )
        return refs

    # -- Root files --------------------------------------------------------

    def _versions(self, modules: dict[str, TerraformModule]) -> str:
        wanted: list[str] = list(self.config.providers)
        for module in modules.values():
            for extra in module.required_providers:
                if extra not in wanted:
                    wanted.append(extra)

        doc = HclDocument()
        terraform = doc.block("terraform")
        terraform.attribute("required_version", ">= 1.5.0")
        required = terraform.block("required_providers")
        for key in wanted:
            local_name, source, version = _PROVIDER_SOURCES[key]
            required.attribute(local_name, {"source": source, "version": version})
        terraform.comment(
            "Partial configuration: terraform init -backend-config=environments/<env>/backend.tfvars"
        )
        terraform.block("backend", _BACKENDS[self.config.providers[0]])
        return doc.render()

    def _root_variables(self) -> str:
        variables = [
            Variable("project_name", "string", "Project name, used as a prefix for resource names",
                     self.names.resolve("project")),
            Variable("vpc_cidr", "string", "Base CIDR block of the network", "10.0.0.0/16"),
            Variable("database_name", "string", "Name of the application database",
                     self.names.resolve("database.name")),
            Variable("deletion_protection", "bool", "Protect stateful resources from deletion", False),
            Variable("high_availability", "bool", "Run stateful services redundantly", False),
        ]
        if self.config.kubernetes:
            variables += [
                Variable("kubernetes_version", "string", "Kubernetes control plane version", "1.29"),
                Variable("node_desired_count", "number", "Desired worker node count", 2),
                Variable("node_min_count", "number", "Minimum worker node count", 1),
                Variable("node_max_count", "number", "Maximum worker node count", 5),
            ]
        if "aws" in self.config.providers:
            variables.append(Variable("aws_region", "string", "AWS region", "us-east-1"))
        if "gcp" in self.config.providers:
            variables += [
                Variable("gcp_project_id", "string", "GCP project ID"),
                Variable("gcp_region", "string", "GCP region", "us-central1"),
            ]
        if "azure" in self.config.providers:
            variables += [
                Variable("azure_location", "string", "Azure region", "eastus"),
                Variable("azure_resource_group_name", "string", "Resource group holding the stack"),
            ]

        doc = HclDocument()
        environment = doc.block("variable", "environment")
        environment.attributes(description="Deployment environment", type=Expr("string"))
        environment.block("validation").attributes(
            condition=Expr(
                "contains([" + ", ".join(f'"{e.value}"' for e in self.config.environments)
                + "], var.environment)"
            ),
            error_message="Environment must be one of: "
            + ", ".join(e.value for e in self.config.environments) + ".",
        )
        for variable in variables:
            doc.add(variable.block())
        return doc.render()

    def _main(self, modules: dict[str, TerraformModule]) -> str:
        doc = HclDocument()
        doc.block("locals").attributes(
            tags={
                "Project": ref("var", "project_name"),
                "Environment": ref("var", "environment"),
                "ManagedBy": "terraform",
            },
            labels={
                "project": ref("var", "project_name"),
                "environment": ref("var", "environment"),
                "managed-by": "terraform",
            },
        )

        providers = self.config.providers
        if "aws" in providers:
            aws = doc.block("provider", "aws")
            aws.attribute("region", ref("var", "aws_region"))
            aws.block("default_tags").attribute("tags", Expr("local.tags"))
        if "gcp" in providers:
            doc.block("provider", "google").attributes(
                project=ref("var", "gcp_project_id"), region=ref("var", "gcp_region")
            )
        if "azure" in providers:
            doc.block("provider", "azurerm").block("features")
            doc.block("resource", "azurerm_resource_group", "main").attributes(
                name=ref("var", "azure_resource_group_name"),
                location=ref("var", "azure_location"),
                tags=Expr("local.tags"),
            )

        for instance, module in modules.items():
            doc.add(self._module_block(instance, module))
        return doc.render()

    def _module_block(self, instance: str, module: TerraformModule) -> Block:
        block = Block("module", instance)
        block.attribute("source", f"./modules/{module.provider}/{module.component}")

        network = self.names.resolve(f"tf.module.{module.provider}.network")
        wiring = {
            self.names.resolve(f"tf.input.{module.component}.{key}"): Expr(
                f"module.{network}.{self.names.resolve(f'tf.output.network.{output}')}"
            )
            for key, output in _WIRING.get(module.component, {}).items()
        }
        provider_args = _PROVIDER_ARGUMENTS[module.provider]

        arguments: list[tuple[str, Any]] = []
        inputs: list[tuple[str, Any]] = []
        for variable in module.variables:
            if variable.name in wiring:
                inputs.append((variable.name, wiring[variable.name]))
            elif variable.name in provider_args:
                arguments.append((variable.name, provider_args[variable.name]))
            elif variable.name in _PASSTHROUGH:
                arguments.append((variable.name, ref("var", variable.name)))
            elif variable.default is REQUIRED:
                raise ValueError(
                    f"Module {instance} input {variable.name!r} has no default and no root value"
                )
        for name, value in arguments:
            block.attribute(name, value)
        if inputs:
            block.blank()
            for name, value in inputs:
                block.attribute(name, value)
        return block

    def _outputs(self, modules: dict[str, TerraformModule]) -> str:
        doc = HclDocument()
        for instance, module in modules.items():
            for output in module.outputs:
                block = doc.block("output", f"{instance}_{output.name}")
                block.attributes(
                    description=output.description,
                    value=Expr(f"module.{instance}.{output.name}"),
                )
                if output.sensitive:
                    block.attribute("sensitive", True)
        return doc.render()

    # -- Environments ------------------------------------------------------

    def _backend_tfvars(self, backend: str, env: Environment) -> str:
        bucket = self.names.resolve("tf.state.bucket")
        doc = HclDocument()
        if backend == "s3":
            doc.attribute("bucket", bucket)
            doc.attribute("key", f"{env.value}/terraform.tfstate")
            doc.attribute("region", "us-east-1")
            doc.attribute("dynamodb_table", self.names.resolve("tf.state.lock"))
            doc.attribute("encrypt", True)
        elif backend == "gcs":
            doc.attribute("bucket", bucket)
            doc.attribute("prefix", env.value)
        else:
            doc.attribute("resource_group_name", self.names.resolve("tf.state.resource_group"))
            doc.attribute("storage_account_name", re.sub(r"[^a-z0-9]", "", bucket)[:24])
            doc.attribute("container_name", "tfstate")
            doc.attribute("key", f"{env.value}.terraform.tfstate")
        return doc.render()

    def _terraform_tfvars(self, env: Environment) -> str:
        doc = HclDocument()
        doc.attribute("environment", env.value)
        for name, value in _ENVIRONMENT_SIZING[env].items():
            if name in _NODE_VARIABLES and not self.config.kubernetes:
                continue
            doc.attribute(name, value)
        if "aws" in self.config.providers:
            doc.attribute("aws_region", "us-east-1")
        if "gcp" in self.config.providers:
            doc.attribute("gcp_project_id", self.names.resolve(f"gcp.project.{env.value}"))
            doc.attribute("gcp_region", "us-central1")
        if "azure" in self.config.providers:
            doc.attribute("azure_location", "eastus")
            doc.attribute(
                "azure_resource_group_name", self.names.resolve(f"azure.resource_group.{env.value}")
            )
        return doc.render()
