"""Name registry: the single authority for every derived identifier.

Generators never spell resource names themselves.  They ask the registry for
a logical concept (``"api"``, ``"api.secret"``, ``"tf.output.network.private_subnet_ids"``)
and get back the exact string every other artifact will use for it.

The registry is populated up front from the configuration, then frozen.  A
frozen registry is read-only and can be shared between generator threads
without locking; asking it for a concept nobody declared is a bug in the
generator, reported as :class:`NameCollisionError`.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from .errors import NameCollisionError

if TYPE_CHECKING:
    from .config import Configuration


MAX_NAME_LENGTH = 63
_HASH_LENGTH = 6


# ---------------------------------------------------------------------------
# Naming styles
# ---------------------------------------------------------------------------


class NameStyle(str, Enum):
    """Spelling rules a concept's name must follow."""

    DNS = "dns"                # Kubernetes objects, images, cloud tags
    IDENTIFIER = "identifier"  # Terraform module / output / variable names
    ENV = "env"                # environment variable and secret names
    PATH = "path"              # relative workspace paths
    PACKAGE = "package"        # npm package names
    HOST = "host"              # fully qualified host names


def slugify(value: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """Convert *value* to a DNS-1123 label.

    * Lowercases the input.
    * Replaces every character outside ``[a-z0-9-]`` with a hyphen.
    * Collapses consecutive hyphens and strips leading/trailing hyphens.
    * Truncates to *max_length*, replacing the tail with a short stable hash
      of the full slug so distinct long names stay distinct.

    Examples::

        slugify("Acme Store") -> "acme-store"
        slugify("my_app.v2")  -> "my-app-v2"
    """
    slug = re.sub(r"[^a-z0-9-]", "-", value.strip().lower())
    slug = re.sub(r"-+", "-", slug).strip("-")
    if len(slug) <= max_length:
        return slug
    digest = hashlib.sha256(slug.encode("utf-8")).hexdigest()[:_HASH_LENGTH]
    head = slug[: max_length - _HASH_LENGTH - 1].rstrip("-")
    return f"{head}-{digest}"


def _identifier(value: str) -> str:
    ident = re.sub(r"[^a-z0-9]+", "_", value.strip().lower()).strip("_")
    if ident and ident[0].isdigit():
        ident = f"n_{ident}"
    return ident


def _env_name(value: str) -> str:
    return re.sub(r"[^A-Z0-9]+", "_", value.strip().upper()).strip("_")


def _path(value: str) -> str:
    return "/".join(slugify(part) for part in value.split("/") if slugify(part))


def _host(value: str) -> str:
    return ".".join(slugify(label) for label in value.split(".") if slugify(label))


def _package(value: str) -> str:
    if value.startswith("@") and "/" in value:
        scope, name = value[1:].split("/", 1)
        return f"@{slugify(scope)}/{slugify(name)}"
    return slugify(value)


_FORMATTERS = {
    NameStyle.DNS: slugify,
    NameStyle.IDENTIFIER: _identifier,
    NameStyle.ENV: _env_name,
    NameStyle.PATH: _path,
    NameStyle.PACKAGE: _package,
    NameStyle.HOST: _host,
}


def secret_key(env_name: str) -> str:
    """Key under which an env-style secret is stored in a Kubernetes Secret."""
    return slugify(env_name.replace("_", "-"))


# ---------------------------------------------------------------------------
# Catalog of cross-artifact concepts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NameSpec:
    """Declaration of one logical concept."""

    concept: str
    template: str
    style: NameStyle = NameStyle.DNS
    scope: str = ""


# Secrets the application reads at runtime (never their values).
APP_SECRETS: tuple[str, ...] = (
    "secret.database_url",
    "secret.redis_url",
    "secret.jwt_secret",
    "secret.api_key",
)

# Terraform components emitted per provider, and the interface between them.
TERRAFORM_COMPONENTS: tuple[str, ...] = ("network", "kubernetes", "database", "cache")

TERRAFORM_OUTPUTS: dict[str, tuple[str, ...]] = {
    "network": ("network_id", "public_subnet_ids", "private_subnet_ids", "database_subnet_ids"),
    "kubernetes": ("cluster_name", "cluster_endpoint"),
    "database": ("database_endpoint", "database_secret_id"),
    "cache": ("cache_endpoint",),
}

TERRAFORM_INPUTS: dict[str, tuple[str, ...]] = {
    "kubernetes": ("network_id", "subnet_ids"),
    "database": ("network_id", "subnet_ids"),
    "cache": ("network_id", "subnet_ids"),
}

# Monorepo workspaces as (group, name); "packages/config" holds shared tooling.
WORKSPACES: tuple[tuple[str, str], ...] = (
    ("packages", "types"),
    ("packages", "utils"),
    ("packages", "shared"),
    ("packages", "config"),
    ("apps", "api"),
    ("apps", "web"),
    ("libs", "ui"),
    ("libs", "database"),
)

_CORE_CATALOG: tuple[NameSpec, ...] = (
    NameSpec("project", "{project}", NameStyle.DNS, "project"),
    NameSpec("api", "{project}-api", NameStyle.DNS, "workload"),
    NameSpec("compose.database", "postgres", NameStyle.DNS, "compose"),
    NameSpec("compose.cache", "redis", NameStyle.DNS, "compose"),
    NameSpec("database.name", "{project}", NameStyle.IDENTIFIER, "database"),
    NameSpec("secret.database_url", "DATABASE_URL", NameStyle.ENV, "secret"),
    NameSpec("secret.redis_url", "REDIS_URL", NameStyle.ENV, "secret"),
    NameSpec("secret.jwt_secret", "JWT_SECRET", NameStyle.ENV, "secret"),
    NameSpec("secret.api_key", "API_KEY", NameStyle.ENV, "secret"),
    NameSpec("secret.codecov_token", "CODECOV_TOKEN", NameStyle.ENV, "ci-secret"),
    NameSpec("secret.npm_token", "NPM_TOKEN", NameStyle.ENV, "ci-secret"),
)


def _catalog(config: Configuration) -> list[NameSpec]:
    specs = list(_CORE_CATALOG)

    if config.security_scanning:
        specs.append(NameSpec("secret.snyk_token", "SNYK_TOKEN", NameStyle.ENV, "ci-secret"))

    if config.kubernetes:
        specs += [
            NameSpec("namespace", "{project}", NameStyle.DNS, "namespace"),
            NameSpec("api.secret", "{project}-api-secrets", NameStyle.DNS, "secret"),
            NameSpec("api.config", "{project}-api-config", NameStyle.DNS, "configmap"),
            NameSpec("argocd.project", "{project}", NameStyle.DNS, "argocd-project"),
            NameSpec("secret.kubeconfig", "KUBECONFIG", NameStyle.ENV, "ci-secret"),
        ]
        for env in config.environments:
            specs.append(
                NameSpec(f"argocd.app.{env.value}", f"{{project}}-{env.value}",
                         NameStyle.DNS, "argocd-app")
            )

    if config.helm:
        specs.append(NameSpec("helm.chart", "{project}", NameStyle.DNS, "chart"))

    if config.service_mesh:
        specs += [
            NameSpec("mesh.gateway", "{project}-gateway", NameStyle.DNS, "mesh"),
            NameSpec("tls.secret", "{project}-tls", NameStyle.DNS, "secret"),
            NameSpec("mesh.host", "{project}-api.example.com", NameStyle.HOST, "mesh-host"),
        ]

    if config.observability:
        specs += [
            NameSpec("dashboard", "{project}-overview", NameStyle.DNS, "dashboard"),
            NameSpec("alerts", "{project}-alerts", NameStyle.DNS, "alerts"),
            NameSpec("secret.grafana_admin_password", "GRAFANA_ADMIN_PASSWORD",
                     NameStyle.ENV, "secret"),
        ]

    if config.terraform_enabled:
        specs += [
            NameSpec("tf.state.bucket", "{project}-terraform-state", NameStyle.DNS, "bucket"),
            NameSpec("tf.state.lock", "{project}-terraform-locks", NameStyle.DNS, "lock-table"),
        ]
        if config.providers[0] == "azure":
            specs.append(
                NameSpec("tf.state.resource_group", "{project}-tfstate", NameStyle.DNS,
                         "resource-group")
            )
        for env in config.environments:
            if "gcp" in config.providers:
                specs.append(
                    NameSpec(f"gcp.project.{env.value}", f"{{project}}-{env.value}",
                             NameStyle.DNS, "gcp-project")
                )
            if "azure" in config.providers:
                specs.append(
                    NameSpec(f"azure.resource_group.{env.value}", f"{{project}}-{env.value}-rg",
                             NameStyle.DNS, "resource-group")
                )
        for provider in config.providers:
            for component in TERRAFORM_COMPONENTS:
                specs.append(
                    NameSpec(f"tf.module.{provider}.{component}", f"{provider}_{component}",
                             NameStyle.IDENTIFIER, "tf.module")
                )
        for component, outputs in TERRAFORM_OUTPUTS.items():
            for output in outputs:
                specs.append(
                    NameSpec(f"tf.output.{component}.{output}", output,
                             NameStyle.IDENTIFIER, f"tf.output.{component}")
                )
        for component, inputs in TERRAFORM_INPUTS.items():
            for variable in inputs:
                specs.append(
                    NameSpec(f"tf.input.{component}.{variable}", variable,
                             NameStyle.IDENTIFIER, f"tf.input.{component}")
                )

    if config.monorepo:
        for group, name in WORKSPACES:
            specs.append(
                NameSpec(f"workspace.{name}", f"{group}/{name}", NameStyle.PATH, "workspace")
            )
            specs.append(
                NameSpec(f"package.{name}", f"@{{project}}/{name}", NameStyle.PACKAGE, "package")
            )

    return specs


# ---------------------------------------------------------------------------
# NameRegistry
# ---------------------------------------------------------------------------


class NameRegistry:
    """Maps logical concepts to naming-rule-compliant identifiers.

    Names are memoized per ``(project_name, concept)`` so repeated calls from
    different generators return byte-identical strings.  Within one style and
    scope no two concepts may share a name.
    """

    def __init__(self, project_name: str) -> None:
        self.project_name = slugify(project_name)
        if not self.project_name:
            raise ValueError(f"Project name {project_name!r} produces an empty slug.")
        self._specs: dict[tuple[str, str], NameSpec] = {}
        self._names: dict[tuple[str, str], str] = {}
        self._owners: dict[tuple[NameStyle, str, str], str] = {}
        self._frozen = False

    @classmethod
    def for_configuration(cls, config: Configuration) -> NameRegistry:
        """Create a registry with every concept the generators will need.

        The caller is expected to :meth:`freeze` it before generation starts.
        """
        registry = cls(config.project_name)
        for spec in _catalog(config):
            registry.declare(spec.concept, spec.template, style=spec.style, scope=spec.scope)
        return registry

    # -- Declaration -------------------------------------------------------

    def declare(
        self,
        concept: str,
        template: str | None = None,
        *,
        style: NameStyle = NameStyle.DNS,
        scope: str = "",
    ) -> str:
        """Register *concept* and return its name.

        Args:
            concept: Logical concept key, e.g. ``"api.secret"``.
            template: Spelling template; ``{project}`` is replaced with the
                project name.  Defaults to ``"{project}-<concept>"``.
            style: Naming rules to apply.
            scope: Collision domain within the style (Kubernetes kind,
                Terraform module, ...).

        Raises:
            NameCollisionError: If the registry is frozen, the concept is
                already declared differently, or another concept in the same
                domain already owns the resulting name.
        """
        if self._frozen:
            raise NameCollisionError(
                f"Cannot declare {concept!r}: the name registry is frozen.", concept=concept
            )

        spec = NameSpec(concept, template or f"{{project}}-{concept}", style, scope or style.value)
        key = (self.project_name, concept)
        existing = self._specs.get(key)
        if existing is not None:
            if existing == spec:
                return self._names[key]
            raise NameCollisionError(
                f"Concept {concept!r} is already declared with a different spelling.",
                concept=concept,
                name=self._names[key],
            )

        name = _FORMATTERS[style](spec.template.format(project=self.project_name))
        if not name:
            raise NameCollisionError(f"Concept {concept!r} resolves to an empty name.", concept)

        domain = (style, spec.scope, name)
        owner = self._owners.get(domain)
        if owner is not None:
            raise NameCollisionError(
                f"Concepts {owner!r} and {concept!r} both resolve to {name!r}.",
                concept=concept,
                name=name,
            )

        self._specs[key] = spec
        self._names[key] = name
        self._owners[domain] = concept
        return name

    # -- Lookup ------------------------------------------------------------

    def resolve(self, concept: str) -> str:
        """Return the name for *concept*.

        Unseen concepts are declared on the fly until the registry is frozen;
        afterwards they raise :class:`NameCollisionError`.
        """
        name = self._names.get((self.project_name, concept))
        if name is not None:
            return name
        if self._frozen:
            raise NameCollisionError(
                f"Concept {concept!r} was not registered before the registry was frozen.",
                concept=concept,
            )
        return self.declare(concept)

    def freeze(self) -> None:
        """Make the registry read-only."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, concept: object) -> bool:
        return (self.project_name, concept) in self._names

    def snapshot(self) -> dict[str, str]:
        """Return ``{concept: name}`` for every declared concept."""
        return {concept: name for (_, concept), name in self._names.items()}
