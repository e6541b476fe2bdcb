"""platformgen configuration.

Turns a loose option bag (CLI flags, an options file, ``PLATFORMGEN_*``
environment variables, values inferred from the host project) into one
immutable ``Configuration``.  All settings use Pydantic v2 models so they are
validated at construction time and can be serialised without boiler-plate.
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigValidationError
from .naming import slugify

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class CloudTarget(str, Enum):
    """Which cloud provider(s) to emit Terraform for."""

    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"
    ALL = "all"
    NONE = "none"


class PackageManager(str, Enum):
    """JavaScript package manager used by the scaffolded project."""

    NPM = "npm"
    YARN = "yarn"
    PNPM = "pnpm"


class Environment(str, Enum):
    """Deployment environments that receive an overlay."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


PROVIDERS: tuple[str, ...] = ("aws", "gcp", "azure")
ENVIRONMENTS: tuple[Environment, ...] = (
    Environment.DEVELOPMENT,
    Environment.STAGING,
    Environment.PRODUCTION,
)

METADATA_DIR = ".platformgen"
OPTIONS_FILENAME = ".platformgen.yaml"


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class RawOptions(BaseModel):
    """The option bag as supplied by the user, before any defaults apply.

    Every field is optional so "unset" can be told apart from "false".
    Enumerated values stay plain strings here; the resolver checks them so
    it can report friendly messages.
    """

    model_config = ConfigDict(extra="forbid")

    project_name: str | None = None
    description: str | None = None
    typescript: bool | None = None
    monorepo: bool | None = None
    kubernetes: bool | None = None
    security: bool | None = None
    observability: bool | None = None
    helm: bool | None = None
    service_mesh: bool | None = None
    cloud: str | None = None
    package_manager: str | None = None
    github_org: str | None = None
    node_version: str | None = None


class Configuration(BaseModel):
    """Immutable, fully-resolved description of what to scaffold.

    Created exactly once per invocation by :class:`ConfigResolver` and then
    shared read-only by every generator.
    """

    model_config = ConfigDict(frozen=True)

    project_name: str = Field(..., description="DNS-safe project name")
    description: str = Field(default="", description="One-line project description")
    use_typescript: bool = Field(default=False)
    monorepo: bool = Field(default=False)
    kubernetes: bool = Field(default=False)
    security_scanning: bool = Field(default=False)
    observability: bool = Field(default=False)
    cloud_target: CloudTarget = Field(default=CloudTarget.NONE)
    package_manager: PackageManager = Field(default=PackageManager.NPM)
    helm: bool = Field(default=False, description="Emit a Helm chart (requires kubernetes)")
    service_mesh: bool = Field(
        default=False, description="Emit Istio policies (requires kubernetes)"
    )
    github_org: str = Field(default="your-org")
    node_version: str = Field(default="20")

    # ------------------------------------------------------------------
    # Derived values (read-only properties)
    # ------------------------------------------------------------------

    @property
    def providers(self) -> tuple[str, ...]:
        """Concrete cloud providers, with ``all`` expanded."""
        if self.cloud_target is CloudTarget.ALL:
            return PROVIDERS
        if self.cloud_target is CloudTarget.NONE:
            return ()
        return (self.cloud_target.value,)

    @property
    def terraform_enabled(self) -> bool:
        return bool(self.providers)

    @property
    def environments(self) -> tuple[Environment, ...]:
        return ENVIRONMENTS

    @property
    def metadata_dir(self) -> str:
        """Directory (relative to the output root) holding the write manifest."""
        return METADATA_DIR


# ---------------------------------------------------------------------------
# Resolver
# ---------------------------------------------------------------------------

# Accepted spellings for option keys, mapped onto ``RawOptions`` fields.
_KEY_ALIASES: dict[str, str] = {
    "name": "project_name",
    "projectname": "project_name",
    "usetypescript": "typescript",
    "use_typescript": "typescript",
    "securityscanning": "security",
    "security_scanning": "security",
    "cloudtarget": "cloud",
    "cloud_target": "cloud",
    "packagemanager": "package_manager",
    "servicemesh": "service_mesh",
    "githuborg": "github_org",
    "nodeversion": "node_version",
}

_GITHUB_ORG_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")
_NODE_VERSION_RE = re.compile(r"^\d+(?:\.\d+){0,2}$")


def normalize_option_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Map camelCase / kebab-case option keys onto their canonical names."""
    normalized: dict[str, Any] = {}
    for key, value in raw.items():
        canonical = str(key).strip().replace("-", "_")
        canonical = _KEY_ALIASES.get(canonical.lower(), _KEY_ALIASES.get(canonical, canonical))
        normalized[canonical] = value
    return normalized


class ConfigResolver:
    """Validates a raw option bag and produces a :class:`Configuration`.

    The resolver is a pure function of its input: it never touches the
    filesystem or the environment.  Every violation is collected so users can
    fix them all in one go.
    """

    def resolve(self, raw: Mapping[str, Any]) -> Configuration:
        """Return the resolved configuration.

        Raises:
            ConfigValidationError: Listing every problem found.
        """
        config, problems = self._evaluate(raw)
        if problems or config is None:
            raise ConfigValidationError(problems)
        return config

    def collect_problems(self, raw: Mapping[str, Any]) -> list[str]:
        """Return the list of problems without raising (empty when valid)."""
        _, problems = self._evaluate(raw)
        return problems

    # -- Internal ----------------------------------------------------------

    def _evaluate(self, raw: Mapping[str, Any]) -> tuple[Configuration | None, list[str]]:
        problems: list[str] = []
        options = normalize_option_keys(raw)

        try:
            opts = RawOptions.model_validate(options)
        except ValidationError as exc:
            rejected: set[str] = set()
            for err in exc.errors():
                key = str(err["loc"][0]) if err["loc"] else "options"
                rejected.add(key)
                if err["type"] == "extra_forbidden":
                    problems.append(f"unknown option '{key}'")
                else:
                    problems.append(f"{key}: {err['msg']}")
            # Keep checking whatever did validate so every problem is reported.
            opts = RawOptions.model_validate(
                {k: v for k, v in options.items() if k not in rejected}
            )

        project_name = ""
        if opts.project_name is None or not opts.project_name.strip():
            problems.append("project name is required (use --name or a package.json)")
        else:
            project_name = slugify(opts.project_name)
            if not project_name:
                problems.append(
                    f"project name {opts.project_name!r} contains no usable characters"
                )

        cloud = CloudTarget.NONE
        if opts.cloud is not None:
            try:
                cloud = CloudTarget(opts.cloud.strip().lower())
            except ValueError:
                problems.append(
                    "cloud must be one of "
                    f"{', '.join(c.value for c in CloudTarget)} (got {opts.cloud!r})"
                )

        # Unset package manager falls back to npm, monorepo or not.
        package_manager = PackageManager.NPM
        if opts.package_manager is not None:
            try:
                package_manager = PackageManager(opts.package_manager.strip().lower())
            except ValueError:
                problems.append(
                    "package manager must be one of "
                    f"{', '.join(p.value for p in PackageManager)} "
                    f"(got {opts.package_manager!r})"
                )

        kubernetes = bool(opts.kubernetes)
        if opts.helm and not kubernetes:
            problems.append("helm requires kubernetes=true")
        if opts.service_mesh and not kubernetes:
            problems.append("service mesh requires kubernetes=true")

        github_org = opts.github_org or "your-org"
        if not _GITHUB_ORG_RE.match(github_org):
            problems.append(f"github org {github_org!r} is not a valid GitHub account name")

        node_version = opts.node_version or "20"
        if not _NODE_VERSION_RE.match(node_version):
            problems.append(f"node version {node_version!r} must look like '20' or '20.11'")

        if problems:
            return None, problems

        helm = kubernetes if opts.helm is None else opts.helm
        service_mesh = kubernetes if opts.service_mesh is None else opts.service_mesh

        config = Configuration(
            project_name=project_name,
            description=opts.description or f"{project_name} platform",
            use_typescript=bool(opts.typescript),
            monorepo=bool(opts.monorepo),
            kubernetes=kubernetes,
            security_scanning=bool(opts.security),
            observability=bool(opts.observability),
            cloud_target=cloud,
            package_manager=package_manager,
            helm=helm,
            service_mesh=service_mesh,
            github_org=github_org,
            node_version=node_version,
        )
        logger.debug("Resolved configuration: %s", config.model_dump(mode="json"))
        return config, []


# ---------------------------------------------------------------------------
# Option sources
# ---------------------------------------------------------------------------

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

_ENV_STRINGS: dict[str, str] = {
    "PLATFORMGEN_NAME": "project_name",
    "PLATFORMGEN_DESCRIPTION": "description",
    "PLATFORMGEN_CLOUD": "cloud",
    "PLATFORMGEN_PACKAGE_MANAGER": "package_manager",
    "PLATFORMGEN_GITHUB_ORG": "github_org",
    "PLATFORMGEN_NODE_VERSION": "node_version",
}

_ENV_FLAGS: dict[str, str] = {
    "PLATFORMGEN_TYPESCRIPT": "typescript",
    "PLATFORMGEN_MONOREPO": "monorepo",
    "PLATFORMGEN_KUBERNETES": "kubernetes",
    "PLATFORMGEN_SECURITY": "security",
    "PLATFORMGEN_OBSERVABILITY": "observability",
    "PLATFORMGEN_HELM": "helm",
    "PLATFORMGEN_SERVICE_MESH": "service_mesh",
}


def options_from_env(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Build an option bag from ``PLATFORMGEN_*`` environment variables.

    Recognised variables (all optional):
        PLATFORMGEN_NAME, PLATFORMGEN_DESCRIPTION, PLATFORMGEN_CLOUD,
        PLATFORMGEN_PACKAGE_MANAGER, PLATFORMGEN_GITHUB_ORG,
        PLATFORMGEN_NODE_VERSION, and the boolean flags
        PLATFORMGEN_TYPESCRIPT, PLATFORMGEN_MONOREPO, PLATFORMGEN_KUBERNETES,
        PLATFORMGEN_SECURITY, PLATFORMGEN_OBSERVABILITY, PLATFORMGEN_HELM,
        PLATFORMGEN_SERVICE_MESH.

    Flag values that are not recognisably true/false are passed through
    unchanged so the resolver reports them.
    """
    env = os.environ if environ is None else environ
    options: dict[str, Any] = {}
    for var, key in _ENV_STRINGS.items():
        if env.get(var):
            options[key] = env[var]
    for var, key in _ENV_FLAGS.items():
        value = env.get(var)
        if not value:
            continue
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            options[key] = True
        elif lowered in _FALSE_VALUES:
            options[key] = False
        else:
            options[key] = value
    return options


def load_options_file(path: str | Path) -> dict[str, Any]:
    """Load an option bag from a YAML (``.yaml``/``.yml``) or JSON file.

    Raises:
        ConfigValidationError: If the file is missing, unparsable, or does
            not contain a mapping.
    """
    file_path = Path(path)
    try:
        raw = file_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigValidationError([f"cannot read options file {file_path}: {exc}"]) from exc

    try:
        if file_path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigValidationError([f"cannot parse options file {file_path}: {exc}"]) from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigValidationError([f"options file {file_path} must contain a mapping"])
    return normalize_option_keys(data)


def infer_host_defaults(root: str | Path) -> dict[str, Any]:
    """Infer default options from an existing project in *root*.

    Only the manifest's ``name`` is read (scope stripped) and the presence of
    a ``tsconfig.json`` is checked; dependencies and scripts are never
    parsed.
    """
    root_path = Path(root)
    defaults: dict[str, Any] = {}

    manifest = root_path / "package.json"
    if manifest.is_file():
        try:
            data = json.loads(manifest.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable %s: %s", manifest, exc)
            data = {}
        name = data.get("name") if isinstance(data, dict) else None
        if isinstance(name, str) and name.strip():
            defaults["project_name"] = name.rsplit("/", 1)[-1]

    if (root_path / "tsconfig.json").is_file():
        defaults["typescript"] = True

    return defaults


def merge_options(*bags: Mapping[str, Any] | None) -> dict[str, Any]:
    """Merge option bags left to right; later bags win, ``None`` values are ignored."""
    merged: dict[str, Any] = {}
    for bag in bags:
        if not bag:
            continue
        for key, value in normalize_option_keys(bag).items():
            if value is not None:
                merged[key] = value
    return merged
