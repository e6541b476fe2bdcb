"""Base repository scaffolding: manifest, tooling config, container files."""

from __future__ import annotations

from typing import Any

from ..artifacts import ArtifactFormat, ArtifactRef
from ..config import Environment
from ..naming import APP_SECRETS, WORKSPACES
from . import fragments
from .base import ArtifactGenerator
from .dockerfile import DockerfileBuilder
from .helm_gen import chart_dir
from .kubernetes_gen import K8S_OVERLAYS_DIR, overlay_dir
from .monorepo_gen import SHARED_CONFIG, workspace_globs
from .terraform_gen import TERRAFORM_DIR


_DEV_DEPENDENCIES: dict[str, str] = {
    "eslint": "^8.56.0",
    "prettier": "^3.1.1",
    "jest": "^29.7.0",
    "husky": "^8.0.3",
    "lint-staged": "^15.2.0",
}

_TS_DEV_DEPENDENCIES: dict[str, str] = {
    "@types/node": "^20.10.5",
    "@types/jest": "^29.5.11",
    "@typescript-eslint/eslint-plugin": "^6.15.0",
    "@typescript-eslint/parser": "^6.15.0",
    "typescript": "^5.3.3",
    "ts-jest": "^29.1.1",
    "tsx": "^4.7.0",
}

_MONOREPO_DEV_DEPENDENCIES: dict[str, str] = {
    "@changesets/cli": "^2.27.1",
    "turbo": "^1.11.2",
    "concurrently": "^8.2.2",
}

_PRETTIER: dict[str, Any] = {
    "semi": True,
    "trailingComma": "all",
    "singleQuote": True,
    "printWidth": 100,
    "tabWidth": 2,
    "useTabs": False,
    "bracketSpacing": True,
    "arrowParens": "always",
    "endOfLine": "lf",
}


class PlatformGenerator(ArtifactGenerator):
    """Stages the files every scaffolded repository gets."""

    family = "platform"

    def build(self) -> None:
        config = self.config
        secret_names = self.secret_names(APP_SECRETS)

        # 1. Package manifest and documentation
        self.stage(
            "package.json",
            ArtifactFormat.JSON,
            self.package_json(),
            depends_on=self._deploy_refs(),
        )
        self.stage("README.md", ArtifactFormat.MARKDOWN, self.template("README.md.j2", **self._layout()))

        # 2. Editor and lint tooling
        self.stage(".gitignore", ArtifactFormat.TEXT, self.template("gitignore.j2"))
        self.stage(".editorconfig", ArtifactFormat.TEXT, self.template("editorconfig.j2"))
        self.stage(".prettierrc", ArtifactFormat.JSON, dict(_PRETTIER))
        self.stage(".prettierignore", ArtifactFormat.TEXT, self.template("prettierignore.j2"))
        self.stage(".eslintrc.json", ArtifactFormat.JSON, self.eslint_config())
        if config.use_typescript:
            tsconfig_refs: list[ArtifactRef] = []
            if config.monorepo:
                tsconfig_refs = [ArtifactRef(path="tsconfig.base.json")] + [
                    ArtifactRef(path=f"{directory}/tsconfig.json")
                    for directory in self.typed_workspaces()
                ]
            self.stage("tsconfig.json", ArtifactFormat.JSON, self.tsconfig(), depends_on=tsconfig_refs)

        # 3. Container build and local stack
        self.stage("Dockerfile", ArtifactFormat.DOCKERFILE, self.dockerfile())
        self.stage(".dockerignore", ArtifactFormat.TEXT, self.template("dockerignore.j2"))
        self.stage(
            "docker-compose.yml",
            ArtifactFormat.YAML,
            self.docker_compose(secret_names),
            depends_on=[ArtifactRef(path="Dockerfile", contains=f"EXPOSE {fragments.APP_PORT}")],
            secrets=secret_names,
        )

        # 4. Developer entry points
        self.stage(
            "Makefile",
            ArtifactFormat.TEXT,
            self.template("Makefile.j2", **self._layout()),
            depends_on=[ArtifactRef(path="docker-compose.yml"), *self._deploy_refs()],
        )

        env_secrets = list(secret_names)
        if config.observability:
            env_secrets.append(self.names.resolve("secret.grafana_admin_password"))
        self.stage(
            ".env.example",
            ArtifactFormat.TEXT,
            self.template(
                "env.example.j2",
                secret_names=env_secrets,
                providers=list(config.providers),
                database=self.names.resolve("database.name"),
                compose_database=self.names.resolve("compose.database"),
                compose_cache=self.names.resolve("compose.cache"),
                port=fragments.APP_PORT,
            ),
            secrets=env_secrets,
            cloud_specific=True,
        )

        for name in secret_names:
            self.declare_secret(name, ["docker-compose.yml", ".env.example"])
        if config.observability:
            self.declare_secret(self.names.resolve("secret.grafana_admin_password"), [".env.example"])

    # -- Layout ------------------------------------------------------------

    @property
    def entrypoint(self) -> str:
        """Path of the compiled API entry file inside the image."""
        root = f"{self.names.resolve('workspace.api')}/" if self.config.monorepo else ""
        if self.config.use_typescript:
            return f"{root}dist/index.js"
        return f"{root}src/index.js"

    @property
    def has_build_step(self) -> bool:
        return self.config.use_typescript or self.config.monorepo

    def _layout(self) -> dict[str, Any]:
        """Template variables describing which parts of the tree exist."""
        layout: dict[str, Any] = {
            "environments": [env.value for env in self.config.environments],
            "image": fragments.image_repository(self.config, self.names),
            "port": fragments.APP_PORT,
            "terraform_dir": TERRAFORM_DIR,
            "chart_dir": None,
            "overlays_dir": None,
        }
        if self.config.kubernetes:
            layout["overlays_dir"] = K8S_OVERLAYS_DIR
            layout["namespace"] = self.names.resolve("namespace")
        if self.config.helm:
            layout["chart_dir"] = chart_dir(self.names.resolve("helm.chart"))
        return layout

    def _deploy_refs(self) -> list[ArtifactRef]:
        refs: list[ArtifactRef] = []
        if self.config.kubernetes:
            for env in self.config.environments:
                refs.append(ArtifactRef(path=f"{overlay_dir(env.value)}/kustomization.yaml"))
        if self.config.helm:
            refs.append(ArtifactRef(path=f"{chart_dir(self.names.resolve('helm.chart'))}/Chart.yaml"))
        if self.config.terraform_enabled:
            refs.append(ArtifactRef(path=f"{TERRAFORM_DIR}/versions.tf"))
        return refs

    # -- package.json ------------------------------------------------------

    def package_json(self) -> dict[str, Any]:
        config = self.config
        manifest: dict[str, Any] = {
            "name": self.names.resolve("project"),
            "version": "0.1.0",
            "description": config.description,
            "private": True,
        }
        if config.monorepo:
            manifest["workspaces"] = workspace_globs(self.names)
        manifest["scripts"] = self.scripts()

        dev_dependencies = dict(_DEV_DEPENDENCIES)
        if config.use_typescript:
            dev_dependencies.update(_TS_DEV_DEPENDENCIES)
        if config.monorepo:
            dev_dependencies.update(_MONOREPO_DEV_DEPENDENCIES)
        manifest["dependencies"] = {}
        manifest["devDependencies"] = dict(sorted(dev_dependencies.items()))
        manifest["lint-staged"] = {
            "*.{ts,tsx,js,jsx}": ["eslint --fix", "prettier --write"],
            "*.{json,md,yml,yaml}": "prettier --write",
        }
        manifest["engines"] = {"node": f">={config.node_version}"}
        return manifest

    def scripts(self) -> dict[str, str]:
        """npm scripts, extended by the enabled deployment targets."""
        config = self.config
        extension = ".ts,.tsx,.js,.jsx" if config.use_typescript else ".js,.jsx"
        scripts: dict[str, str] = {}

        if config.monorepo:
            scripts.update(
                {
                    "dev": "turbo run dev",
                    "build": "turbo run build",
                    "test": "turbo run test",
                    "lint": "turbo run lint",
                }
            )
        else:
            source = "src/index.ts" if config.use_typescript else "src/index.js"
            scripts["dev"] = (
                f"tsx watch {source}" if config.use_typescript else f"node --watch {source}"
            )
            if config.use_typescript:
                scripts["build"] = "tsc -p tsconfig.json"
            scripts["start"] = f"node {self.entrypoint}"
            scripts["test"] = "jest"
            scripts["lint"] = f"eslint . --ext {extension}"

        scripts["format"] = 'prettier --write "**/*.{ts,tsx,js,jsx,json,md,yml,yaml}"'
        if config.use_typescript:
            scripts["type-check"] = "tsc --noEmit"
        scripts["pre-commit"] = "lint-staged"
        scripts["prepare"] = "husky install"

        if config.monorepo:
            scripts["changeset"] = "changeset"
            scripts["version-packages"] = "changeset version"
            scripts["release"] = "changeset publish"

        if config.terraform_enabled:
            for action in ("init", "plan", "apply", "destroy"):
                command = f"terraform -chdir={TERRAFORM_DIR} {action}"
                if action == "init":
                    command += " -backend-config=environments/development/backend.tfvars"
                elif action != "destroy":
                    command += " -var-file=environments/development/terraform.tfvars"
                scripts[f"infra:{action}"] = command

        if config.kubernetes:
            scripts["k8s:deploy"] = f"kubectl apply -k {overlay_dir(Environment.DEVELOPMENT.value)}"
            scripts["k8s:deploy:prod"] = f"kubectl apply -k {overlay_dir(Environment.PRODUCTION.value)}"
        if config.helm:
            chart = chart_dir(self.names.resolve("helm.chart"))
            scripts["helm:deploy"] = (
                f"helm upgrade --install {self.names.resolve('api')} ./{chart} "
                f"-f ./{chart}/values-development.yaml"
            )

        if config.security_scanning:
            scripts["security:audit"] = self.context()["commands"]["audit"]
            scripts["security:scan"] = "trivy fs ."
        return scripts

    # -- Lint / compiler config -------------------------------------------

    def eslint_config(self) -> dict[str, Any]:
        config: dict[str, Any] = {
            "root": True,
            "env": {"node": True, "es2022": True, "jest": True},
            "parserOptions": {"ecmaVersion": 2022, "sourceType": "module"},
            "extends": ["eslint:recommended"],
            "rules": {"no-console": "warn", "prefer-const": "error"},
            "ignorePatterns": ["dist", "build", "coverage", "node_modules"],
        }
        if self.config.use_typescript:
            config["parser"] = "@typescript-eslint/parser"
            config["plugins"] = ["@typescript-eslint"]
            config["extends"] = [
                "eslint:recommended",
                "plugin:@typescript-eslint/recommended",
            ]
            config["rules"].update(
                {
                    "@typescript-eslint/no-unused-vars": ["error", {"argsIgnorePattern": "^_"}],
                    "@typescript-eslint/explicit-function-return-type": "off",
                    "@typescript-eslint/no-explicit-any": "warn",
                }
            )
        return config

    def tsconfig(self) -> dict[str, Any]:
        if self.config.monorepo:
            # Solution file: each workspace compiles itself.
            return {
                "extends": "./tsconfig.base.json",
                "files": [],
                "references": [
                    {"path": f"./{directory}"} for directory in self.typed_workspaces()
                ],
            }
        compiler: dict[str, Any] = {
            "target": "ES2022",
            "module": "commonjs",
            "lib": ["ES2022"],
            "outDir": "./dist",
            "rootDir": "./src",
            "strict": True,
            "esModuleInterop": True,
            "skipLibCheck": True,
            "forceConsistentCasingInFileNames": True,
            "resolveJsonModule": True,
            "declaration": True,
            "sourceMap": True,
        }
        return {
            "compilerOptions": compiler,
            "include": ["src/**/*"],
            "exclude": ["node_modules", "dist", "**/*.test.ts"],
        }

    def typed_workspaces(self) -> list[str]:
        """Workspace directories that carry their own tsconfig.json."""
        return [
            self.names.resolve(f"workspace.{name}")
            for _, name in WORKSPACES
            if name != SHARED_CONFIG
        ]

    # -- Container ---------------------------------------------------------

    def dockerfile(self) -> str:
        commands = self.context()["commands"]
        node_image = f"node:{self.config.node_version}-alpine"
        pnpm = self.config.package_manager.value == "pnpm"

        builder = DockerfileBuilder().comment("Dependencies").from_(node_image, alias="deps")
        if pnpm:
            builder.run("corepack enable")
        builder.workdir("/app")
        if self.config.monorepo:
            # Workspace manifests are needed before the install can link them.
            builder.copy(".", dest=".")
        else:
            builder.copy("package.json", commands["lockfile"], dest="./")
        builder.run(commands["install"])

        builder.blank().comment("Build").from_("deps", alias="build").workdir("/app")
        builder.copy(".", dest=".")
        build_steps = [f"{commands['run']} build"] if self.has_build_step else []
        builder.run(*build_steps, commands["prune"])

        uid = fragments.RUN_AS_USER
        (
            builder.blank()
            .comment("Runtime")
            .from_(node_image, alias="runtime")
            .run(
                "apk add --no-cache dumb-init",
                f"addgroup -g {uid} -S nodejs",
                f"adduser -S nodejs -u {uid} -G nodejs",
            )
            .workdir("/app")
            .env(NODE_ENV="production", PORT=str(fragments.APP_PORT))
            .copy("/app", dest="./", from_stage="build", chown="nodejs:nodejs")
            .user("nodejs")
            .expose(fragments.APP_PORT)
            .healthcheck(
                [
                    "wget",
                    "--no-verbose",
                    "--tries=1",
                    "--spider",
                    f"http://localhost:{fragments.APP_PORT}{fragments.LIVENESS_PATH}",
                ]
            )
            .entrypoint(["dumb-init", "--"])
            .cmd(["node", self.entrypoint])
        )
        return builder.build()

    def docker_compose(self, secret_names: list[str]) -> dict[str, Any]:
        names = self.names
        database = names.resolve("compose.database")
        cache = names.resolve("compose.cache")
        port = fragments.APP_PORT
        environment: dict[str, str] = {"NODE_ENV": "development", "PORT": str(port)}
        for name in secret_names:
            environment[name] = f"${{{name}}}"

        return {
            "services": {
                names.resolve("api"): {
                    "build": {"context": ".", "target": "runtime"},
                    "ports": [f"{port}:{port}"],
                    "env_file": [".env"],
                    "environment": environment,
                    "depends_on": {
                        database: {"condition": "service_healthy"},
                        cache: {"condition": "service_healthy"},
                    },
                    "restart": "unless-stopped",
                },
                database: {
                    "image": "postgres:16-alpine",
                    "environment": {
                        "POSTGRES_DB": names.resolve("database.name"),
                        "POSTGRES_USER": "postgres",
                        "POSTGRES_HOST_AUTH_METHOD": "trust",
                    },
                    "ports": ["5432:5432"],
                    "volumes": ["postgres-data:/var/lib/postgresql/data"],
                    "healthcheck": {
                        "test": ["CMD-SHELL", "pg_isready -U postgres"],
                        "interval": "10s",
                        "timeout": "5s",
                        "retries": 5,
                    },
                },
                cache: {
                    "image": "redis:7-alpine",
                    "ports": ["6379:6379"],
                    "volumes": ["redis-data:/data"],
                    "healthcheck": {
                        "test": ["CMD", "redis-cli", "ping"],
                        "interval": "10s",
                        "timeout": "5s",
                        "retries": 5,
                    },
                },
            },
            "volumes": {"postgres-data": {}, "redis-data": {}},
        }
