"""Workspace packages, shared tooling config and monorepo task runners.

Every workspace path and package name comes from the registry, so the root
``package.json`` workspaces, the TypeScript project references and the
relative ``extends`` paths all agree.
"""

from __future__ import annotations

import logging
import posixpath
from typing import Any

from ..artifacts import ArtifactFormat, ArtifactRef
from ..naming import WORKSPACES, NameRegistry
from .base import ArtifactGenerator

logger = logging.getLogger(__name__)

SHARED_CONFIG = "config"

# Internal dependencies of each workspace (by workspace name).
WORKSPACE_DEPENDENCIES: dict[str, tuple[str, ...]] = {
    "types": (),
    "utils": ("types",),
    "shared": ("types", "utils"),
    "config": (),
    "api": ("types", "utils", "shared", "database"),
    "web": ("types", "shared", "ui"),
    "ui": ("types",),
    "database": ("types",),
}

_DESCRIPTIONS: dict[str, str] = {
    "types": "Shared TypeScript types and interfaces",
    "utils": "Shared utility functions",
    "shared": "Cross-cutting business logic shared by the apps",
    "config": "Shared tsconfig, ESLint and Prettier configuration",
    "api": "HTTP API service",
    "web": "Web front end",
    "ui": "UI component library",
    "database": "Database client and schema",
}

_TURBO_PIPELINE: dict[str, Any] = {
    "build": {"dependsOn": ["^build"], "outputs": ["dist/**", ".next/**"]},
    "test": {"dependsOn": ["build"], "outputs": ["coverage/**"]},
    "lint": {"outputs": []},
    "dev": {"cache": False, "persistent": True},
    "clean": {"cache": False},
}


def workspace_globs(names: NameRegistry) -> list[str]:
    """Workspace group globs (``packages/*`` ...) in declaration order."""
    groups: list[str] = []
    for _, name in WORKSPACES:
        group = names.resolve(f"workspace.{name}").split("/", 1)[0]
        if group not in groups:
            groups.append(group)
    return [f"{group}/*" for group in groups]


class MonorepoGenerator(ArtifactGenerator):
    """Stages one package per workspace plus the root task-runner config."""

    family = "monorepo"

    def build(self) -> None:
        config = self.config
        names = self.names
        shared_dir = names.resolve(f"workspace.{SHARED_CONFIG}")
        shared_tsconfig = f"{shared_dir}/tsconfig.shared.json"
        shared_eslint = f"{shared_dir}/.eslintrc.shared.js"

        # 1. Shared tooling package
        self.stage(f"{shared_dir}/package.json", ArtifactFormat.JSON, self.shared_config_package())
        if config.use_typescript:
            self.stage(
                shared_tsconfig,
                ArtifactFormat.JSON,
                self.shared_tsconfig(shared_dir),
                depends_on=[ArtifactRef(path="tsconfig.base.json")],
            )
        self.stage(shared_eslint, ArtifactFormat.TEXT, self.template("monorepo/eslintrc.shared.js.j2"))
        self.stage(
            f"{shared_dir}/prettier.config.json",
            ArtifactFormat.JSON,
            {
                "semi": True,
                "trailingComma": "all",
                "singleQuote": True,
                "printWidth": 100,
                "tabWidth": 2,
                "useTabs": False,
                "arrowParens": "always",
                "endOfLine": "lf",
            },
        )

        # 2. Workspaces
        for _, name in WORKSPACES:
            if name == SHARED_CONFIG:
                continue
            directory = names.resolve(f"workspace.{name}")
            dependency_refs = [
                ArtifactRef(
                    path=f"{names.resolve(f'workspace.{dep}')}/package.json",
                    pointer="/name",
                    expected=names.resolve(f"package.{dep}"),
                )
                for dep in WORKSPACE_DEPENDENCIES[name]
            ]
            self.stage(
                f"{directory}/package.json",
                ArtifactFormat.JSON,
                self.workspace_package(name),
                depends_on=dependency_refs,
            )
            if config.use_typescript:
                self.stage(
                    f"{directory}/tsconfig.json",
                    ArtifactFormat.JSON,
                    self.workspace_tsconfig(name),
                    depends_on=[ArtifactRef(path=shared_tsconfig)],
                )
            self.stage(
                f"{directory}/.eslintrc.json",
                ArtifactFormat.JSON,
                {"root": True, "extends": [relative_to(directory, shared_eslint)]},
                depends_on=[ArtifactRef(path=shared_eslint)],
            )
        logger.debug("Staged %d workspaces", len(WORKSPACES))

        # 3. Root task runners and tooling
        if config.use_typescript:
            self.stage("tsconfig.base.json", ArtifactFormat.JSON, self.base_tsconfig())
        self.stage(
            "turbo.json",
            ArtifactFormat.JSON,
            {
                "$schema": "https://turbo.build/schema.json",
                "globalDependencies": [".env*"],
                "pipeline": {task: dict(spec) for task, spec in _TURBO_PIPELINE.items()},
            },
        )
        self.stage("nx.json", ArtifactFormat.JSON, self.nx_config())
        self.stage("lerna.json", ArtifactFormat.JSON, self.lerna_config())
        self.stage(
            "jest.config.js",
            ArtifactFormat.TEXT,
            self.template("monorepo/jest.config.js.j2", workspace_globs=workspace_globs(names)),
        )
        self.stage(
            "tools/webpack.config.js",
            ArtifactFormat.TEXT,
            self.template("monorepo/webpack.config.js.j2"),
        )
        if config.package_manager.value == "pnpm":
            self.stage(
                "pnpm-workspace.yaml",
                ArtifactFormat.YAML,
                {"packages": workspace_globs(names)},
            )

    # -- Packages ----------------------------------------------------------

    @property
    def internal_protocol(self) -> str:
        return "workspace:*" if self.config.package_manager.value == "pnpm" else "*"

    def shared_config_package(self) -> dict[str, Any]:
        return {
            "name": self.names.resolve(f"package.{SHARED_CONFIG}"),
            "version": "0.1.0",
            "private": True,
            "description": _DESCRIPTIONS[SHARED_CONFIG],
            "files": ["*.json", "*.js", ".eslintrc.shared.js"],
        }

    def workspace_package(self, name: str) -> dict[str, Any]:
        """``package.json`` for one workspace; each is versioned on its own."""
        typescript = self.config.use_typescript
        ext = ".ts,.tsx" if typescript else ".js,.jsx"
        package: dict[str, Any] = {
            "name": self.names.resolve(f"package.{name}"),
            "version": "0.1.0",
            "private": True,
            "description": _DESCRIPTIONS[name],
            "main": "dist/index.js" if typescript else "src/index.js",
        }
        if typescript:
            package["types"] = "dist/index.d.ts"

        scripts: dict[str, str] = {}
        if typescript:
            scripts["build"] = "tsc -b"
            scripts["dev"] = "tsc -b --watch"
        else:
            scripts["dev"] = "node --watch src/index.js"
        scripts["test"] = "jest --passWithNoTests"
        scripts["lint"] = f"eslint . --ext {ext}"
        scripts["clean"] = "rm -rf dist coverage"
        package["scripts"] = scripts

        package["dependencies"] = {
            self.names.resolve(f"package.{dep}"): self.internal_protocol
            for dep in WORKSPACE_DEPENDENCIES[name]
        }
        package["devDependencies"] = {
            self.names.resolve(f"package.{SHARED_CONFIG}"): self.internal_protocol
        }
        return package

    # -- TypeScript --------------------------------------------------------

    def base_tsconfig(self) -> dict[str, Any]:
        return {
            "compilerOptions": {
                "baseUrl": ".",
                "paths": {
                    self.names.resolve(f"package.{name}"): [
                        f"{self.names.resolve(f'workspace.{name}')}/src"
                    ]
                    for _, name in WORKSPACES
                    if name != SHARED_CONFIG
                },
            }
        }

    def shared_tsconfig(self, shared_dir: str) -> dict[str, Any]:
        return {
            "$schema": "https://json.schemastore.org/tsconfig",
            "extends": relative_to(shared_dir, "tsconfig.base.json"),
            "compilerOptions": {
                "target": "ES2022",
                "module": "commonjs",
                "lib": ["ES2022"],
                "declaration": True,
                "declarationMap": True,
                "sourceMap": True,
                "composite": True,
                "strict": True,
                "esModuleInterop": True,
                "skipLibCheck": True,
                "forceConsistentCasingInFileNames": True,
                "resolveJsonModule": True,
                "noUnusedLocals": True,
                "noUnusedParameters": True,
                "noImplicitReturns": True,
                "noFallthroughCasesInSwitch": True,
            },
        }

    def workspace_tsconfig(self, name: str) -> dict[str, Any]:
        directory = self.names.resolve(f"workspace.{name}")
        shared = f"{self.names.resolve(f'workspace.{SHARED_CONFIG}')}/tsconfig.shared.json"
        tsconfig: dict[str, Any] = {
            "extends": relative_to(directory, shared),
            "compilerOptions": {"rootDir": "./src", "outDir": "./dist"},
            "include": ["src/**/*"],
            "exclude": ["node_modules", "dist"],
        }
        if name in ("web", "ui"):
            tsconfig["compilerOptions"]["jsx"] = "react-jsx"
            tsconfig["compilerOptions"]["lib"] = ["ES2022", "DOM"]
        references = [
            {"path": relative_to(directory, self.names.resolve(f"workspace.{dep}"))}
            for dep in WORKSPACE_DEPENDENCIES[name]
        ]
        if references:
            tsconfig["references"] = references
        return tsconfig

    # -- Task runners ------------------------------------------------------

    def nx_config(self) -> dict[str, Any]:
        return {
            "$schema": "./node_modules/nx/schemas/nx-schema.json",
            "extends": "nx/presets/npm.json",
            "targetDefaults": {
                "build": {"dependsOn": ["^build"], "inputs": ["production", "^production"], "cache": True},
                "test": {"inputs": ["default", "^production"], "cache": True},
                "lint": {"cache": True},
            },
            "namedInputs": {
                "default": ["{projectRoot}/**/*", "sharedGlobals"],
                "production": [
                    "default",
                    "!{projectRoot}/**/?(*.)+(spec|test).[jt]s?(x)?(.snap)",
                    "!{projectRoot}/.eslintrc.json",
                ],
                "sharedGlobals": [],
            },
        }

    def lerna_config(self) -> dict[str, Any]:
        return {
            "$schema": "node_modules/lerna/schemas/lerna-schema.json",
            "version": "independent",
            "npmClient": self.config.package_manager.value,
            "packages": workspace_globs(self.names),
            "command": {
                "publish": {"conventionalCommits": True, "message": "chore(release): publish"},
                "version": {
                    "allowBranch": ["main", "release/*"],
                    "conventionalCommits": True,
                    "createRelease": "github",
                    "message": "chore(release): version %v",
                },
            },
        }


def relative_to(directory: str, target: str) -> str:
    """Path of *target* relative to *directory*, both repository-relative.

    Always starts with ``./`` or ``../`` so tools treat it as a file path.
    """
    rel = posixpath.relpath(target, directory)
    return rel if rel.startswith("../") else f"./{rel}"
