"""GitHub workflows, release tooling, repository governance and ArgoCD.

Workflow bodies are plain dicts; every job a branch protection rule or an
ArgoCD application relies on is referenced through :class:`ArtifactRef` so
the consistency pass catches a renamed job or overlay.
"""

from __future__ import annotations

from typing import Any

from ..artifacts import ArtifactFormat, ArtifactRef
from ..naming import APP_SECRETS, secret_key
from . import fragments
from .base import ArtifactGenerator
from .kubernetes_gen import K8S_BASE_DIR, overlay_dir
from .terraform_gen import TERRAFORM_DIR

WORKFLOWS_DIR = ".github/workflows"
ARGOCD_DIR = ".argocd"

_RUNNER = "ubuntu-latest"
_ARGOCD_NAMESPACE = "argocd"
_IN_CLUSTER = "https://kubernetes.default.svc"

# Job id -> display name; the display name is the status check context.
CI_JOBS: dict[str, str] = {"test": "Test", "build": "Build", "docker": "Docker"}
SECURITY_JOBS: dict[str, str] = {
    "dependency-check": "Dependency Check",
    "codeql": "CodeQL Analysis",
    "trivy": "Trivy Scan",
}


def secret_expr(name: str) -> str:
    """GitHub Actions expression reading repository secret *name*."""
    return f"${{{{ secrets.{name} }}}}"


class GitOpsGenerator(ArtifactGenerator):
    """Stages CI/CD, release and governance files."""

    family = "gitops"

    def build(self) -> None:
        config = self.config
        names = self.names
        ci_path = f"{WORKFLOWS_DIR}/ci-cd.yml"
        codecov = names.resolve("secret.codecov_token")
        npm_token = names.resolve("secret.npm_token")

        # 1. Workflows
        self.stage(
            ci_path,
            ArtifactFormat.YAML,
            self.ci_workflow(),
            depends_on=[ArtifactRef(path="Dockerfile"), ArtifactRef(path="package.json")],
            secrets=[codecov],
        )
        self.declare_secret(codecov, [ci_path])

        pr_path = f"{WORKFLOWS_DIR}/pr-validation.yml"
        self.stage(pr_path, ArtifactFormat.YAML, self.pr_workflow())

        release_path = f"{WORKFLOWS_DIR}/release.yml"
        self.stage(
            release_path,
            ArtifactFormat.YAML,
            self.release_workflow(),
            depends_on=[self._release_config_ref()],
            secrets=[npm_token],
        )
        self.declare_secret(npm_token, [release_path])

        required_checks = [
            ArtifactRef(path=ci_path, pointer=f"/jobs/{job}/name", expected=label)
            for job, label in CI_JOBS.items()
        ]
        if config.security_scanning:
            security_path = f"{WORKFLOWS_DIR}/security.yml"
            snyk = names.resolve("secret.snyk_token")
            self.stage(security_path, ArtifactFormat.YAML, self.security_workflow(), secrets=[snyk])
            self.declare_secret(snyk, [security_path])
            required_checks.append(
                ArtifactRef(
                    path=security_path,
                    pointer="/jobs/codeql/name",
                    expected=SECURITY_JOBS["codeql"],
                )
            )

        if config.kubernetes:
            self._stage_deployment()

        # 2. Release configuration and branch protection
        self.stage(
            "scripts/setup-branch-protection.js",
            ArtifactFormat.TEXT,
            self.template(
                "gitops/setup-branch-protection.js.j2",
                required_checks=[ref.expected for ref in required_checks],
                github_org=config.github_org,
            ),
            depends_on=required_checks,
        )
        if config.monorepo:
            self.stage(".changeset/config.json", ArtifactFormat.JSON, self.changeset_config())
            self.stage(
                ".changeset/README.md",
                ArtifactFormat.MARKDOWN,
                self.template("gitops/changeset-README.md.j2"),
            )
        else:
            self.stage(".releaserc.json", ArtifactFormat.JSON, self.semantic_release_config())

        # 3. Governance
        self.stage(".github/dependabot.yml", ArtifactFormat.YAML, self.dependabot())
        self.stage(
            ".github/CODEOWNERS",
            ArtifactFormat.TEXT,
            self.template("gitops/CODEOWNERS.j2", github_org=config.github_org),
        )
        self.stage(
            ".github/pull_request_template.md",
            ArtifactFormat.MARKDOWN,
            self.template("gitops/pull_request_template.md.j2"),
        )
        self.stage(".github/ISSUE_TEMPLATE/bug_report.yml", ArtifactFormat.YAML, self.bug_report())
        self.stage(
            ".github/ISSUE_TEMPLATE/feature_request.yml",
            ArtifactFormat.YAML,
            self.feature_request(),
        )
        self.stage(
            ".github/ISSUE_TEMPLATE/config.yml",
            ArtifactFormat.YAML,
            {
                "blank_issues_enabled": False,
                "contact_links": [
                    {
                        "name": "Questions",
                        "url": f"{self.repository_url}/discussions",
                        "about": "Ask and answer questions in GitHub Discussions.",
                    }
                ],
            },
        )

    def _stage_deployment(self) -> None:
        names = self.names
        api = names.resolve("api")
        namespace = names.resolve("namespace")
        deploy_path = f"{WORKFLOWS_DIR}/deploy.yml"
        kubeconfig = names.resolve("secret.kubeconfig")
        secret_names = self.secret_names(APP_SECRETS)

        deployment_ref = ArtifactRef(
            path=f"{K8S_BASE_DIR}/deployment.yaml", pointer="/metadata/name", expected=api
        )
        namespace_ref = ArtifactRef(
            path=f"{K8S_BASE_DIR}/namespace.yaml", pointer="/metadata/name", expected=namespace
        )
        overlay_refs = [
            ArtifactRef(path=f"{overlay_dir(env.value)}/kustomization.yaml")
            for env in self.config.environments
        ]

        self.stage(
            deploy_path,
            ArtifactFormat.YAML,
            self.deploy_workflow(secret_names),
            depends_on=[deployment_ref, namespace_ref, *overlay_refs],
            secrets=[kubeconfig, *secret_names],
        )
        self.declare_secret(kubeconfig, [deploy_path])
        for name in secret_names:
            self.declare_secret(name, [deploy_path])

        project_path = f"{ARGOCD_DIR}/project.yaml"
        self.stage(project_path, ArtifactFormat.YAML, self.argocd_project(), depends_on=[namespace_ref])
        project_ref = ArtifactRef(
            path=project_path, pointer="/metadata/name", expected=names.resolve("argocd.project")
        )
        for env, overlay_ref in zip(self.config.environments, overlay_refs):
            self.stage(
                f"{ARGOCD_DIR}/applications/{env.value}.yaml",
                ArtifactFormat.YAML,
                self.argocd_application(env.value),
                depends_on=[project_ref, overlay_ref, namespace_ref],
            )

    # -- Shared steps ------------------------------------------------------

    @property
    def repository_url(self) -> str:
        return f"https://github.com/{self.config.github_org}/{self.names.resolve('project')}"

    def _release_config_ref(self) -> ArtifactRef:
        if self.config.monorepo:
            return ArtifactRef(path=".changeset/config.json")
        return ArtifactRef(path=".releaserc.json")

    def checkout(self, **with_: Any) -> dict[str, Any]:
        step: dict[str, Any] = {"name": "Checkout", "uses": self.versions.uses("actions/checkout")}
        if with_:
            step["with"] = dict(with_)
        return step

    def setup_node(self) -> list[dict[str, Any]]:
        """Steps installing the package manager, Node.js and dependencies."""
        manager = self.config.package_manager.value
        steps: list[dict[str, Any]] = []
        if manager == "pnpm":
            steps.append(
                {
                    "name": "Setup pnpm",
                    "uses": self.versions.uses("pnpm/action-setup"),
                    "with": {"version": 9},
                }
            )
        steps.append(
            {
                "name": "Setup Node.js",
                "uses": self.versions.uses("actions/setup-node"),
                "with": {"node-version": self.config.node_version, "cache": manager},
            }
        )
        steps.append({"name": "Install dependencies", "run": self.context()["commands"]["install"]})
        return steps

    def run_script(self, name: str, script: str) -> dict[str, Any]:
        return {"name": name, "run": f"{self.context()['commands']['run']} {script}"}

    # -- Workflows ---------------------------------------------------------

    def ci_workflow(self) -> dict[str, Any]:
        """Test, build and image publishing; independent of the cloud target."""
        config = self.config
        image = fragments.image_repository(config, self.names)

        test_steps = [self.checkout(), *self.setup_node(), self.run_script("Lint", "lint")]
        if config.use_typescript:
            test_steps.append(self.run_script("Type check", "type-check"))
        test_steps.append(self.run_script("Test", "test -- --coverage"))
        test_steps.append(
            {
                "name": "Upload coverage",
                "uses": self.versions.uses("codecov/codecov-action"),
                "with": {"token": secret_expr(self.names.resolve("secret.codecov_token"))},
            }
        )

        build_steps = [self.checkout(), *self.setup_node()]
        if config.use_typescript or config.monorepo:
            build_steps.append(self.run_script("Build", "build"))
            build_steps.append(
                {
                    "name": "Upload artifacts",
                    "uses": self.versions.uses("actions/upload-artifact"),
                    "with": {"name": "dist", "path": "**/dist", "retention-days": 7},
                }
            )
        else:
            build_steps.append({"name": "Verify image context", "run": "test -f Dockerfile"})

        docker_steps = [
            self.checkout(),
            {"name": "Set up Docker Buildx", "uses": self.versions.uses("docker/setup-buildx-action")},
            {
                "name": "Log in to GitHub Container Registry",
                "if": "github.event_name != 'pull_request'",
                "uses": self.versions.uses("docker/login-action"),
                "with": {
                    "registry": "ghcr.io",
                    "username": "${{ github.actor }}",
                    "password": "${{ secrets.GITHUB_TOKEN }}",
                },
            },
            {
                "name": "Extract metadata",
                "id": "meta",
                "uses": self.versions.uses("docker/metadata-action"),
                "with": {
                    "images": image,
                    "tags": "\n".join(
                        [
                            "type=ref,event=branch",
                            "type=ref,event=pr",
                            "type=semver,pattern={{version}}",
                            "type=sha",
                            "type=raw,value=latest,enable={{is_default_branch}}",
                        ]
                    ),
                },
            },
            {
                "name": "Build and push",
                "uses": self.versions.uses("docker/build-push-action"),
                "with": {
                    "context": ".",
                    "push": "${{ github.event_name != 'pull_request' }}",
                    "tags": "${{ steps.meta.outputs.tags }}",
                    "labels": "${{ steps.meta.outputs.labels }}",
                    "cache-from": "type=gha",
                    "cache-to": "type=gha,mode=max",
                },
            },
        ]

        return {
            "name": "CI/CD",
            "on": {
                "push": {"branches": ["main", "develop"]},
                "pull_request": {"branches": ["main", "develop"]},
            },
            "concurrency": {
                "group": "${{ github.workflow }}-${{ github.ref }}",
                "cancel-in-progress": True,
            },
            "jobs": {
                "test": {"name": CI_JOBS["test"], "runs-on": _RUNNER, "steps": test_steps},
                "build": {
                    "name": CI_JOBS["build"],
                    "runs-on": _RUNNER,
                    "needs": "test",
                    "steps": build_steps,
                },
                "docker": {
                    "name": CI_JOBS["docker"],
                    "runs-on": _RUNNER,
                    "needs": ["test", "build"],
                    "permissions": {"contents": "read", "packages": "write"},
                    "steps": docker_steps,
                },
            },
        }

    def pr_workflow(self) -> dict[str, Any]:
        commands = self.context()["commands"]
        return {
            "name": "Pull Request Validation",
            "on": {"pull_request": {"types": ["opened", "synchronize", "reopened", "edited"]}},
            "permissions": {"contents": "read", "pull-requests": "read"},
            "jobs": {
                "validate": {
                    "name": "Validate PR",
                    "runs-on": _RUNNER,
                    "steps": [
                        self.checkout(**{"fetch-depth": 0}),
                        *self.setup_node(),
                        {
                            "name": "Lint PR title",
                            "uses": self.versions.uses("amannn/action-semantic-pull-request"),
                            "env": {"GITHUB_TOKEN": "${{ secrets.GITHUB_TOKEN }}"},
                        },
                        {
                            "name": "Check commit messages",
                            "run": (
                                f"{commands['exec']} commitlint "
                                "--from ${{ github.event.pull_request.base.sha }} "
                                "--to ${{ github.event.pull_request.head.sha }}"
                            ),
                        },
                        self.run_script("Lint", "lint"),
                        self.run_script("Test", "test -- --coverage"),
                    ],
                },
                "dependency-review": {
                    "name": "Dependency Review",
                    "runs-on": _RUNNER,
                    "steps": [
                        self.checkout(),
                        {
                            "name": "Dependency Review",
                            "uses": self.versions.uses("actions/dependency-review-action"),
                            "with": {"fail-on-severity": "high"},
                        },
                    ],
                },
            },
        }

    def release_workflow(self) -> dict[str, Any]:
        """Changesets for monorepos, semantic-release otherwise."""
        npm_token = secret_expr(self.names.resolve("secret.npm_token"))
        env = {"GITHUB_TOKEN": "${{ secrets.GITHUB_TOKEN }}", "NPM_TOKEN": npm_token}
        steps = [self.checkout(**{"fetch-depth": 0}), *self.setup_node()]
        run = self.context()["commands"]["run"]
        if self.config.monorepo:
            steps.append(
                {
                    "name": "Create release pull request or publish",
                    "uses": self.versions.uses("changesets/action"),
                    "with": {"publish": f"{run} release", "version": f"{run} version-packages"},
                    "env": env,
                }
            )
        else:
            steps.append(
                {
                    "name": "Semantic release",
                    "run": f"{self.context()['commands']['exec']} semantic-release",
                    "env": env,
                }
            )
        return {
            "name": "Release",
            "on": {"push": {"branches": ["main"]}},
            "concurrency": {"group": "${{ github.workflow }}-${{ github.ref }}"},
            "permissions": {
                "contents": "write",
                "issues": "write",
                "pull-requests": "write",
                "packages": "write",
            },
            "jobs": {"release": {"name": "Release", "runs-on": _RUNNER, "steps": steps}},
        }

    def security_workflow(self) -> dict[str, Any]:
        commands = self.context()["commands"]
        snyk = secret_expr(self.names.resolve("secret.snyk_token"))
        language = "javascript-typescript" if self.config.use_typescript else "javascript"
        return {
            "name": "Security",
            "on": {
                "push": {"branches": ["main"]},
                "pull_request": {"branches": ["main"]},
                "schedule": [{"cron": "0 6 * * 1"}],
            },
            "permissions": {"contents": "read", "security-events": "write"},
            "jobs": {
                "dependency-check": {
                    "name": SECURITY_JOBS["dependency-check"],
                    "runs-on": _RUNNER,
                    "steps": [
                        self.checkout(),
                        *self.setup_node(),
                        {"name": "Audit dependencies", "run": commands["audit"]},
                        {
                            "name": "Snyk",
                            "uses": self.versions.uses("snyk/actions/node"),
                            "continue-on-error": True,
                            "env": {"SNYK_TOKEN": snyk},
                            "with": {"args": "--severity-threshold=high"},
                        },
                    ],
                },
                "codeql": {
                    "name": SECURITY_JOBS["codeql"],
                    "runs-on": _RUNNER,
                    "permissions": {"actions": "read", "contents": "read", "security-events": "write"},
                    "steps": [
                        self.checkout(),
                        {
                            "name": "Initialize CodeQL",
                            "uses": self.versions.uses("github/codeql-action/init"),
                            "with": {"languages": language},
                        },
                        {"name": "Autobuild", "uses": self.versions.uses("github/codeql-action/autobuild")},
                        {
                            "name": "Perform CodeQL Analysis",
                            "uses": self.versions.uses("github/codeql-action/analyze"),
                        },
                    ],
                },
                "trivy": {
                    "name": SECURITY_JOBS["trivy"],
                    "runs-on": _RUNNER,
                    "steps": [
                        self.checkout(),
                        {
                            "name": "Run Trivy filesystem scan",
                            "uses": self.versions.uses("aquasecurity/trivy-action"),
                            "with": {
                                "scan-type": "fs",
                                "scan-ref": ".",
                                "format": "sarif",
                                "output": "trivy-results.sarif",
                                "severity": "CRITICAL,HIGH",
                            },
                        },
                        {
                            "name": "Upload Trivy results",
                            "if": "always()",
                            "uses": self.versions.uses("github/codeql-action/upload-sarif"),
                            "with": {"sarif_file": "trivy-results.sarif"},
                        },
                    ],
                },
            },
        }

    def deploy_workflow(self, secret_names: list[str]) -> dict[str, Any]:
        """Manual kustomize deploy; secrets.env is built from repository secrets."""
        names = self.names
        environments = [env.value for env in self.config.environments]
        overlay = overlay_dir("$ENVIRONMENT")
        secrets_file = f"{overlay}/secrets.env"

        env: dict[str, str] = {
            "ENVIRONMENT": "${{ inputs.environment }}",
            "KUBECONFIG_DATA": secret_expr(names.resolve("secret.kubeconfig")),
        }
        lines = [": > " + secrets_file]
        for name in secret_names:
            env[name] = secret_expr(name)
            lines.append(f'printf \'%s=%s\\n\' {secret_key(name)} "${name}" >> {secrets_file}')

        return {
            "name": "Deploy",
            "on": {
                "workflow_dispatch": {
                    "inputs": {
                        "environment": {
                            "description": "Environment to deploy to",
                            "required": True,
                            "default": environments[0],
                            "type": "choice",
                            "options": environments,
                        }
                    }
                }
            },
            "concurrency": {"group": "deploy-${{ inputs.environment }}"},
            "jobs": {
                "deploy": {
                    "name": "Deploy",
                    "runs-on": _RUNNER,
                    "environment": "${{ inputs.environment }}",
                    "env": env,
                    "steps": [
                        self.checkout(),
                        {
                            "name": "Set up kubectl",
                            "uses": self.versions.uses("azure/setup-kubectl"),
                        },
                        {
                            "name": "Configure cluster access",
                            "run": 'mkdir -p ~/.kube\necho "$KUBECONFIG_DATA" | base64 -d > ~/.kube/config',
                        },
                        {"name": "Write secrets.env", "run": "\n".join(lines)},
                        {"name": "Apply overlay", "run": f"kubectl apply -k {overlay}"},
                        {
                            "name": "Wait for rollout",
                            "run": (
                                f"kubectl rollout status deployment/{names.resolve('api')} "
                                f"-n {names.resolve('namespace')} --timeout=300s"
                            ),
                        },
                        {"name": "Remove secrets.env", "if": "always()", "run": f"rm -f {secrets_file}"},
                    ],
                }
            },
        }

    # -- ArgoCD ------------------------------------------------------------

    def argocd_project(self) -> dict[str, Any]:
        project = self.names.resolve("argocd.project")
        return {
            "apiVersion": "argoproj.io/v1alpha1",
            "kind": "AppProject",
            "metadata": {"name": project, "namespace": _ARGOCD_NAMESPACE},
            "spec": {
                "description": f"Deployments of {self.names.resolve('project')}",
                "sourceRepos": [f"{self.repository_url}.git"],
                "destinations": [
                    {"namespace": self.names.resolve("namespace"), "server": _IN_CLUSTER}
                ],
                "clusterResourceWhitelist": [{"group": "", "kind": "Namespace"}],
                "namespaceResourceWhitelist": [{"group": "*", "kind": "*"}],
            },
        }

    def argocd_application(self, env: str) -> dict[str, Any]:
        sync_policy: dict[str, Any] = {
            "syncOptions": ["Validate=true", "CreateNamespace=true", "PruneLast=true"],
            "retry": {
                "limit": 5,
                "backoff": {"duration": "5s", "factor": 2, "maxDuration": "3m"},
            },
        }
        if env != "production":
            sync_policy["automated"] = {"prune": True, "selfHeal": True, "allowEmpty": False}
        return {
            "apiVersion": "argoproj.io/v1alpha1",
            "kind": "Application",
            "metadata": {
                "name": self.names.resolve(f"argocd.app.{env}"),
                "namespace": _ARGOCD_NAMESPACE,
                "labels": {"environment": env},
            },
            "spec": {
                "project": self.names.resolve("argocd.project"),
                "source": {
                    "repoURL": f"{self.repository_url}.git",
                    "targetRevision": "HEAD",
                    "path": overlay_dir(env),
                },
                "destination": {"server": _IN_CLUSTER, "namespace": self.names.resolve("namespace")},
                "syncPolicy": sync_policy,
            },
        }

    # -- Release tooling ---------------------------------------------------

    def changeset_config(self) -> dict[str, Any]:
        return {
            "$schema": "https://unpkg.com/@changesets/config@3.0.0/schema.json",
            "changelog": "@changesets/cli/changelog",
            "commit": False,
            "fixed": [],
            "linked": [],
            "access": "restricted",
            "baseBranch": "main",
            "updateInternalDependencies": "patch",
            "ignore": [],
        }

    def semantic_release_config(self) -> dict[str, Any]:
        return {
            "branches": ["main"],
            "plugins": [
                "@semantic-release/commit-analyzer",
                "@semantic-release/release-notes-generator",
                "@semantic-release/changelog",
                ["@semantic-release/npm", {"npmPublish": False}],
                "@semantic-release/github",
                [
                    "@semantic-release/git",
                    {
                        "assets": ["CHANGELOG.md", "package.json"],
                        "message": (
                            "chore(release): ${nextRelease.version} [skip ci]\n\n"
                            "${nextRelease.notes}"
                        ),
                    },
                ],
            ],
        }

    # -- Governance --------------------------------------------------------

    def dependabot(self) -> dict[str, Any]:
        weekly = {"interval": "weekly", "day": "monday", "time": "04:00"}
        updates: list[dict[str, Any]] = [
            {
                "package-ecosystem": "npm",
                "directory": "/",
                "schedule": dict(weekly),
                "open-pull-requests-limit": 10,
                "labels": ["dependencies"],
                "commit-message": {
                    "prefix": "fix",
                    "prefix-development": "chore",
                    "include": "scope",
                },
            },
            {
                "package-ecosystem": "github-actions",
                "directory": "/",
                "schedule": dict(weekly),
                "labels": ["github-actions"],
            },
            {
                "package-ecosystem": "docker",
                "directory": "/",
                "schedule": dict(weekly),
                "labels": ["docker"],
            },
        ]
        if self.config.terraform_enabled:
            updates.append(
                {
                    "package-ecosystem": "terraform",
                    "directory": f"/{TERRAFORM_DIR}",
                    "schedule": dict(weekly),
                    "labels": ["terraform"],
                }
            )
        return {"version": 2, "updates": updates}

    def bug_report(self) -> dict[str, Any]:
        return {
            "name": "Bug Report",
            "description": "Create a report to help us improve",
            "title": "[BUG] ",
            "labels": ["bug", "triage"],
            "body": [
                {"type": "markdown", "attributes": {"value": "Thanks for taking the time to report a bug."}},
                {
                    "type": "textarea",
                    "id": "description",
                    "attributes": {
                        "label": "Describe the bug",
                        "description": "A clear and concise description of what the bug is.",
                    },
                    "validations": {"required": True},
                },
                {
                    "type": "textarea",
                    "id": "reproduction",
                    "attributes": {
                        "label": "Steps to reproduce",
                        "value": "1.\n2.\n3.",
                    },
                    "validations": {"required": True},
                },
                {
                    "type": "textarea",
                    "id": "expected",
                    "attributes": {"label": "Expected behavior"},
                    "validations": {"required": True},
                },
                {
                    "type": "dropdown",
                    "id": "severity",
                    "attributes": {
                        "label": "Severity",
                        "options": [
                            "Critical - System is unusable",
                            "High - Major feature broken",
                            "Medium - Minor feature broken",
                            "Low - Cosmetic issue",
                        ],
                    },
                    "validations": {"required": True},
                },
                {
                    "type": "input",
                    "id": "version",
                    "attributes": {"label": "Version"},
                    "validations": {"required": True},
                },
            ],
        }

    def feature_request(self) -> dict[str, Any]:
        return {
            "name": "Feature Request",
            "description": "Suggest an idea for this project",
            "title": "[FEATURE] ",
            "labels": ["enhancement"],
            "body": [
                {
                    "type": "textarea",
                    "id": "problem",
                    "attributes": {
                        "label": "Is your feature request related to a problem?",
                        "placeholder": "I'm always frustrated when...",
                    },
                    "validations": {"required": True},
                },
                {
                    "type": "textarea",
                    "id": "solution",
                    "attributes": {"label": "Describe the solution you'd like"},
                    "validations": {"required": True},
                },
                {
                    "type": "textarea",
                    "id": "alternatives",
                    "attributes": {"label": "Describe alternatives you've considered"},
                },
                {
                    "type": "checkboxes",
                    "id": "terms",
                    "attributes": {
                        "label": "Confirmation",
                        "options": [
                            {"label": "I have searched for existing feature requests", "required": True}
                        ],
                    },
                },
            ],
        }
