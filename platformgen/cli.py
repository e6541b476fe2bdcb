"""Command-line interface: ``platformgen generate``.

Exit codes:
    0  success (including ``--dry-run``)
    1  invalid configuration
    2  write conflict
    3  render/reference/name/path errors and anything unexpected
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Any

from .config import (
    OPTIONS_FILENAME,
    CloudTarget,
    Configuration,
    ConfigResolver,
    PackageManager,
    infer_host_defaults,
    load_options_file,
    merge_options,
    options_from_env,
)
from .errors import ConfigValidationError, PlatformgenError, WriteConflictError
from .scaffolder.generator import GenerationResult, ProjectGenerator
from .utils import (
    configure_logging,
    console,
    print_error,
    print_path_list,
    print_phase_header,
    print_success,
    print_summary_table,
    print_warning,
)
from .versions import resolve_action_versions

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG = 1
EXIT_CONFLICT = 2
EXIT_FAILURE = 3


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="platformgen",
        description="Scaffold CI/CD, infrastructure and repository configuration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  platformgen generate --name acme --kubernetes --cloud aws\n"
            "  platformgen generate --monorepo --package-manager pnpm --dry-run\n"
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    gen = subparsers.add_parser("generate", help="Generate the configuration tree")
    gen.add_argument("--name", dest="project_name", help="Project name (default: package.json name)")
    gen.add_argument("--description", help="One-line project description")
    gen.add_argument("--cloud", choices=[c.value for c in CloudTarget], help="Cloud target")
    gen.add_argument(
        "--package-manager",
        choices=[p.value for p in PackageManager],
        help="JavaScript package manager (default: npm)",
    )
    gen.add_argument("--github-org", help="GitHub organisation for CODEOWNERS and image names")
    gen.add_argument("--node-version", help="Node.js major version (default: 20)")

    for flag, dest, label in (
        ("kubernetes", "kubernetes", "Kubernetes manifests"),
        ("helm", "helm", "a Helm chart (requires --kubernetes)"),
        ("service-mesh", "service_mesh", "Istio policies (requires --kubernetes)"),
        ("security", "security", "the security scanning workflow"),
        ("observability", "observability", "the monitoring stack"),
        ("monorepo", "monorepo", "monorepo workspaces"),
        ("typescript", "typescript", "TypeScript configuration"),
    ):
        gen.add_argument(
            f"--{flag}",
            dest=dest,
            action=argparse.BooleanOptionalAction,
            default=None,
            help=f"Emit {label}",
        )

    gen.add_argument(
        "--output-dir", "-o", default=".", help="Directory to write into (default: current)"
    )
    gen.add_argument("--config", dest="config_file", help="YAML or JSON options file")
    gen.add_argument("--dry-run", action="store_true", help="Show what would change; write nothing")
    gen.add_argument(
        "--force", action="store_true", help="Overwrite files that were modified by hand"
    )
    gen.add_argument(
        "--refresh-actions",
        action="store_true",
        help="Look up the latest major version of each GitHub Action",
    )
    gen.add_argument("--verbose", "-v", action="store_true", help="Debug logging and tracebacks")
    return parser


_OPTION_KEYS = (
    "project_name",
    "description",
    "cloud",
    "package_manager",
    "github_org",
    "node_version",
    "kubernetes",
    "helm",
    "service_mesh",
    "security",
    "observability",
    "monorepo",
    "typescript",
)


def gather_options(args: argparse.Namespace) -> dict[str, Any]:
    """Merge host inference, options file, environment and CLI flags."""
    output_dir = Path(args.output_dir)
    if args.config_file:
        file_options = load_options_file(args.config_file)
    elif (output_dir / OPTIONS_FILENAME).is_file():
        file_options = load_options_file(output_dir / OPTIONS_FILENAME)
    else:
        file_options = {}
    flags = {key: getattr(args, key) for key in _OPTION_KEYS}
    return merge_options(infer_host_defaults(output_dir), file_options, options_from_env(), flags)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def run_generate(args: argparse.Namespace) -> GenerationResult:
    config = ConfigResolver().resolve(gather_options(args))
    print_phase_header("Configuration")
    print_summary_table(_describe(config), title=config.project_name)

    versions = await resolve_action_versions(refresh=args.refresh_actions)
    if args.refresh_actions and versions.source == "pinned":
        print_warning("Could not reach GitHub; using pinned action versions.")

    print_phase_header("Generate")
    generator = ProjectGenerator(config, versions=versions)
    return await generator.generate(args.output_dir, force=args.force, dry_run=args.dry_run)


def _describe(config: Configuration) -> dict[str, Any]:
    return {
        "Cloud": config.cloud_target.value,
        "Package manager": config.package_manager.value,
        "TypeScript": config.use_typescript,
        "Monorepo": config.monorepo,
        "Kubernetes": config.kubernetes,
        "Helm": config.helm,
        "Service mesh": config.service_mesh,
        "Security scanning": config.security_scanning,
        "Observability": config.observability,
    }


def _report(result: GenerationResult, dry_run: bool) -> None:
    write = result.write
    if write is None:
        return
    if dry_run:
        print_path_list(write.written, "Would write:", style="cyan")
    by_family: dict[str, int] = {}
    for artifact in result.artifacts:
        by_family[artifact.generator] = by_family.get(artifact.generator, 0) + 1
    summary: dict[str, Any] = {f"{family} artifacts": n for family, n in sorted(by_family.items())}
    summary["Written" if not dry_run else "Would write"] = len(write.written)
    summary["Skipped"] = len(write.skipped)
    summary["Secrets (names only)"] = ", ".join(s.logical_name for s in result.secrets)
    print_summary_table(summary, title="Result")
    if dry_run:
        print_success("Dry run complete; nothing was written.")
    else:
        print_success(f"Wrote {len(write.written)} files ({len(write.skipped)} unchanged).")


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        result = asyncio.run(run_generate(args))
    except ConfigValidationError as exc:
        print_error("invalid configuration")
        print_path_list(exc.problems, "Problems:", style="red")
        return EXIT_CONFIG
    except WriteConflictError as exc:
        print_error("files were modified outside platformgen; nothing was written")
        print_path_list(exc.paths, "Conflicts:", style="red")
        console.print("Use --force to overwrite, --dry-run to preview.")
        return EXIT_CONFLICT
    except PlatformgenError as exc:
        print_error(str(exc))
        if args.verbose:
            console.print_exception()
        return EXIT_FAILURE
    except Exception as exc:  # noqa: BLE001
        print_error(f"unexpected failure: {exc}")
        if args.verbose:
            console.print_exception()
        else:
            logger.debug("Unexpected failure", exc_info=True)
        return EXIT_FAILURE

    _report(result, args.dry_run)
    return EXIT_OK
