"""Error taxonomy for platformgen.

Every failure a generation run can hit maps to one of these exception types,
and the CLI maps each type to an exit code (see ``platformgen.cli``).
"""

from __future__ import annotations

from typing import Any


class PlatformgenError(Exception):
    """Base class for all platformgen errors."""


class ConfigValidationError(PlatformgenError):
    """Raised when the option bag is invalid or self-contradictory.

    All problems are collected before raising so the user sees every
    violation at once.
    """

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        summary = "; ".join(self.problems) or "invalid configuration"
        super().__init__(f"Invalid configuration: {summary}")


class NameCollisionError(PlatformgenError):
    """Raised when two concepts slugify to the same name, or when a frozen
    registry is asked for a concept it was never told about."""

    def __init__(self, message: str, concept: str = "", name: str = ""):
        self.concept = concept
        self.name = name
        super().__init__(message)


class UnresolvedReferenceError(PlatformgenError):
    """Raised when an artifact depends on something this run did not produce."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("Unresolved references:\n  " + "\n  ".join(self.problems))


class UnreferencedSecretError(UnresolvedReferenceError):
    """Raised when a declared secret has no consuming artifact."""


class PathCollisionError(PlatformgenError):
    """Raised when two generator families stage the same output path."""

    def __init__(self, paths: dict[str, list[str]]):
        self.paths = dict(paths)
        details = ", ".join(
            f"{path} ({' & '.join(owners)})" for path, owners in sorted(self.paths.items())
        )
        super().__init__(f"Paths staged by more than one generator: {details}")


class RenderError(PlatformgenError):
    """Raised when an artifact body cannot be serialized."""

    def __init__(self, path: str, node: Any, reason: str):
        self.path = path
        self.node = node
        self.reason = reason
        super().__init__(f"{path}: {reason} (offending node: {node!r})")


class WriteConflictError(PlatformgenError):
    """Raised when staged output would overwrite files this tool did not author."""

    def __init__(self, paths: list[str]):
        self.paths = sorted(paths)
        listing = "\n  ".join(self.paths)
        super().__init__(
            "Refusing to overwrite files with foreign content:\n  "
            f"{listing}\n"
            "Use --force to overwrite, or --dry-run to preview the changes."
        )
