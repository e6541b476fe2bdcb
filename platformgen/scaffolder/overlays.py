"""Base-then-overlay support.

A base artifact is generated once; each environment gets a *minimal patch*
carrying only the fields allowed to vary (replicas, resource limits, image
tag).  :func:`apply_overlay` is the kustomize-equivalent merge used to check
that base + patch equals the environment document built directly.
"""

from __future__ import annotations

import copy
from typing import Any

from ..artifacts import DEFAULT_OVERLAYS, EnvironmentOverlay
from ..config import Configuration, Environment
from ..naming import NameRegistry
from . import fragments

# Fields an overlay may change; "[]" matches every element of a list.
ALLOWED_OVERLAY_FIELDS: tuple[str, ...] = (
    "spec/replicas",
    "spec/template/spec/containers/[]/image",
    "spec/template/spec/containers/[]/resources/limits/cpu",
    "spec/template/spec/containers/[]/resources/limits/memory",
)

ALLOWED_HELM_VALUE_FIELDS: tuple[str, ...] = (
    "replicaCount",
    "image/tag",
    "resources/limits/cpu",
    "resources/limits/memory",
)


def overlays_for(config: Configuration) -> list[EnvironmentOverlay]:
    return [DEFAULT_OVERLAYS[env] for env in config.environments]


def overlay_for(env: Environment) -> EnvironmentOverlay:
    return DEFAULT_OVERLAYS[env]


# ---------------------------------------------------------------------------
# Patches
# ---------------------------------------------------------------------------


def deployment_patch(names: NameRegistry, overlay: EnvironmentOverlay) -> dict[str, Any]:
    """Strategic-merge patch for the API Deployment.

    Names are read from the registry, never re-spelled, so the patch always
    targets the base objects.
    """
    api = names.resolve("api")
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": api},
        "spec": {
            "replicas": overlay.replica_count,
            "template": {
                "spec": {
                    "containers": [
                        {
                            "name": api,
                            "resources": {"limits": overlay.resource_limits.as_dict()},
                        }
                    ]
                }
            },
        },
    }


def image_override(
    config: Configuration, names: NameRegistry, overlay: EnvironmentOverlay
) -> dict[str, str]:
    """Kustomize ``images`` entry retagging the API image."""
    return {
        "name": fragments.image_repository(config, names),
        "newTag": overlay.image_tag,
    }


def helm_values_patch(overlay: EnvironmentOverlay) -> dict[str, Any]:
    """Per-environment Helm values file content."""
    return {
        "replicaCount": overlay.replica_count,
        "image": {"tag": overlay.image_tag},
        "resources": {"limits": overlay.resource_limits.as_dict()},
    }


def environment_deployment(
    config: Configuration, names: NameRegistry, overlay: EnvironmentOverlay
) -> dict[str, Any]:
    """The environment's Deployment, built directly from the fragments."""
    return fragments.deployment(
        config,
        names,
        replicas=overlay.replica_count,
        limits=overlay.resource_limits.as_dict(),
        image_tag=overlay.image_tag,
    )


# ---------------------------------------------------------------------------
# Merging
# ---------------------------------------------------------------------------


def strategic_merge(base: Any, patch: Any) -> Any:
    """Merge *patch* into a copy of *base*.

    Mappings merge recursively.  Lists whose items are all mappings with a
    ``name`` key merge item-by-item on that key; any other list is replaced.
    """
    if isinstance(base, dict) and isinstance(patch, dict):
        merged = copy.deepcopy(base)
        for key, value in patch.items():
            merged[key] = strategic_merge(base[key], value) if key in base else copy.deepcopy(value)
        return merged
    if _named_list(base) and _named_list(patch):
        merged_list = copy.deepcopy(base)
        index = {item["name"]: i for i, item in enumerate(merged_list)}
        for item in patch:
            if item["name"] in index:
                i = index[item["name"]]
                merged_list[i] = strategic_merge(merged_list[i], item)
            else:
                merged_list.append(copy.deepcopy(item))
        return merged_list
    return copy.deepcopy(patch)


def _named_list(value: Any) -> bool:
    return (
        isinstance(value, list)
        and bool(value)
        and all(isinstance(item, dict) and "name" in item for item in value)
    )


def apply_image_override(document: dict[str, Any], override: dict[str, str]) -> dict[str, Any]:
    """Retag every container whose image repository matches *override*."""
    result = copy.deepcopy(document)
    containers = result.get("spec", {}).get("template", {}).get("spec", {}).get("containers", [])
    for container in containers:
        repository = container.get("image", "").rsplit(":", 1)[0]
        if repository == override["name"]:
            container["image"] = f"{repository}:{override['newTag']}"
    return result


def apply_overlay(
    base: dict[str, Any], patch: dict[str, Any], override: dict[str, str]
) -> dict[str, Any]:
    """Apply a deployment patch and image override the way kustomize does."""
    return apply_image_override(strategic_merge(base, patch), override)


def changed_fields(before: Any, after: Any, trail: str = "") -> list[str]:
    """Return ``/``-joined paths where *before* and *after* differ.

    List positions are written as ``[]`` so results compare against
    :data:`ALLOWED_OVERLAY_FIELDS`.
    """
    if isinstance(before, dict) and isinstance(after, dict):
        diffs: list[str] = []
        for key in list(before) + [k for k in after if k not in before]:
            child = f"{trail}/{key}" if trail else key
            if key not in before or key not in after:
                diffs.append(child)
            else:
                diffs.extend(changed_fields(before[key], after[key], child))
        return diffs
    if isinstance(before, list) and isinstance(after, list) and len(before) == len(after):
        diffs = []
        for old, new in zip(before, after):
            diffs.extend(changed_fields(old, new, f"{trail}/[]"))
        return diffs
    return [] if before == after else [trail]
