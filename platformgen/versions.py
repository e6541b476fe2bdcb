"""Pinned GitHub Action versions used in generated workflows.

Workflows reference actions by major tag.  By default the last-known-good
pins below are used so that output is deterministic; with ``refresh=True``
the latest release of each action is looked up on the GitHub API.  Any
network problem falls back to the pins: a slow or unreachable API never
blocks or fails a run.
"""

from __future__ import annotations

import asyncio
import logging
import re

import httpx
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"

# Last-known-good pins.
PINNED_ACTIONS: dict[str, str] = {
    "actions/checkout": "v4",
    "actions/setup-node": "v4",
    "actions/upload-artifact": "v4",
    "actions/download-artifact": "v4",
    "actions/dependency-review-action": "v4",
    "pnpm/action-setup": "v4",
    "docker/setup-buildx-action": "v3",
    "docker/login-action": "v3",
    "docker/metadata-action": "v5",
    "docker/build-push-action": "v6",
    "github/codeql-action/init": "v3",
    "github/codeql-action/autobuild": "v3",
    "github/codeql-action/analyze": "v3",
    "github/codeql-action/upload-sarif": "v3",
    "aquasecurity/trivy-action": "0.28.0",
    "snyk/actions/node": "master",
    "codecov/codecov-action": "v4",
    "changesets/action": "v1",
    "azure/setup-kubectl": "v4",
    "amannn/action-semantic-pull-request": "v5",
}

_MAJOR_TAG = re.compile(r"^v(\d+)(?:\.\d+)*$")


class ActionVersions(BaseModel):
    """Resolved ``action -> ref`` mapping."""

    refs: dict[str, str] = Field(default_factory=lambda: dict(PINNED_ACTIONS))
    source: str = Field(default="pinned", description="'pinned' or 'github'")

    @classmethod
    def pinned(cls) -> ActionVersions:
        return cls()

    def uses(self, action: str) -> str:
        """Return the ``uses:`` value for *action*, e.g. ``actions/checkout@v4``.

        Raises:
            KeyError: If the action has no pin.
        """
        return f"{action}@{self.refs[action]}"


def _repository(action: str) -> str:
    """``github/codeql-action/init`` lives in ``github/codeql-action``."""
    return "/".join(action.split("/")[:2])


async def _latest_major(client: httpx.AsyncClient, repository: str) -> str | None:
    try:
        response = await client.get(f"/repos/{repository}/releases/latest")
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPError as exc:
        logger.warning("Could not look up %s (%s); using pinned version", repository, exc)
        return None
    except ValueError as exc:
        logger.warning("Bad release payload for %s (%s); using pinned version", repository, exc)
        return None

    if not isinstance(payload, dict):
        logger.warning(
            "Bad release payload for %s (expected an object, got %s); using pinned version",
            repository,
            type(payload).__name__,
        )
        return None
    tag = payload.get("tag_name", "")

    match = _MAJOR_TAG.match(str(tag))
    if not match:
        logger.debug("Ignoring non-semver tag %r for %s", tag, repository)
        return None
    return f"v{match.group(1)}"


async def resolve_action_versions(
    refresh: bool = False,
    timeout: float = 2.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ActionVersions:
    """Return the action versions to use for this run.

    Args:
        refresh: Query GitHub for newer major versions.  Only actions pinned
            to a ``vN`` major tag are updated.
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests use ``httpx.MockTransport``).

    Returns:
        The pinned versions, updated with whatever lookups succeeded.
    """
    versions = ActionVersions.pinned()
    if not refresh:
        return versions

    repositories = sorted(
        {_repository(action) for action, ref in PINNED_ACTIONS.items() if _MAJOR_TAG.match(ref)}
    )
    async with httpx.AsyncClient(
        base_url=GITHUB_API_URL,
        timeout=httpx.Timeout(timeout, connect=min(timeout, 1.0)),
        headers={"Accept": "application/vnd.github+json"},
        transport=transport,
    ) as client:
        latest = await asyncio.gather(*(_latest_major(client, repo) for repo in repositories))

    found = {repo: tag for repo, tag in zip(repositories, latest) if tag}
    refs = dict(versions.refs)
    for action, ref in refs.items():
        tag = found.get(_repository(action))
        if tag and _MAJOR_TAG.match(ref):
            refs[action] = tag
    return ActionVersions(refs=refs, source="github" if found else "pinned")
