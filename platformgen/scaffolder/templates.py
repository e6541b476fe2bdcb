"""Artifact serialization and Jinja2 text templates.

:class:`TemplateRenderer` has two jobs:

* ``render(artifact)`` turns a staged :class:`~platformgen.artifacts.Artifact`
  into its final text.  YAML and JSON bodies are serialized with insertion
  order preserved and verified to parse back to the same structure;
  HCL/Dockerfile/Markdown/text bodies are already text.
* ``render_template`` / ``render_string`` render the ``.j2`` templates under
  ``platformgen/scaffolder/templates/`` that generators use to compose
  free-form text bodies (READMEs, Makefiles, scripts).  Files that are
  themselves Go templates (Helm) go through ``render_go_template``, whose
  Jinja2 delimiters are ``[[ ]]`` / ``[% %]`` so ``{{ }}`` passes through.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from ..artifacts import Artifact, ArtifactFormat, ArtifactState
from ..errors import RenderError
from ..naming import secret_key, slugify

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

_DEFAULT_TEMPLATE_DIR = Path(__file__).parent / "templates"


# ---------------------------------------------------------------------------
# YAML dumper
# ---------------------------------------------------------------------------


class _ManifestDumper(yaml.SafeDumper):
    """SafeDumper that indents sequences and never emits anchors/aliases."""

    def ignore_aliases(self, data: Any) -> bool:
        return True

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> Any:
        return super().increase_indent(flow, False)


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_ManifestDumper.add_representer(str, _represent_str)


def dump_yaml(data: Any) -> str:
    """Serialize *data* as block-style YAML, keeping key insertion order."""
    return yaml.dump(
        data,
        Dumper=_ManifestDumper,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=4096,
    )


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Serializes artifacts and renders Jinja2 text templates."""

    def __init__(self, template_dir: str | Path | None = None) -> None:
        if template_dir is None:
            template_dir = _DEFAULT_TEMPLATE_DIR
        self.template_dir = Path(template_dir)
        loader = FileSystemLoader(str(self.template_dir))
        self.env = Environment(
            loader=loader,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self.go_env = Environment(
            loader=loader,
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
            variable_start_string="[[",
            variable_end_string="]]",
            block_start_string="[%",
            block_end_string="%]",
            comment_start_string="[#",
            comment_end_string="#]",
        )
        for env in (self.env, self.go_env):
            env.filters["slugify"] = slugify
            env.filters["secret_key"] = secret_key
            env.filters["pascal_case"] = _pascal_case_filter
            env.filters["snake_case"] = _snake_case_filter
            env.filters["camel_case"] = _camel_case_filter
            env.filters["to_json"] = _to_json_filter

    # -- Artifact serialization --------------------------------------------

    def render(self, artifact: Artifact) -> str:
        """Serialize *artifact* to its final text.

        Returns:
            The file content, always ending in a single newline.

        Raises:
            RenderError: If the body has the wrong shape for its format,
                holds an unsupported value, or does not survive a
                serialize/parse round trip.
        """
        fmt = artifact.format
        if fmt.structured:
            body = _normalize(artifact.body, artifact.path, "$")
            if fmt is ArtifactFormat.YAML:
                return self._render_yaml(artifact.path, body)
            return self._render_json(artifact.path, body)

        if not isinstance(artifact.body, str):
            raise RenderError(
                artifact.path,
                type(artifact.body).__name__,
                f"{fmt.value} body must be pre-formatted text",
            )
        text = artifact.body
        if not text.strip():
            raise RenderError(artifact.path, text, "body is empty")
        return text.rstrip("\n") + "\n"

    def render_all(self, artifacts: Iterable[Artifact]) -> None:
        """Render every artifact, storing the text and advancing its state.

        Stops at the first failure, which is marked ``render_error`` and
        re-raised.
        """
        for artifact in artifacts:
            try:
                text = self.render(artifact)
            except RenderError:
                artifact.transition(ArtifactState.RENDER_ERROR)
                raise
            artifact.rendered = text
            artifact.transition(ArtifactState.RENDERED)
            logger.debug("Rendered %s (%d bytes)", artifact.path, len(text))

    def _render_yaml(self, path: str, body: Any) -> str:
        try:
            text = dump_yaml(body)
            parsed = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise RenderError(path, body, f"YAML serialization failed: {exc}") from exc
        if parsed != body:
            raise RenderError(path, body, "YAML output does not round-trip")
        return text

    def _render_json(self, path: str, body: Any) -> str:
        try:
            text = json.dumps(body, indent=2, ensure_ascii=False, allow_nan=False) + "\n"
        except ValueError as exc:
            raise RenderError(path, body, f"JSON serialization failed: {exc}") from exc
        if json.loads(text) != body:
            raise RenderError(path, body, "JSON output does not round-trip")
        return text

    # -- Jinja2 text templates ---------------------------------------------

    def render_template(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a template file with the provided context.

        Args:
            template_path: Path relative to the template directory (e.g.
                ``"README.md.j2"``).
            context: Variables available inside the template.

        Raises:
            RenderError: If the template is missing or fails to render.
        """
        return self._render_with(self.env, template_path, context)

    def render_go_template(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a template whose output is itself a Go template (Helm)."""
        return self._render_with(self.go_env, template_path, context)

    def render_string(self, template_string: str, context: dict[str, Any]) -> str:
        """Render an inline template string with the provided context."""
        try:
            return self.env.from_string(template_string).render(**context)
        except TemplateError as exc:
            raise RenderError("<inline template>", template_string, str(exc)) from exc

    def list_templates(self, prefix: str = "") -> list[str]:
        """Return a sorted list of all ``.j2`` template paths under *prefix*."""
        search_dir = self.template_dir / prefix if prefix else self.template_dir
        if not search_dir.is_dir():
            return []
        return sorted(
            p.relative_to(self.template_dir).as_posix() for p in search_dir.rglob("*.j2")
        )

    @staticmethod
    def _render_with(env: Environment, template_path: str, context: dict[str, Any]) -> str:
        try:
            return env.get_template(template_path).render(**context)
        except TemplateError as exc:
            raise RenderError(template_path, sorted(context), str(exc)) from exc


# ---------------------------------------------------------------------------
# Body validation
# ---------------------------------------------------------------------------


def _normalize(node: Any, path: str, trail: str) -> Any:
    """Validate a structured body and return it with tuples turned into lists."""
    if node is None or isinstance(node, (bool, int, float, str)):
        if isinstance(node, float) and node != node:
            raise RenderError(path, node, f"NaN is not serializable at {trail}")
        return node
    if isinstance(node, dict):
        result: dict[str, Any] = {}
        for key, value in node.items():
            if not isinstance(key, str):
                raise RenderError(path, key, f"mapping key at {trail} must be a string")
            result[key] = _normalize(value, path, f"{trail}.{key}")
        return result
    if isinstance(node, (list, tuple)):
        return [_normalize(item, path, f"{trail}[{i}]") for i, item in enumerate(node)]
    raise RenderError(path, node, f"unsupported {type(node).__name__} at {trail}")


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", value)
    return "".join(word.capitalize() for word in parts if word)


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


def _to_json_filter(value: Any) -> str:
    return json.dumps(value)
