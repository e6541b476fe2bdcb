"""Small builder for Dockerfile text.

Each method appends one instruction and returns the builder, so a
multi-stage Dockerfile reads top to bottom::

    text = (
        DockerfileBuilder()
        .from_("node:20-alpine", alias="build")
        .workdir("/app")
        .run("npm ci", "npm run build")
        .build()
    )
"""

from __future__ import annotations

import json


class DockerfileBuilder:
    """Accumulates Dockerfile instructions."""

    def __init__(self) -> None:
        self._lines: list[str] = []

    # -- Layout ------------------------------------------------------------

    def comment(self, text: str) -> DockerfileBuilder:
        self._lines.append(f"# {text}")
        return self

    def blank(self) -> DockerfileBuilder:
        self._lines.append("")
        return self

    # -- Instructions ------------------------------------------------------

    def from_(self, image: str, alias: str | None = None) -> DockerfileBuilder:
        self._lines.append(f"FROM {image}" + (f" AS {alias}" if alias else ""))
        return self

    def arg(self, name: str, default: str | None = None) -> DockerfileBuilder:
        self._lines.append(f"ARG {name}" + (f"={default}" if default is not None else ""))
        return self

    def env(self, **values: str) -> DockerfileBuilder:
        for name, value in values.items():
            self._lines.append(f"ENV {name}={_quote_env(value)}")
        return self

    def workdir(self, path: str) -> DockerfileBuilder:
        self._lines.append(f"WORKDIR {path}")
        return self

    def copy(
        self,
        *sources: str,
        dest: str,
        from_stage: str | None = None,
        chown: str | None = None,
    ) -> DockerfileBuilder:
        flags = ""
        if from_stage:
            flags += f"--from={from_stage} "
        if chown:
            flags += f"--chown={chown} "
        self._lines.append(f"COPY {flags}{' '.join(sources)} {dest}")
        return self

    def run(self, *commands: str) -> DockerfileBuilder:
        """Append a ``RUN`` joining *commands* with ``&&`` on continuation lines."""
        if not commands:
            raise ValueError("RUN needs at least one command")
        self._lines.append("RUN " + " && \\\n    ".join(commands))
        return self

    def user(self, name: str) -> DockerfileBuilder:
        self._lines.append(f"USER {name}")
        return self

    def expose(self, port: int) -> DockerfileBuilder:
        self._lines.append(f"EXPOSE {port}")
        return self

    def healthcheck(
        self,
        command: list[str],
        interval: str = "30s",
        timeout: str = "3s",
        start_period: str = "5s",
        retries: int = 3,
    ) -> DockerfileBuilder:
        self._lines.append(
            f"HEALTHCHECK --interval={interval} --timeout={timeout} "
            f"--start-period={start_period} --retries={retries} \\\n"
            f"    CMD {_exec_form(command)}"
        )
        return self

    def entrypoint(self, command: list[str]) -> DockerfileBuilder:
        self._lines.append(f"ENTRYPOINT {_exec_form(command)}")
        return self

    def cmd(self, command: list[str]) -> DockerfileBuilder:
        self._lines.append(f"CMD {_exec_form(command)}")
        return self

    # -- Output ------------------------------------------------------------

    def build(self) -> str:
        """Return the Dockerfile text with a single trailing newline."""
        return "\n".join(self._lines).strip("\n") + "\n"


def _exec_form(command: list[str]) -> str:
    return json.dumps(command)


def _quote_env(value: str) -> str:
    if value and all(ch.isalnum() or ch in "._-/:" for ch in value):
        return value
    return json.dumps(value)
