"""Tests for the Dockerfile builder (platformgen.scaffolder.dockerfile)."""

from __future__ import annotations

import pytest

from platformgen.scaffolder.dockerfile import DockerfileBuilder

pytestmark = pytest.mark.unit


class TestDockerfileBuilder:
    def test_multi_stage(self):
        text = (
            DockerfileBuilder()
            .from_("node:20-alpine", alias="deps")
            .workdir("/app")
            .copy("package.json", "package-lock.json", dest="./")
            .run("npm ci")
            .blank()
            .from_("node:20-alpine", alias="runtime")
            .copy("/app/node_modules", dest="./node_modules", from_stage="deps", chown="nodejs:nodejs")
            .user("nodejs")
            .expose(3000)
            .cmd(["node", "dist/index.js"])
            .build()
        )
        lines = text.splitlines()
        assert lines[0] == "FROM node:20-alpine AS deps"
        assert "COPY package.json package-lock.json ./" in lines
        assert "COPY --from=deps --chown=nodejs:nodejs /app/node_modules ./node_modules" in lines
        assert lines[-1] == 'CMD ["node", "dist/index.js"]'
        assert text.endswith("\n") and not text.endswith("\n\n")

    def test_run_joins_commands(self):
        text = DockerfileBuilder().run("apk add --no-cache dumb-init", "rm -rf /tmp/*").build()
        assert text == "RUN apk add --no-cache dumb-init && \\\n    rm -rf /tmp/*\n"

    def test_run_needs_a_command(self):
        with pytest.raises(ValueError):
            DockerfileBuilder().run()

    def test_env_quoting(self):
        text = DockerfileBuilder().env(NODE_ENV="production", GREETING="hello world").build()
        assert "ENV NODE_ENV=production" in text
        assert 'ENV GREETING="hello world"' in text

    def test_healthcheck_and_entrypoint(self):
        text = (
            DockerfileBuilder()
            .healthcheck(["wget", "-qO-", "http://localhost:3000/health"])
            .entrypoint(["dumb-init", "--"])
            .build()
        )
        assert "HEALTHCHECK --interval=30s --timeout=3s --start-period=5s --retries=3" in text
        assert 'CMD ["wget", "-qO-", "http://localhost:3000/health"]' in text
        assert 'ENTRYPOINT ["dumb-init", "--"]' in text

    def test_arg(self):
        assert DockerfileBuilder().arg("NODE_VERSION", "20").arg("TOKEN").build() == (
            "ARG NODE_VERSION=20\nARG TOKEN\n"
        )
