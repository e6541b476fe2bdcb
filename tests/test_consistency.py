"""Tests for the cross-artifact consistency pass (platformgen.consistency)."""

from __future__ import annotations

import pytest

from platformgen.artifacts import Artifact, ArtifactFormat, ArtifactRef, ArtifactState, SecretReference
from platformgen.consistency import _MISSING, ConsistencyChecker, merge_secrets, resolve_pointer
from platformgen.errors import PathCollisionError, UnreferencedSecretError, UnresolvedReferenceError

pytestmark = pytest.mark.unit


@pytest.fixture
def rendered(renderer):
    """Factory building artifacts and rendering them in one go."""

    def _rendered(*artifacts: Artifact) -> list[Artifact]:
        batch = list(artifacts)
        renderer.render_all(batch)
        return batch

    return _rendered


def deployment(**kwargs) -> Artifact:
    return Artifact(
        path="k8s/base/deployment.yaml",
        format=ArtifactFormat.YAML,
        body={"metadata": {"name": "acme-api"}, "spec": {"ports": [80, 443]}},
        generator="infrastructure",
        **kwargs,
    )


def workflow(*refs: ArtifactRef, secrets: tuple[str, ...] = (), text: str = "") -> Artifact:
    return Artifact(
        path=".github/workflows/deploy.yml",
        format=ArtifactFormat.YAML,
        body={"name": "Deploy", "env": {"note": text}},
        generator="gitops",
        depends_on=list(refs),
        consumes_secrets=list(secrets),
    )


class TestReferences:
    def test_resolving_batch_is_validated(self, rendered):
        batch = rendered(
            deployment(),
            workflow(
                ArtifactRef(path="k8s/base/deployment.yaml", pointer="/metadata/name", expected="acme-api"),
                ArtifactRef(path="k8s/base/deployment.yaml", pointer="/spec/ports/1", expected=443),
            ),
        )
        report = ConsistencyChecker().check(batch)
        assert report.artifacts == 2
        assert report.references == 2
        assert all(a.state is ArtifactState.VALIDATED for a in batch)

    def test_missing_path(self, rendered):
        batch = rendered(workflow(ArtifactRef(path="k8s/base/deployment.yaml")))
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            ConsistencyChecker().check(batch)
        assert exc_info.value.problems == [
            ".github/workflows/deploy.yml -> k8s/base/deployment.yaml: not produced in this run"
        ]
        assert batch[0].state is ArtifactState.RENDERED

    def test_pointer_mismatch(self, rendered):
        batch = rendered(
            deployment(),
            workflow(ArtifactRef(path="k8s/base/deployment.yaml", pointer="/metadata/name", expected="api")),
        )
        with pytest.raises(UnresolvedReferenceError, match="'acme-api', expected 'api'"):
            ConsistencyChecker().check(batch)

    def test_pointer_to_nothing(self, rendered):
        batch = rendered(
            deployment(),
            workflow(ArtifactRef(path="k8s/base/deployment.yaml", pointer="/spec/replicas", expected=2)),
        )
        with pytest.raises(UnresolvedReferenceError, match="nothing at /spec/replicas"):
            ConsistencyChecker().check(batch)

    def test_pointer_into_text(self, rendered):
        dockerfile = Artifact(path="Dockerfile", format=ArtifactFormat.DOCKERFILE, body="EXPOSE 3000\n")
        batch = rendered(dockerfile, workflow(ArtifactRef(path="Dockerfile", pointer="/x", expected=1)))
        with pytest.raises(UnresolvedReferenceError, match="into a dockerfile artifact"):
            ConsistencyChecker().check(batch)

    def test_contains(self, rendered):
        dockerfile = Artifact(path="Dockerfile", format=ArtifactFormat.DOCKERFILE, body="EXPOSE 3000\n")
        ok = rendered(dockerfile, workflow(ArtifactRef(path="Dockerfile", contains="EXPOSE 3000")))
        ConsistencyChecker().check(ok)

        dockerfile = Artifact(path="Dockerfile", format=ArtifactFormat.DOCKERFILE, body="EXPOSE 8080\n")
        bad = rendered(dockerfile, workflow(ArtifactRef(path="Dockerfile", contains="EXPOSE 3000")))
        with pytest.raises(UnresolvedReferenceError, match="does not contain 'EXPOSE 3000'"):
            ConsistencyChecker().check(bad)

    def test_collects_every_problem(self, rendered):
        batch = rendered(
            workflow(ArtifactRef(path="a.yaml"), ArtifactRef(path="b.yaml")),
        )
        with pytest.raises(UnresolvedReferenceError) as exc_info:
            ConsistencyChecker().check(batch)
        assert len(exc_info.value.problems) == 2


class TestPathCollisions:
    def test_same_path_from_two_generators(self, rendered):
        first = deployment()
        second = deployment()
        second.generator = "platform"
        with pytest.raises(PathCollisionError) as exc_info:
            ConsistencyChecker().check(rendered(first, second))
        assert exc_info.value.paths == {"k8s/base/deployment.yaml": ["infrastructure", "platform"]}


class TestSecrets:
    def test_consumed_secret(self, rendered):
        batch = rendered(workflow(secrets=("JWT_SECRET",), text="${{ secrets.JWT_SECRET }}"))
        report = ConsistencyChecker().check(
            batch, [SecretReference(logical_name="JWT_SECRET", consumers=[".github/workflows/deploy.yml"])]
        )
        assert [s.logical_name for s in report.secrets] == ["JWT_SECRET"]

    def test_secret_without_consumer(self, rendered):
        batch = rendered(workflow())
        with pytest.raises(UnreferencedSecretError, match="API_KEY has no consumer"):
            ConsistencyChecker().check(batch, [SecretReference(logical_name="API_KEY")])

    def test_consumer_not_produced(self, rendered):
        batch = rendered(workflow())
        with pytest.raises(UnreferencedSecretError, match="consumer .env.example not produced"):
            ConsistencyChecker().check(
                batch, [SecretReference(logical_name="API_KEY", consumers=[".env.example"])]
            )

    def test_consumer_never_mentions_the_secret(self, rendered):
        batch = rendered(workflow(text="nothing here"))
        with pytest.raises(UnreferencedSecretError, match="never mentions it"):
            ConsistencyChecker().check(
                batch,
                [SecretReference(logical_name="API_KEY", consumers=[".github/workflows/deploy.yml"])],
            )

    def test_undeclared_secret(self, rendered):
        batch = rendered(workflow(secrets=("REDIS_URL",), text="REDIS_URL"))
        with pytest.raises(UnreferencedSecretError, match="reads undeclared secret REDIS_URL"):
            ConsistencyChecker().check(batch)

    def test_secret_errors_are_unresolved_references(self):
        assert issubclass(UnreferencedSecretError, UnresolvedReferenceError)


def test_merge_secrets_keeps_first_seen_order():
    merged = merge_secrets(
        [
            SecretReference(logical_name="DATABASE_URL", consumers=["docker-compose.yml"]),
            SecretReference(logical_name="API_KEY", consumers=[".env.example"]),
            SecretReference(logical_name="DATABASE_URL", consumers=[".env.example", "docker-compose.yml"]),
        ]
    )
    assert [(s.logical_name, s.consumers) for s in merged] == [
        ("DATABASE_URL", ["docker-compose.yml", ".env.example"]),
        ("API_KEY", [".env.example"]),
    ]


@pytest.mark.parametrize(
    "pointer, expected",
    [
        ("/a/b", 1),
        ("/list/1/name", "second"),
        ("", {"a": {"b": 1}, "list": [{"name": "first"}, {"name": "second"}]}),
    ],
)
def test_resolve_pointer(pointer, expected):
    document = {"a": {"b": 1}, "list": [{"name": "first"}, {"name": "second"}]}
    assert resolve_pointer(document, pointer) == expected


@pytest.mark.parametrize("pointer", ["/missing", "/list/9", "/list/x", "/a/b/c"])
def test_resolve_pointer_misses(pointer):
    document = {"a": {"b": 1}, "list": [{"name": "first"}]}
    assert resolve_pointer(document, pointer) is _MISSING
