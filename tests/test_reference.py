import pytest  # pyright: ignore [reportMissingImports]

from image_resolver.errors import InvalidReferenceError
from image_resolver.reference import ImageReference, parse_reference, repository_name

DIGEST = "sha256:" + "ab" * 32


@pytest.mark.parametrize(
    "value, registry, repository, tag, digest",
    [
        ("alpine", "index.docker.io", "library/alpine", "latest", ""),
        ("alpine:3.18", "index.docker.io", "library/alpine", "3.18", ""),
        ("docker.io/library/alpine:3.18", "index.docker.io", "library/alpine", "3.18", ""),
        ("docker.io/alpine", "index.docker.io", "library/alpine", "latest", ""),
        ("bitnami/redis:7.2", "index.docker.io", "bitnami/redis", "7.2", ""),
        ("ghcr.io/offspot/kiwix-serve:dev", "ghcr.io", "offspot/kiwix-serve", "dev", ""),
        ("localhost:5000/app", "localhost:5000", "app", "latest", ""),
        ("localhost/app:1", "localhost", "app", "1", ""),
        (f"myregistry.io/team/app@{DIGEST}", "myregistry.io", "team/app", "", DIGEST),
        (f"myregistry.io/team/app:1.0@{DIGEST}", "myregistry.io", "team/app", "", DIGEST),
        (f"redis@{DIGEST}", "index.docker.io", "library/redis", "", DIGEST),
    ],
)
def test_parse_reference(
    value: str, registry: str, repository: str, tag: str, digest: str
):
    ref = parse_reference(value)
    assert ref.registry == registry
    assert ref.repository == repository
    assert ref.tag == tag
    assert ref.digest == digest
    assert ref.is_digest == bool(digest)
    assert ref.identifier == (digest or tag)


@pytest.mark.parametrize(
    "value",
    [
        "",
        "   ",
        "Alpine",
        "alpine:",
        "alpine:not a tag",
        "alpine@sha256:abcd",
        "alpine@md5:" + "a" * 32,
        "ghcr.io/",
        "team//app",
        "alpine@",
        "https://ghcr.io/app",
    ],
)
def test_parse_reference_invalid(value: str):
    with pytest.raises(InvalidReferenceError):
        parse_reference(value)


def test_reference_requires_tag_or_digest():
    with pytest.raises(InvalidReferenceError):
        ImageReference(registry="ghcr.io", repository="app")
    with pytest.raises(InvalidReferenceError):
        ImageReference(registry="ghcr.io", repository="app", tag="1", digest=DIGEST)


def test_reference_is_immutable():
    ref = parse_reference("alpine:3.18")
    with pytest.raises(AttributeError):
        ref.tag = "3.19"  # pyright: ignore [reportAttributeAccessIssue]


def test_reference_registry_normalized():
    ref = ImageReference(registry="docker.io", repository="library/alpine", tag="3")
    assert ref.registry == "index.docker.io"
    assert str(ref) == "index.docker.io/library/alpine:3"
    assert ref.context == "index.docker.io/library/alpine"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("alpine:3.18", "alpine"),
        ("docker.io/library/alpine:3.18", "alpine"),
        ("index.docker.io/library/nginx", "nginx"),
        ("bitnami/redis", "bitnami/redis"),
        ("docker.io/librarian/tool", "librarian/tool"),
        ("ghcr.io/library/app", "ghcr.io/library/app"),
        ("myregistry.io/team/app", "myregistry.io/team/app"),
        ("localhost:5000/app", "localhost:5000/app"),
    ],
)
def test_repository_name(value: str, expected: str):
    assert repository_name(parse_reference(value)) == expected


def test_repository_name_strips_prefix_once():
    ref = ImageReference(
        registry="index.docker.io", repository="library/library/app", tag="1"
    )
    assert repository_name(ref) == "library/app"


@pytest.mark.parametrize(
    "value, registry",
    [
        ("registry-1.docker.io/bitnami/redis", "index.docker.io"),
        ("index.docker.io/bitnami/redis", "index.docker.io"),
        ("ghcr.io/org/team/sub/app", "ghcr.io"),
        ("[::1]:5000/app", "[::1]:5000"),
    ],
)
def test_parse_reference_registry(value: str, registry: str):
    ref = parse_reference(value)
    assert ref.registry == registry
    assert ref.tag == "latest"
