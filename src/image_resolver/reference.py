from __future__ import annotations

import re

from attrs import define, field
from docker.auth import resolve_repository_name
from docker.errors import InvalidRepository
from docker.utils import parse_repository_tag
from typeguard import typechecked

from image_resolver.constants import (
    DEFAULT_NAMESPACE,
    DEFAULT_REGISTRY,
    DEFAULT_REGISTRY_ALIASES,
    DEFAULT_TAG,
)
from image_resolver.errors import InvalidReferenceError

RE_TAG = re.compile(r"^[\w][\w.-]{0,127}$")
RE_REPOSITORY_COMPONENT = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
RE_DIGEST = re.compile(r"^(?P<algo>[a-z0-9]+(?:[.+_-][a-z0-9]+)*):(?P<hex>[a-f0-9]+)$")
DIGEST_LENGTHS = {"sha256": 64, "sha512": 128}


def normalize_registry(registry: str) -> str:
    """registry domain with Docker Hub aliases folded into the default one"""
    registry = registry or DEFAULT_REGISTRY
    if registry in DEFAULT_REGISTRY_ALIASES:
        return DEFAULT_REGISTRY
    return registry


def is_valid_digest(digest: str) -> bool:
    """whether digest is a well-formed `algo:hex` content digest"""
    match = RE_DIGEST.match(digest)
    if not match:
        return False
    expected = DIGEST_LENGTHS.get(match.group("algo"))
    return expected is not None and len(match.group("hex")) == expected


@typechecked
@define(frozen=True, kw_only=True)
class ImageReference:
    """Parsed image identifier: registry, repository and a tag or a digest

    Tag and digest are mutually exclusive: a digest reference has an empty tag"""

    registry: str = field(converter=normalize_registry)
    repository: str
    tag: str = ""
    digest: str = ""

    def __attrs_post_init__(self):
        if bool(self.tag) == bool(self.digest):
            raise InvalidReferenceError(
                f"reference needs either a tag or a digest: {self.context}"
            )
        if self.tag and not RE_TAG.match(self.tag):
            raise InvalidReferenceError(f"invalid tag `{self.tag}`")
        if self.digest and not is_valid_digest(self.digest):
            raise InvalidReferenceError(f"invalid digest `{self.digest}`")
        if not self.repository or not all(
            RE_REPOSITORY_COMPONENT.match(part) for part in self.repository.split("/")
        ):
            raise InvalidReferenceError(f"invalid repository `{self.repository}`")

    @property
    def is_digest(self) -> bool:
        return bool(self.digest)

    @property
    def identifier(self) -> str:
        """what the registry knows this manifest as: tag or digest"""
        return self.digest or self.tag

    @property
    def context(self) -> str:
        """fully qualified repository: registry/repository"""
        return f"{self.registry}/{self.repository}"

    @property
    def name(self) -> str:
        if self.is_digest:
            return f"{self.context}@{self.digest}"
        return f"{self.context}:{self.tag}"

    def __str__(self):
        return self.name


def parse_reference(value: str) -> ImageReference:
    """ImageReference from a human-supplied image name

    Accepts `[registry/]repository[:tag][@digest]`. Missing registry means
    Docker Hub, where single-component names live in the `library` namespace,
    and missing tag means `latest`. A tag accompanying a digest is ignored:
    the digest identifies the manifest."""
    value = value.strip()
    if not value:
        raise InvalidReferenceError("empty image reference")

    name, identifier = parse_repository_tag(value)
    tag, digest = "", ""
    if "@" in value:
        digest = identifier or ""
        if not digest:
            raise InvalidReferenceError(f"empty digest in `{value}`")
        name, _ = parse_repository_tag(name)
    elif identifier is None:
        tag = DEFAULT_TAG
    elif not identifier:
        raise InvalidReferenceError(f"empty tag in `{value}`")
    else:
        tag = identifier

    try:
        registry, repository = resolve_repository_name(name)
    except InvalidRepository as exc:
        raise InvalidReferenceError(str(exc)) from exc

    registry = normalize_registry(registry)
    if registry == DEFAULT_REGISTRY and repository and "/" not in repository:
        repository = f"{DEFAULT_NAMESPACE}/{repository}"

    return ImageReference(
        registry=registry, repository=repository, tag=tag, digest=digest
    )


def repository_name(ref: ImageReference) -> str:
    """repository name the way registry clients display it

    Registry is always included, except for Docker Hub where the official
    images `library/` namespace is implicit and dropped as well."""
    if ref.registry != DEFAULT_REGISTRY:
        return ref.context

    prefix = f"{DEFAULT_NAMESPACE}/"
    if ref.repository.startswith(prefix):
        return ref.repository[len(prefix) :]
    return ref.repository
