from __future__ import annotations

import os
import pathlib

DEFAULT_REGISTRY: str = "index.docker.io"
# aliases clients accept for Docker Hub, all normalized to DEFAULT_REGISTRY
DEFAULT_REGISTRY_ALIASES: tuple[str, ...] = (
    "docker.io",
    "registry-1.docker.io",
    DEFAULT_REGISTRY,
)
# Docker Hub's implicit namespace for official images
# See https://docs.docker.com/docker-hub/official_repos
DEFAULT_NAMESPACE: str = "library"
DEFAULT_TAG: str = "latest"
# server URL docker login stores Docker Hub credentials under
DEFAULT_AUTH_KEY: str = "https://index.docker.io/v1/"

# platform selected from an index when no constraint is given
DEFAULT_OS: str = "linux"
DEFAULT_ARCHITECTURE: str = "amd64"

MEDIA_DOCKER_MANIFEST_SCHEMA1: str = (
    "application/vnd.docker.distribution.manifest.v1+json"
)
MEDIA_DOCKER_MANIFEST_SCHEMA1_SIGNED: str = (
    "application/vnd.docker.distribution.manifest.v1+prettyjws"
)
MEDIA_DOCKER_MANIFEST_SCHEMA2: str = (
    "application/vnd.docker.distribution.manifest.v2+json"
)
MEDIA_DOCKER_MANIFEST_LIST: str = (
    "application/vnd.docker.distribution.manifest.list.v2+json"
)
MEDIA_OCI_MANIFEST_V1: str = "application/vnd.oci.image.manifest.v1+json"
MEDIA_OCI_INDEX_V1: str = "application/vnd.oci.image.index.v1+json"

SCHEMA1_MEDIA_TYPES: tuple[str, ...] = (
    MEDIA_DOCKER_MANIFEST_SCHEMA1,
    MEDIA_DOCKER_MANIFEST_SCHEMA1_SIGNED,
)
INDEX_MEDIA_TYPES: tuple[str, ...] = (MEDIA_OCI_INDEX_V1, MEDIA_DOCKER_MANIFEST_LIST)
IMAGE_MEDIA_TYPES: tuple[str, ...] = (
    MEDIA_OCI_MANIFEST_V1,
    MEDIA_DOCKER_MANIFEST_SCHEMA2,
)
# what we accept when fetching a reference (index or image, legacy included)
ACCEPTABLE_MEDIA_TYPES: tuple[str, ...] = (
    INDEX_MEDIA_TYPES + IMAGE_MEDIA_TYPES + SCHEMA1_MEDIA_TYPES
)

# registries reached over plain HTTP unless told otherwise
PLAIN_HTTP_REGISTRIES: tuple[str, ...] = ("localhost", "127.0.0.1", "::1")

DOCKER_CONFIG_PATH: pathlib.Path = (
    pathlib.Path(os.getenv("DOCKER_CONFIG", "~/.docker")).expanduser() / "config.json"
)
CONTAINERS_AUTH_PATHS: tuple[pathlib.Path, ...] = tuple(
    pathlib.Path(path).expanduser()
    for path in (
        os.getenv("REGISTRY_AUTH_FILE", ""),
        f"{os.getenv('XDG_RUNTIME_DIR', '/run/user/' + str(os.getuid()))}"
        "/containers/auth.json",
        "~/.config/containers/auth.json",
    )
    if path
)
CREDENTIAL_HELPER_PREFIX: str = "docker-credential-"
