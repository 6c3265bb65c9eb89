from __future__ import annotations

import base64
import hashlib
import json
from typing import Any

import pytest  # pyright: ignore [reportMissingImports]
import requests
import requests.adapters
from requests.structures import CaseInsensitiveDict

from image_resolver.constants import (
    MEDIA_DOCKER_MANIFEST_SCHEMA1,
    MEDIA_OCI_INDEX_V1,
    MEDIA_OCI_MANIFEST_V1,
)
from image_resolver.credentials import Anonymous
from image_resolver.errors import RegistryError
from image_resolver.registry import ImageHandle, IndexManifest
from image_resolver.transport import RemoteOptions

REGISTRY = "registry.example.com"
REALM = "https://auth.example.com/token"
NOT_FOUND = (
    404,
    {"Content-Type": "application/json"},
    b'{"errors": [{"code": "MANIFEST_UNKNOWN", "message": "manifest unknown"}]}',
)


def digest_of(payload: bytes) -> str:
    return f"sha256:{hashlib.sha256(payload).hexdigest()}"


def to_bytes(payload: dict) -> bytes:
    return json.dumps(payload).encode("UTF-8")


class FakeKeychain:
    def __init__(self, credentials: dict | None = None):
        self.credentials = credentials or {}
        self.lookups: list[str] = []

    def resolve(self, domain: str):
        self.lookups.append(domain)
        return self.credentials.get(domain, Anonymous())


class FakeDescriptor:
    def __init__(self, digest: str, handle: ImageHandle | None = None, error=None):
        self.digest = digest
        self.media_type = MEDIA_OCI_MANIFEST_V1
        self.handle = handle
        self.error = error
        self.closed = False

    def image(self) -> ImageHandle:
        if self.error:
            raise self.error
        return self.handle

    def close(self):
        self.closed = True


class FakeClient:
    """Registry client returning canned index and descriptors"""

    def __init__(
        self,
        index: IndexManifest | Exception | None = None,
        descriptor: FakeDescriptor | Exception | None = None,
    ):
        self._index = index
        self._descriptor = descriptor
        self.index_calls: list[tuple[Any, RemoteOptions]] = []
        self.get_calls: list[tuple[Any, RemoteOptions]] = []

    def index(self, ref, options, ctx=None) -> IndexManifest:
        self.index_calls.append((ref, options))
        if isinstance(self._index, Exception):
            raise self._index
        if self._index is None:
            raise RegistryError("no index")
        return self._index

    def get(self, ref, options, ctx=None):
        self.get_calls.append((ref, options))
        if isinstance(self._descriptor, Exception):
            raise self._descriptor
        return self._descriptor


def make_handle(
    config_digest: str = "sha256:" + "c" * 64,
    diff_ids: list[str] | None = None,
) -> ImageHandle:
    return ImageHandle(
        digest="sha256:" + "m" * 64,
        media_type=MEDIA_OCI_MANIFEST_V1,
        manifest={
            "schemaVersion": 2,
            "config": {"digest": config_digest, "size": 2},
            "layers": [{"digest": "sha256:" + "l" * 64, "size": 1024}],
        },
        config={"rootfs": {"type": "layers", "diff_ids": diff_ids or []}},
    )


def make_index(*oses: str | None) -> IndexManifest:
    return IndexManifest.from_bytes(
        to_bytes(
            {
                "schemaVersion": 2,
                "manifests": [
                    {
                        "mediaType": MEDIA_OCI_MANIFEST_V1,
                        "digest": "sha256:" + str(num) * 64,
                        "size": 1,
                        **(
                            {"platform": {"os": os, "architecture": "amd64"}}
                            if os
                            else {}
                        ),
                    }
                    for num, os in enumerate(oses)
                ],
            }
        ),
        MEDIA_OCI_INDEX_V1,
    )


class FakeRegistry(requests.adapters.BaseAdapter):
    """In-memory registry served through a requests transport adapter

    Set `token` to require a bearer token (obtained from REALM) and `basic`
    to require (username, password) on that token request."""

    def __init__(
        self,
        registry: str = REGISTRY,
        repository: str = "team/app",
        token: str | None = None,
        basic: tuple[str, str] | None = None,
    ):
        super().__init__()
        self.base = f"https://{registry}/v2/{repository}"
        self.registry = registry
        self.repository = repository
        self.token = token
        self.basic = basic
        self.manifests: dict[str, tuple[str, bytes]] = {}
        self.blobs: dict[str, bytes] = {}
        self.requests: list[requests.PreparedRequest] = []

    def add_manifest(self, payload: bytes, media_type: str, tag: str = "") -> str:
        digest = digest_of(payload)
        self.manifests[digest] = (media_type, payload)
        if tag:
            self.manifests[tag] = (media_type, payload)
        return digest

    def add_image(
        self, os: str = "linux", architecture: str = "amd64", tag: str = ""
    ) -> tuple[str, str]:
        """manifest and config digests of a newly added image"""
        config = to_bytes(
            {
                "architecture": architecture,
                "os": os,
                "rootfs": {
                    "type": "layers",
                    "diff_ids": [digest_of(f"{os}/{architecture}".encode())],
                },
            }
        )
        config_digest = digest_of(config)
        self.blobs[config_digest] = config
        manifest = to_bytes(
            {
                "schemaVersion": 2,
                "mediaType": MEDIA_OCI_MANIFEST_V1,
                "config": {"digest": config_digest, "size": len(config)},
                "layers": [
                    {"digest": digest_of(architecture.encode()), "size": 2048}
                ],
            }
        )
        return self.add_manifest(manifest, MEDIA_OCI_MANIFEST_V1, tag), config_digest

    def add_index(self, platforms: list[tuple[str, str]], tag: str = "") -> str:
        manifests = []
        for os, architecture in platforms:
            digest, _ = self.add_image(os, architecture)
            manifests.append(
                {
                    "mediaType": MEDIA_OCI_MANIFEST_V1,
                    "digest": digest,
                    "size": len(self.manifests[digest][1]),
                    "platform": {"os": os, "architecture": architecture},
                }
            )
        return self.add_manifest(
            to_bytes(
                {
                    "schemaVersion": 2,
                    "mediaType": MEDIA_OCI_INDEX_V1,
                    "manifests": manifests,
                }
            ),
            MEDIA_OCI_INDEX_V1,
            tag,
        )

    def add_schema1(self, tag: str) -> str:
        return self.add_manifest(
            to_bytes({"schemaVersion": 1, "name": self.repository, "tag": tag}),
            MEDIA_DOCKER_MANIFEST_SCHEMA1,
            tag,
        )

    def send(
        self, request, stream=False, timeout=None, verify=True, cert=None, proxies=None
    ):
        self.requests.append(request)
        status, headers, body = self.handle(request)
        resp = requests.Response()
        resp.status_code = status
        resp.headers = CaseInsensitiveDict(headers)
        resp._content = body
        resp.url = request.url
        resp.request = request
        resp.reason = {200: "OK", 401: "Unauthorized", 404: "Not Found"}.get(
            status, "Error"
        )
        resp.encoding = "utf-8"
        return resp

    def close(self):
        ...

    def handle(self, request) -> tuple[int, dict[str, str], bytes]:
        url = request.url.split("?", 1)[0]
        if url == REALM:
            return self.handle_token(request)

        if self.token and request.headers.get("Authorization") != f"Bearer {self.token}":
            return (
                401,
                {
                    "WWW-Authenticate": f'Bearer realm="{REALM}",'
                    f'service="{self.registry}",'
                    f'scope="repository:{self.repository}:pull"'
                },
                b"",
            )

        if url.startswith(f"{self.base}/manifests/"):
            identifier = url.rsplit("/", 1)[-1]
            if identifier not in self.manifests:
                return NOT_FOUND
            media_type, payload = self.manifests[identifier]
            return (
                200,
                {"Content-Type": media_type, "Docker-Content-Digest": digest_of(payload)},
                payload,
            )

        if url.startswith(f"{self.base}/blobs/"):
            digest = url.rsplit("/", 1)[-1]
            if digest not in self.blobs:
                return NOT_FOUND
            return 200, {"Content-Type": "application/octet-stream"}, self.blobs[digest]

        return NOT_FOUND

    def handle_token(self, request) -> tuple[int, dict[str, str], bytes]:
        if self.basic:
            expected = "Basic " + base64.b64encode(
                ":".join(self.basic).encode()
            ).decode("ASCII")
            if request.headers.get("Authorization") != expected:
                return 401, {}, b'{"details": "incorrect username or password"}'
        return 200, {"Content-Type": "application/json"}, to_bytes({"token": self.token})


@pytest.fixture
def keychain():
    yield FakeKeychain()


@pytest.fixture
def fake_registry():
    yield FakeRegistry()
