from __future__ import annotations

import hashlib
import json
import re
from contextlib import suppress
from typing import Any

import requests
import requests.adapters
import requests.auth
from attrs import define, field

from image_resolver.configlib import get_logger
from image_resolver.constants import (
    ACCEPTABLE_MEDIA_TYPES,
    DEFAULT_ARCHITECTURE,
    DEFAULT_OS,
    IMAGE_MEDIA_TYPES,
    INDEX_MEDIA_TYPES,
    MEDIA_DOCKER_MANIFEST_SCHEMA1,
    SCHEMA1_MEDIA_TYPES,
)
from image_resolver.context import Context
from image_resolver.credentials import Basic, Bearer
from image_resolver.errors import (
    AuthenticationError,
    Cancelled,
    DigestMismatchError,
    ManifestUnknownError,
    RegistryError,
    SchemaV1Error,
    UnexpectedMediaTypeError,
)
from image_resolver.platform import Platform
from image_resolver.reference import ImageReference
from image_resolver.transport import RemoteOptions

RE_CHALLENGE_PARAM = re.compile(r'(?P<key>\w+)="(?P<value>[^"]*)"')
logger = get_logger("registry")


def compute_digest(payload: bytes) -> str:
    return f"sha256:{hashlib.sha256(payload).hexdigest()}"


def verify_digest(payload: bytes, digest: str):
    """ensure payload hashes to digest (only sha256 digests are checked)

    Raises:
        DigestMismatchError: payload does not hash to digest"""
    if not digest.startswith("sha256:"):
        return
    computed = compute_digest(payload)
    if computed != digest:
        raise DigestMismatchError(f"expected {digest}, got {computed}")


def parse_challenge(header: str) -> tuple[str, dict[str, str]]:
    """scheme (lowercased) and params of a WWW-Authenticate header"""
    scheme, _, params = header.strip().partition(" ")
    return scheme.lower(), {
        match.group("key"): match.group("value")
        for match in RE_CHALLENGE_PARAM.finditer(params)
    }


def load_json(payload: bytes, what: str) -> dict[str, Any]:
    try:
        data = json.loads(payload)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise RegistryError(f"unable to parse {what}: {exc}") from exc
    if not isinstance(data, dict):
        raise RegistryError(f"unexpected {what} format")
    return data


def get_media_type(response: requests.Response, body: bytes) -> str:
    """media type of a manifest response, guessed from payload if not declared"""
    media_type = response.headers.get("Content-Type", "").split(";", 1)[0].strip()
    if media_type in ACCEPTABLE_MEDIA_TYPES:
        return media_type
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        return media_type
    if not isinstance(payload, dict):
        return media_type
    if payload.get("schemaVersion") == 1:
        return MEDIA_DOCKER_MANIFEST_SCHEMA1
    return payload.get("mediaType") or media_type


@define(frozen=True, kw_only=True)
class IndexEntry:
    media_type: str
    digest: str
    size: int = 0
    platform: Platform | None = None

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> IndexEntry:
        media_type = payload.get("mediaType", "")
        digest = payload.get("digest", "")
        size = payload.get("size", 0)
        if (
            not isinstance(media_type, str)
            or not isinstance(digest, str)
            or not isinstance(size, int)
        ):
            raise RegistryError(f"unexpected index manifest entry: {payload}")
        platform = payload.get("platform")
        return cls(
            media_type=media_type,
            digest=digest,
            size=size,
            platform=(
                Platform.from_dict(platform) if isinstance(platform, dict) else None
            ),
        )


@define(frozen=True, kw_only=True)
class IndexManifest:
    """Per-platform manifests list of a multi-architecture image"""

    media_type: str
    manifests: list[IndexEntry] = field(factory=list)

    @classmethod
    def from_bytes(cls, payload: bytes, media_type: str) -> IndexManifest:
        data = load_json(payload, "index manifest")
        try:
            entries = [
                IndexEntry.from_dict(item) for item in data.get("manifests") or []
            ]
        except (AttributeError, TypeError) as exc:
            raise RegistryError(f"unexpected index manifest entry: {exc}") from exc
        return cls(media_type=media_type, manifests=entries)

    def find(self, platform: Platform) -> IndexEntry | None:
        """first entry whose platform satisfies the requested one"""
        for entry in self.manifests:
            if entry.platform is not None and entry.platform.satisfies(platform):
                return entry
        return None


@define(frozen=True, kw_only=True)
class ImageHandle:
    """Image manifest and config file, enough to identify an image and its layers

    Layer content itself is not retrieved"""

    digest: str
    media_type: str
    manifest: dict[str, Any]
    config: dict[str, Any]

    @property
    def config_digest(self) -> str:
        return self.manifest["config"]["digest"]

    @property
    def layers(self) -> list[dict[str, Any]]:
        return list(self.manifest.get("layers") or [])

    @property
    def diff_ids(self) -> list[str]:
        return list((self.config.get("rootfs") or {}).get("diff_ids") or [])


class RepositorySession:
    """Authenticated access to a single repository, for one fetch

    Negotiates the registry's auth challenge on first 401 and keeps the
    resulting token for subsequent requests. Never retries otherwise."""

    def __init__(
        self,
        ref: ImageReference,
        options: RemoteOptions,
        ctx: Context | None = None,
        adapter: requests.adapters.BaseAdapter | None = None,
    ):
        self.ref = ref
        self.options = options
        self.ctx = ctx or Context()
        self.session = options.session()
        if adapter is not None:
            self.session.mount("http://", adapter)
            self.session.mount("https://", adapter)
        self.base_url = (
            f"{options.scheme_for(ref.registry)}://{ref.registry}/v2/{ref.repository}"
        )
        self.authenticated = False
        if isinstance(options.credential, Bearer):
            self.session.headers["Authorization"] = f"Bearer {options.credential.token}"
            self.authenticated = True

    def close(self):
        self.session.close()

    def fetch_manifest(
        self, identifier: str, accept: tuple[str, ...]
    ) -> tuple[requests.Response, bytes]:
        resp = self.get(
            f"{self.base_url}/manifests/{identifier}",
            headers={"Accept": ", ".join(accept)},
        )
        return resp, resp.content

    def fetch_blob(self, digest: str) -> bytes:
        payload = self.get(f"{self.base_url}/blobs/{digest}").content
        verify_digest(payload, digest)
        return payload

    def get(self, url: str, headers: dict[str, str] | None = None) -> requests.Response:
        resp = self.request(url, headers)
        if resp.status_code == 401 and not self.authenticated:
            self.authenticate(resp)
            resp = self.request(url, headers)
        self.check_status(resp)
        return resp

    def request(
        self, url: str, headers: dict[str, str] | None = None, **kwargs
    ) -> requests.Response:
        self.ctx.raise_if_cancelled()
        logger.debug(f"GET {url}")
        try:
            with self.ctx.closing_on_cancel(self.session.close):
                return self.ctx.run(
                    self.session.get,
                    url,
                    headers=headers,
                    timeout=self.ctx.remaining,
                    **kwargs,
                )
        except requests.RequestException as exc:
            if self.ctx.cancelled:
                raise Cancelled(f"GET {url} aborted: {exc}") from exc
            raise RegistryError(f"GET {url}: {exc}") from exc

    def authenticate(self, response: requests.Response):
        """answer the registry's WWW-Authenticate challenge"""
        self.authenticated = True
        scheme, params = parse_challenge(response.headers.get("WWW-Authenticate", ""))
        credential = self.options.credential
        logger.debug(f"Auth challenge {scheme} for {self.ref.context}")

        if scheme == "basic":
            if not isinstance(credential, Basic):
                raise AuthenticationError(
                    f"{self.ref.registry} requires basic auth credentials",
                    status_code=401,
                )
            self.session.auth = requests.auth.HTTPBasicAuth(
                credential.username, credential.password
            )
            return

        if scheme != "bearer" or not params.get("realm"):
            raise AuthenticationError(
                f"unsupported auth challenge from {self.ref.registry}: "
                f"{response.headers.get('WWW-Authenticate', '')!r}",
                status_code=401,
            )

        query = {
            "scope": params.get("scope") or f"repository:{self.ref.repository}:pull"
        }
        if params.get("service"):
            query["service"] = params["service"]
        auth = (
            requests.auth.HTTPBasicAuth(credential.username, credential.password)
            if isinstance(credential, Basic)
            else None
        )
        resp = self.request(params["realm"], params=query, auth=auth)
        if resp.status_code in (401, 403):
            raise AuthenticationError(
                f"token request to {params['realm']} refused: {resp.status_code}",
                status_code=resp.status_code,
            )
        self.check_status(resp)
        payload = load_json(resp.content, "token response")
        token = payload.get("token") or payload.get("access_token")
        if not token:
            raise AuthenticationError(f"no token in response from {params['realm']}")
        self.session.headers["Authorization"] = f"Bearer {token}"

    @staticmethod
    def check_status(resp: requests.Response):
        if resp.status_code < 400:
            return
        message = resp.reason
        # registries detail failures in an `errors` list, when they do
        with suppress(ValueError, AttributeError):
            errors = resp.json().get("errors") or []
            message = "; ".join(
                f"{err.get('code', '')}: {err.get('message', '')}" for err in errors
            ) or message
        text = f"GET {resp.url}: {resp.status_code} {message}"
        if resp.status_code in (401, 403):
            raise AuthenticationError(text, status_code=resp.status_code)
        if resp.status_code == 404:
            raise ManifestUnknownError(text, status_code=resp.status_code)
        raise RegistryError(text, status_code=resp.status_code)


class Descriptor:
    """Registry answer for a reference: media type, digest and raw manifest"""

    def __init__(
        self,
        ref: ImageReference,
        media_type: str,
        digest: str,
        manifest: bytes,
        repository: RepositorySession,
    ):
        self.ref = ref
        self.media_type = media_type
        self.digest = digest
        self.manifest = manifest
        self.size = len(manifest)
        self.repository = repository

    def __repr__(self):
        return f"{self.__class__.__name__}<{self.ref}@{self.digest}>"

    @property
    def is_index(self) -> bool:
        return self.media_type in INDEX_MEDIA_TYPES

    @property
    def platform(self) -> Platform:
        """platform an index is resolved with"""
        return self.repository.options.platform or Platform(
            os=DEFAULT_OS, architecture=DEFAULT_ARCHITECTURE
        )

    def index(self) -> IndexManifest:
        if self.media_type in SCHEMA1_MEDIA_TYPES:
            raise SchemaV1Error(self.media_type)
        if not self.is_index:
            raise UnexpectedMediaTypeError(
                f"unexpected media type for index: {self.media_type}"
            )
        return IndexManifest.from_bytes(self.manifest, self.media_type)

    def image(self) -> ImageHandle:
        """Image handle for this descriptor

        An index is resolved to the child manifest matching the requested
        platform (linux/amd64 if none)."""
        if self.media_type in SCHEMA1_MEDIA_TYPES:
            raise SchemaV1Error(self.media_type)

        digest, media_type, payload = self.digest, self.media_type, self.manifest
        if self.is_index:
            entry = self.index().find(self.platform)
            if entry is None:
                raise RegistryError(
                    f"no child with platform {self.platform} in index {self.ref}"
                )
            resp, payload = self.repository.fetch_manifest(
                entry.digest, IMAGE_MEDIA_TYPES
            )
            verify_digest(payload, entry.digest)
            digest, media_type = entry.digest, get_media_type(resp, payload)

        if media_type not in IMAGE_MEDIA_TYPES:
            raise UnexpectedMediaTypeError(
                f"unexpected media type for image: {media_type}"
            )

        manifest = load_json(payload, "image manifest")
        try:
            config_digest = manifest["config"]["digest"]
        except (KeyError, TypeError) as exc:
            raise RegistryError(f"image manifest has no config: {exc}") from exc
        config = load_json(self.repository.fetch_blob(config_digest), "image config")
        return ImageHandle(
            digest=digest, media_type=media_type, manifest=manifest, config=config
        )

    def close(self):
        self.repository.close()


class RegistryClient:
    """Registry HTTP API v2 client: manifests and index retrieval

    adapter, if set, is the requests transport adapter all calls go through"""

    def __init__(self, adapter: requests.adapters.BaseAdapter | None = None):
        self.adapter = adapter

    def get(
        self, ref: ImageReference, options: RemoteOptions, ctx: Context | None = None
    ) -> Descriptor:
        """Descriptor for ref, whatever manifest kind the registry serves"""
        return self.fetch(ref, options, ACCEPTABLE_MEDIA_TYPES, ctx)

    def index(
        self, ref: ImageReference, options: RemoteOptions, ctx: Context | None = None
    ) -> IndexManifest:
        """Manifest index for ref

        Raises:
            SchemaV1Error: image uses the legacy single-manifest schema
            UnexpectedMediaTypeError: ref is not an index"""
        descriptor = self.fetch(
            ref, options, INDEX_MEDIA_TYPES + SCHEMA1_MEDIA_TYPES, ctx
        )
        try:
            return descriptor.index()
        finally:
            descriptor.close()

    def fetch(
        self,
        ref: ImageReference,
        options: RemoteOptions,
        accept: tuple[str, ...],
        ctx: Context | None = None,
    ) -> Descriptor:
        repository = RepositorySession(ref, options, ctx, adapter=self.adapter)
        try:
            resp, payload = repository.fetch_manifest(ref.identifier, accept)
            if ref.is_digest:
                verify_digest(payload, ref.digest)
            digest = (
                ref.digest
                or resp.headers.get("Docker-Content-Digest")
                or compute_digest(payload)
            )
        except BaseException:
            repository.close()
            raise
        return Descriptor(
            ref=ref,
            media_type=get_media_type(resp, payload),
            digest=digest,
            manifest=payload,
            repository=repository,
        )
