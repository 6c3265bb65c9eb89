from __future__ import annotations

from image_resolver.configlib import get_logger
from image_resolver.context import Context
from image_resolver.credentials import Keychain, resolve_credential
from image_resolver.errors import Cancelled, FetchError, ImageError, RegistryError
from image_resolver.image import RemoteImage
from image_resolver.keychain import DockerKeychain
from image_resolver.options import DockerOption
from image_resolver.platform import resolve_platform
from image_resolver.reference import ImageReference
from image_resolver.registry import RegistryClient
from image_resolver.transport import build_remote_options

logger = get_logger("remote")


class RemoteResolver:
    """Resolves image references against their registry

    Keychain and client are created once and reused for every resolution;
    the resolver holds no other state so it can be shared across threads."""

    def __init__(
        self,
        keychain: Keychain | None = None,
        client: RegistryClient | None = None,
    ):
        self.keychain = keychain if keychain is not None else DockerKeychain()
        self.client = client if client is not None else RegistryClient()

    def resolve(
        self,
        image_name: str,
        ref: ImageReference,
        option: DockerOption,
        ctx: Context | None = None,
    ) -> RemoteImage:
        """RemoteImage for ref, fetched with option

        Raises:
            PlatformParseError: option.platform is malformed
            RemoteIndexError: index needed for a wildcard platform is unavailable
            FetchError: manifest could not be retrieved
            ImageError: image manifest or config could not be retrieved
            Cancelled: ctx was cancelled or its deadline passed"""
        ctx = ctx or Context()
        credential = resolve_credential(ref.registry, option, self.keychain)

        # index is queried with the same trust and credential, but no platform
        base_options = build_remote_options(option, None, credential)
        platform = resolve_platform(
            ref, option.platform, self.client, base_options, ctx=ctx
        )
        options = build_remote_options(option, platform, credential)

        logger.debug(f"Fetching {ref} ({platform=}, {credential.kind} auth)")
        try:
            descriptor = self.client.get(ref, options, ctx=ctx)
        except RegistryError as exc:
            raise FetchError(f"remote get error: {exc}") from exc

        try:
            image = descriptor.image()
        except RegistryError as exc:
            raise ImageError(f"remote image error: {exc}") from exc
        finally:
            descriptor.close()

        return RemoteImage(image_name, image, ref, descriptor)


def try_remote(
    image_name: str,
    ref: ImageReference,
    option: DockerOption,
    ctx: Context | None = None,
    resolver: RemoteResolver | None = None,
) -> RemoteImage:
    """RemoteImage for ref using resolver (a default one if None)"""
    resolver = resolver or RemoteResolver()
    try:
        return resolver.resolve(image_name, ref, option, ctx=ctx)
    except Cancelled:
        logger.debug(f"Resolution of {image_name} cancelled")
        raise
