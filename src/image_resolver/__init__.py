from image_resolver.__about__ import __version__
from image_resolver.context import Context
from image_resolver.credentials import Anonymous, Basic, Bearer, resolve_credential
from image_resolver.image import RemoteImage
from image_resolver.keychain import DockerKeychain
from image_resolver.options import DockerOption
from image_resolver.platform import Platform, resolve_platform
from image_resolver.reference import ImageReference, parse_reference, repository_name
from image_resolver.remote import RemoteResolver, try_remote

__all__ = [
    "__version__",
    "Anonymous",
    "Basic",
    "Bearer",
    "Context",
    "DockerKeychain",
    "DockerOption",
    "ImageReference",
    "Platform",
    "RemoteImage",
    "RemoteResolver",
    "parse_reference",
    "repository_name",
    "resolve_credential",
    "resolve_platform",
    "try_remote",
]
