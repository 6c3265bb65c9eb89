from __future__ import annotations


class ResolverError(Exception):
    """Base for all errors raised while resolving a remote image"""


class InvalidReferenceError(ResolverError, ValueError):
    """Image reference string could not be parsed"""


class PlatformParseError(ResolverError, ValueError):
    """Platform string is malformed"""


class Cancelled(ResolverError):
    """Resolution was cancelled or its deadline expired"""


class RegistryError(ResolverError):
    """Registry responded with an error or an unusable payload"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(RegistryError):
    """Registry refused our credentials (or lack thereof)"""


class ManifestUnknownError(RegistryError):
    """Reference does not exist on the registry"""


class DigestMismatchError(RegistryError):
    """Content does not hash to the digest it was requested by"""


class UnexpectedMediaTypeError(RegistryError):
    """Manifest is not of a kind the requested operation can handle"""


class SchemaV1Error(UnexpectedMediaTypeError):
    """Image uses the legacy (schema 1) manifest format

    Such images are single-manifest and can't be part of an index"""

    def __init__(self, media_type: str):
        super().__init__(f"unsupported legacy manifest schema: {media_type}")
        self.media_type = media_type


class RemoteIndexError(ResolverError):
    """Manifest index could not be retrieved while resolving a platform"""


class FetchError(ResolverError):
    """Remote descriptor could not be retrieved"""


class ImageError(ResolverError):
    """Descriptor could not be materialized into an image"""
