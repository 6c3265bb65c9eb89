from __future__ import annotations

from typing import TYPE_CHECKING, Any

from attrs import define
from typeguard import typechecked

from image_resolver.configlib import get_logger
from image_resolver.errors import (
    PlatformParseError,
    RegistryError,
    RemoteIndexError,
    SchemaV1Error,
)

if TYPE_CHECKING:
    from image_resolver.context import Context
    from image_resolver.reference import ImageReference
    from image_resolver.registry import RegistryClient
    from image_resolver.transport import RemoteOptions

OS_WILDCARD = "*"
logger = get_logger("platform")


@typechecked
@define(frozen=True, kw_only=True)
class Platform:
    """Concrete os/architecture[/variant] an image runs on"""

    os: str
    architecture: str
    variant: str = ""
    os_version: str = ""

    @classmethod
    def parse(cls, value: str) -> Platform:
        """Platform from its `os/arch[/variant][:os_version]` representation

        Raises:
            PlatformParseError: on empty components or extraneous separators"""
        value = value.strip()
        os_version = ""
        if ":" in value:
            value, os_version = value.split(":", 1)
            if not os_version or ":" in os_version:
                raise PlatformParseError(f"invalid os version in platform `{value}`")

        parts = value.split("/")
        if len(parts) > 3:
            raise PlatformParseError(f"too many slashes in platform spec: {value}")
        if len(parts) < 2 or not all(parts):
            raise PlatformParseError(
                f"platform `{value}` is not of the form os/arch[/variant]"
            )
        if parts[0] == OS_WILDCARD:
            raise PlatformParseError(f"unresolved OS wildcard in platform `{value}`")
        return cls(
            os=parts[0],
            architecture=parts[1],
            variant=parts[2] if len(parts) == 3 else "",
            os_version=os_version,
        )

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Platform:
        """Platform from an OCI index `platform` object

        Raises:
            RegistryError: a platform field is not a string"""
        values = {
            "os": payload.get("os", ""),
            "architecture": payload.get("architecture", ""),
            "variant": payload.get("variant", ""),
            "os_version": payload.get("os.version", ""),
        }
        invalid = [key for key, value in values.items() if not isinstance(value, str)]
        if invalid:
            raise RegistryError(
                f"unexpected index manifest entry: invalid platform {', '.join(invalid)}"
            )
        return cls(**values)

    def satisfies(self, required: Platform) -> bool:
        """whether this (published) platform fulfills a required one

        Variant and OS version only matter if required specifies them"""
        if self.os != required.os or self.architecture != required.architecture:
            return False
        if required.variant and self.variant != required.variant:
            return False
        if required.os_version and self.os_version != required.os_version:
            return False
        return True

    def __str__(self):
        text = "/".join(
            part for part in (self.os, self.architecture, self.variant) if part
        )
        if self.os_version:
            text += f":{self.os_version}"
        return text


def is_wildcard(value: str) -> bool:
    """whether platform string leaves the OS up to the image (`*/arch`)"""
    return value.startswith(f"{OS_WILDCARD}/")


def resolve_platform(
    ref: ImageReference,
    value: str,
    client: RegistryClient,
    options: RemoteOptions,
    ctx: Context | None = None,
) -> Platform | None:
    """Platform constraint to fetch ref with, None meaning no constraint

    OS wildcard (e.g. `*/amd64`) is replaced with the OS of the first manifest
    listed in the image's index. Images that are not multi-arch (legacy schema
    or empty index) get no constraint at all.

    Raises:
        RemoteIndexError: index could not be retrieved
        PlatformParseError: value (once resolved) is not a valid platform"""
    if not value:
        return None

    if is_wildcard(value):
        try:
            index = client.index(ref, options, ctx=ctx)
        except SchemaV1Error:
            logger.debug("Ignored platform as the image is not multi-arch")
            return None
        except RegistryError as exc:
            raise RemoteIndexError(f"remote index error: {exc}") from exc

        if not index.manifests:
            logger.debug("Ignored platform as the image is not multi-arch")
            return None

        first = index.manifests[0].platform
        if first is not None:
            # */amd64 => linux/amd64
            value = first.os + value[len(OS_WILDCARD) :]
            logger.debug(f"Resolved wildcard platform to {value} for {ref}")

    try:
        return Platform.parse(value)
    except PlatformParseError as exc:
        raise PlatformParseError(f"platform parse error: {exc}") from exc
