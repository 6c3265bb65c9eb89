from __future__ import annotations

from attrs import define

from image_resolver.reference import ImageReference, repository_name
from image_resolver.registry import Descriptor, ImageHandle


def image_id(image: ImageHandle) -> str:
    """content-based image identifier: the digest of its config file"""
    return image.config_digest


def layer_ids(image: ImageHandle) -> list[str]:
    """uncompressed layer digests (diff IDs), base layer first"""
    return image.diff_ids


@define(frozen=True)
class RemoteImage:
    """Image found on a registry, identified the way registry clients do

    `name` is whatever the caller asked for, kept verbatim. Tags and digests
    are derived from the reference, repository name included."""

    name: str
    image: ImageHandle
    ref: ImageReference
    descriptor: Descriptor

    def __repr__(self):
        return f"{self.__class__.__name__}<{self.name}>"

    @property
    def repository_name(self) -> str:
        return repository_name(self.ref)

    def id(self) -> str:
        return image_id(self.image)

    def layer_ids(self) -> list[str]:
        return layer_ids(self.image)

    def repo_tags(self) -> list[str]:
        if not self.ref.tag:
            return []
        return [f"{self.repository_name}:{self.ref.tag}"]

    def repo_digests(self) -> list[str]:
        return [f"{self.repository_name}@{self.descriptor.digest}"]

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "id": self.id(),
            "repo_tags": self.repo_tags(),
            "repo_digests": self.repo_digests(),
            "layer_ids": self.layer_ids(),
        }
