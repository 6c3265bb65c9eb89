from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Union

from attrs import define, field

from image_resolver.configlib import get_logger

if TYPE_CHECKING:
    from image_resolver.options import DockerOption

logger = get_logger("credentials")


@define(frozen=True)
class Anonymous:
    """No credential: registry is accessed anonymously"""

    kind: str = field(default="anonymous", init=False)


@define(frozen=True)
class Basic:
    username: str
    password: str = field(repr=False)
    kind: str = field(default="basic", init=False)


@define(frozen=True)
class Bearer:
    """Registry token, sent as-is in the Authorization header"""

    token: str = field(repr=False)
    kind: str = field(default="bearer", init=False)


Credential = Union[Anonymous, Basic, Bearer]


class Keychain(Protocol):
    """Credential lookup keyed by registry domain"""

    def resolve(self, domain: str) -> Credential:
        ...


def resolve_credential(
    domain: str, option: DockerOption, keychain: Keychain
) -> Credential:
    """Credential to access domain with, first match wins:

    - username and password from option
    - registry token from option
    - whatever keychain knows about domain (possibly anonymous)"""
    if option.username and option.password:
        logger.debug(f"Using basic auth for {domain}")
        return Basic(option.username, option.password)
    if option.registry_token:
        logger.debug(f"Using registry token for {domain}")
        return Bearer(option.registry_token)
    credential = keychain.resolve(domain)
    logger.debug(f"Using {credential.kind} credential from keychain for {domain}")
    return credential
