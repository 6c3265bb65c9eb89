from __future__ import annotations

import urllib.parse
from typing import TYPE_CHECKING

import requests
import requests.adapters
from attrs import define, field

from image_resolver.__about__ import __version__
from image_resolver.constants import PLAIN_HTTP_REGISTRIES
from image_resolver.credentials import Anonymous, Credential

if TYPE_CHECKING:
    from image_resolver.options import DockerOption
    from image_resolver.platform import Platform

USER_AGENT = f"image-resolver/{__version__}"


@define(frozen=True, kw_only=True)
class RemoteOptions:
    """Connection settings for one fetch: TLS trust, platform and credential"""

    verify: bool = True
    non_ssl: bool = False
    platform: Platform | None = None
    credential: Credential = field(factory=Anonymous)

    def scheme_for(self, registry: str) -> str:
        host = urllib.parse.urlsplit(f"//{registry}").hostname
        if self.non_ssl or host in PLAIN_HTTP_REGISTRIES:
            return "http"
        return "https"

    def session(self) -> requests.Session:
        """HTTP session for this fetch only

        No retry is mounted: failures surface to the caller right away"""
        session = requests.Session()
        session.verify = self.verify
        session.headers["User-Agent"] = USER_AGENT
        adapter = requests.adapters.HTTPAdapter(max_retries=0)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session


def build_remote_options(
    option: DockerOption,
    platform: Platform | None,
    credential: Credential,
) -> RemoteOptions:
    """RemoteOptions merging TLS policy, platform constraint and credential"""
    return RemoteOptions(
        verify=not option.insecure_skip_tls_verify,
        non_ssl=option.non_ssl,
        platform=platform,
        credential=credential,
    )
