from __future__ import annotations

import base64
import binascii
import json
import pathlib
import subprocess

from image_resolver.configlib import get_logger
from image_resolver.constants import (
    CONTAINERS_AUTH_PATHS,
    CREDENTIAL_HELPER_PREFIX,
    DEFAULT_AUTH_KEY,
    DEFAULT_REGISTRY,
    DOCKER_CONFIG_PATH,
)
from image_resolver.credentials import Anonymous, Basic, Credential

logger = get_logger("keychain")


def get_auth_keys(domain: str) -> list[str]:
    """keys a registry's credentials may be stored under in auth files"""
    if domain == DEFAULT_REGISTRY:
        return [DEFAULT_AUTH_KEY, DEFAULT_REGISTRY, "docker.io"]
    return [domain, f"https://{domain}", f"http://{domain}"]


def decode_auth(auth: str) -> tuple[str, str]:
    """username, password from a base64 `username:password` auth entry"""
    try:
        decoded = base64.b64decode(auth).decode("UTF-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ValueError(f"Unable to decode auth entry: {exc}") from exc
    if ":" not in decoded:
        raise ValueError("auth entry is not of the form username:password")
    username, password = decoded.split(":", 1)
    return username, password


class DockerKeychain:
    """Keychain reading docker (and podman) client configuration

    Looks into the docker config.json then the containers auth.json files,
    honoring per-registry `credHelpers` and the global `credsStore` before
    plain `auths` entries. Anything unusable is logged and skipped: the
    keychain falls back to anonymous access."""

    def __init__(self, paths: list[pathlib.Path] | None = None):
        self.paths = (
            list(paths)
            if paths is not None
            else [DOCKER_CONFIG_PATH, *CONTAINERS_AUTH_PATHS]
        )

    def resolve(self, domain: str) -> Credential:
        for path in self.paths:
            config = self.read_config(path)
            if not config:
                continue
            credential = self.from_config(config, domain)
            if credential is not None:
                logger.debug(f"Found credential for {domain} in {path}")
                return credential
        return Anonymous()

    @staticmethod
    def read_config(path: pathlib.Path) -> dict:
        """parsed config file or empty dict if missing or unreadable"""
        if not path.is_file():
            return {}
        try:
            config = json.loads(path.read_text())
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning(f"Unable to read registry auth config {path}: {exc}")
            return {}
        if not isinstance(config, dict):
            logger.warning(f"Unexpected registry auth config format in {path}")
            return {}
        return config

    def from_config(self, config: dict, domain: str) -> Credential | None:
        keys = get_auth_keys(domain)

        helpers = config.get("credHelpers") or {}
        for key in keys:
            if isinstance(helpers, dict) and isinstance(helpers.get(key), str):
                return self.from_helper(helpers[key], keys[0])
        if config.get("credsStore"):
            credential = self.from_helper(config["credsStore"], keys[0])
            if not isinstance(credential, Anonymous):
                return credential

        auths = config.get("auths") or {}
        for key in keys:
            entry = auths.get(key) if isinstance(auths, dict) else None
            if not isinstance(entry, dict):
                continue
            if entry.get("username") and entry.get("password"):
                return Basic(entry["username"], entry["password"])
            if entry.get("auth"):
                try:
                    return Basic(*decode_auth(entry["auth"]))
                except ValueError as exc:
                    logger.warning(f"Ignoring auth entry for {key}: {exc}")
        return None

    @staticmethod
    def from_helper(helper: str, server_url: str) -> Credential:
        """credential from a docker-credential-<helper> program

        Identity tokens (username `<token>`) are not supported and resolve
        to anonymous access"""
        command = [f"{CREDENTIAL_HELPER_PREFIX}{helper}", "get"]
        logger.debug(f"{command=}")
        try:
            ps = subprocess.run(
                command,
                input=server_url,
                text=True,
                capture_output=True,
                check=True,
            )
            payload = json.loads(ps.stdout)
        except FileNotFoundError:
            logger.warning(f"Credential helper {command[0]} not found")
            return Anonymous()
        except subprocess.CalledProcessError as exc:
            # helpers exit non-zero when they hold no credentials for server
            logger.debug(f"{command[0]} has no credential: {exc.stdout.strip()}")
            return Anonymous()
        except json.JSONDecodeError as exc:
            logger.warning(f"Unexpected output from {command[0]}: {exc}")
            return Anonymous()

        if not isinstance(payload, dict):
            logger.warning(f"Unexpected output from {command[0]}: not an object")
            return Anonymous()

        username = payload.get("Username", "")
        secret = payload.get("Secret", "")
        if not username or not secret or username == "<token>":
            return Anonymous()
        return Basic(username, secret)
