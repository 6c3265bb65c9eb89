#!/usr/bin/env python3

""" Resolves image references against their registry and prints their identity """

import argparse
import pathlib
import sys
from typing import Optional

import humanfriendly

from image_resolver.__about__ import __version__
from image_resolver.configlib import (
    Config,
    fail_error,
    fail_invalid,
    get_progname,
    succeed,
)
from image_resolver.context import Context
from image_resolver.errors import InvalidReferenceError, ResolverError
from image_resolver.image import RemoteImage
from image_resolver.options import DockerOption
from image_resolver.reference import parse_reference
from image_resolver.remote import RemoteResolver
from image_resolver.utils.yaml import yaml_dump

NAME = "image-resolver"


def describe(image: RemoteImage) -> dict:
    """YAML-friendly summary of a resolved image"""
    payload = image.to_dict()
    payload["digest"] = image.descriptor.digest
    payload["media_type"] = image.descriptor.media_type
    payload["platform"] = (
        str(image.descriptor.platform) if image.descriptor.is_index else None
    )
    payload["size"] = humanfriendly.format_size(
        sum(layer.get("size", 0) for layer in image.image.layers), binary=True
    )
    return payload


def main(
    images: list[str],
    config: Optional[str] = None,
    timeout: Optional[float] = None,
    **overrides,
) -> int:
    logger = Config.logger
    option = DockerOption()
    if config:
        try:
            option = DockerOption.read_from(pathlib.Path(config).read_text())
        except Exception as exc:
            fail_invalid(f"Unable to read config from {config}: {exc}")
    option = option.updated_with(**overrides)

    refs = []
    for name in images:
        try:
            refs.append((name, parse_reference(name)))
        except InvalidReferenceError as exc:
            fail_invalid(f"Invalid image reference `{name}`: {exc}")

    resolver = RemoteResolver()
    failures = 0
    for name, ref in refs:
        logger.info(f"Resolving {name}")
        try:
            image = resolver.resolve(name, ref, option, ctx=Context(timeout=timeout))
        except ResolverError as exc:
            # one image failing does not prevent resolving others
            failures += 1
            if Config.debug:
                logger.exception(exc)
            else:
                logger.error(f"{name}: {exc}")
            continue
        print(yaml_dump(describe(image)), end="", flush=True)

    if failures:
        fail_error(f"{failures}/{len(refs)} image(s) could not be resolved")
    return succeed(f"{len(refs)} image(s) resolved")


def entrypoint():
    parser = argparse.ArgumentParser(
        prog=get_progname(),
        description="Resolve images on their registry and print their identity",
    )
    parser.add_argument("-V", "--version", action="version", version=__version__)
    parser.add_argument("--debug", action="store_true", dest="debug")

    parser.add_argument(
        "--config",
        help="YAML file of options (CLI flags take precedence)",
        dest="config",
    )
    parser.add_argument(
        "--platform",
        help="Platform to fetch: os/arch[/variant] or */arch to use "
        "the image's first published OS",
        dest="platform",
    )
    parser.add_argument("--username", help="Registry username", dest="username")
    parser.add_argument("--password", help="Registry password", dest="password")
    parser.add_argument(
        "--registry-token", help="Registry bearer token", dest="registry_token"
    )
    parser.add_argument(
        "--insecure",
        help="Skip TLS certificate verification",
        action="store_true",
        default=None,
        dest="insecure_skip_tls_verify",
    )
    parser.add_argument(
        "--non-ssl",
        help="Connect to the registry over plain HTTP",
        action="store_true",
        default=None,
        dest="non_ssl",
    )
    parser.add_argument(
        "--timeout",
        help="Give up on an image after this many seconds",
        type=float,
        dest="timeout",
    )
    parser.add_argument(
        help="Image reference(s): [registry/]repository[:tag|@digest]",
        nargs="+",
        dest="images",
    )

    kwargs = dict(parser.parse_args()._get_kwargs())
    Config.init(NAME)
    Config.set_debug(enabled=kwargs.pop("debug", False))

    try:
        sys.exit(main(**kwargs))
    except Exception as exc:
        if Config.debug:
            Config.logger.exception(exc)
        else:
            Config.logger.error(exc)
        sys.exit(1)


if __name__ == "__main__":
    sys.exit(entrypoint())
