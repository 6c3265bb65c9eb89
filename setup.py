#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# vim: ai ts=4 sts=4 et sw=4 nu

import pathlib
import re

from setuptools import find_packages, setup

root_dir = pathlib.Path(__file__).parent


def read(*names, **kwargs):
    with open(root_dir.joinpath(*names), "r") as fh:
        return fh.read()


def get_version():
    return re.search(
        r'^__version__ = "(?P<version>[^"]+)"$',
        read("src", "image_resolver", "__about__.py"),
        re.MULTILINE,
    ).group("version")


setup(
    name="image-resolver",
    version=get_version(),
    description="Resolve container image references against their registry",
    long_description=read("README.md"),
    long_description_content_type="text/markdown; charset=UTF-8; variant=GFM",
    keywords="oci docker registry image manifest",
    license="GPLv3+",
    packages=find_packages("src"),
    package_dir={"": "src"},
    install_requires=[
        "attrs>=23.1",
        "typeguard>=4.0",
        "PyYaml>=5.3,<7.0",
        "requests>=2.31",
        "humanfriendly>=10.0",
        "docker>=7.0",
    ],
    extras_require={"test": ["pytest>=7.0"]},
    entry_points={
        "console_scripts": [
            "image-resolver=image_resolver.cli:entrypoint",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "License :: OSI Approved :: GNU General Public License v3 or later (GPLv3+)",
    ],
    python_requires=">=3.9",
)
